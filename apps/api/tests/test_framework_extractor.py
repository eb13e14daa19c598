"""Narrative slot extraction tests."""

from __future__ import annotations

import unittest

from copy_engine.domain.framework import CopyFramework, compose_framework, extract_framework, split_sentences


class FrameworkExtractorTests(unittest.TestCase):
    def test_five_sentences_fill_every_slot_in_order(self) -> None:
        source = "你是不是也总觉得时间不够用？每天加班还是做不完。后来我换了一个方法。把重点任务提前拆分，效率明显提升。你也可以现在试试。"
        framework = extract_framework(source)

        self.assertEqual(framework.hook, "你是不是也总觉得时间不够用？")
        self.assertEqual(framework.pain_point, "每天加班还是做不完。")
        self.assertEqual(framework.solution, "后来我换了一个方法。")
        self.assertEqual(framework.evidence, "把重点任务提前拆分，效率明显提升。")
        self.assertEqual(framework.cta, "你也可以现在试试。")

    def test_extra_middle_sentences_merge_into_evidence(self) -> None:
        framework = extract_framework("一。二。三。四。五。六。")
        self.assertEqual(framework.evidence, "四。 五。")
        self.assertEqual(framework.cta, "六。")

    def test_short_middle_falls_back_to_merged_middle(self) -> None:
        framework = extract_framework("开头。中间。结尾。")
        self.assertEqual(framework.pain_point, "中间。")
        self.assertEqual(framework.solution, "中间。")
        self.assertEqual(framework.evidence, "中间。")

    def test_single_sentence_reuses_hook_as_cta(self) -> None:
        framework = extract_framework("只有一句话")
        self.assertEqual(framework.hook, "只有一句话")
        self.assertEqual(framework.cta, "只有一句话")
        self.assertEqual(framework.pain_point, "")

    def test_empty_input_yields_empty_slots(self) -> None:
        self.assertEqual(extract_framework("  \n "), CopyFramework())

    def test_split_handles_newlines_and_whitespace(self) -> None:
        self.assertEqual(split_sentences("第一句！  第二\n\n第三   句?"), ["第一句！", "第二", "第三 句?"])

    def test_compose_keeps_slot_order_and_skips_empty(self) -> None:
        text = compose_framework(CopyFramework(hook="A", pain_point="B", solution=" ", evidence="D", cta="E"))
        self.assertEqual(text, "A\nB\nD\nE")


if __name__ == "__main__":
    unittest.main()
