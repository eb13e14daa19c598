"""Deterministic rewrite primitive tests."""

from __future__ import annotations

import re
import unittest

from copy_engine.domain.quality_gate import evaluate_quality
from copy_engine.domain.rewriter import (
    LENGTH_FILLER,
    adjust_length_strict,
    allocate_selling_points,
    apply_micro_rewrite,
    apply_synonyms,
    build_high_similarity_rewrite_variants,
    build_product_variants,
    build_rewrite_variants,
    finalize_versions,
    length_bounds,
    normalize_versions_for_strict_length,
    pick,
    pick_different,
    rewrite_segment,
    sanitize_by_forbidden_words,
    split_sentences,
    strip_trailing_platform_tag,
)

_WHITESPACE = re.compile(r"\s+")

SNACK_SOURCE = (
    "昨天朋友来家里唠嗑，随手给我塞了盒永显传家的冻干叉烧肉。吃一口直接被惊艳到，立马去网上下单。"
    "他家都是精选猪肉，传统腌制，冻干锁鲜工艺做的。"
)
JUICE_SOURCE = (
    "上次去同事家喝了这个果汁，立马 get 同款。它真的特别适合经常外卖、火锅、烧烤的姐妹。"
    "关键现在到手6瓶，你看看才多少钱？入口先是甘蔗的清甜，回味还有马蹄的清香。"
)


class SeededPickTests(unittest.TestCase):
    def test_pick_wraps_by_seed(self) -> None:
        self.assertEqual(pick(["a", "b", "c"], 4), "b")

    def test_pick_different_excludes_original(self) -> None:
        self.assertEqual(pick_different(["a", "b", "c"], "a", 0), "b")
        self.assertEqual(pick_different(["a"], "a", 3), "a")


class LengthClampTests(unittest.TestCase):
    def test_long_text_is_clamped_to_upper_bound(self) -> None:
        [normalized] = normalize_versions_for_strict_length("a" * 100, ["b" * 130])
        self.assertEqual(len(normalized), 110)
        self.assertTrue(normalized.endswith("。"))

    def test_short_text_is_padded_with_filler(self) -> None:
        [normalized] = normalize_versions_for_strict_length("a" * 100, ["b" * 20])
        self.assertGreaterEqual(len(normalized), 90)
        self.assertLessEqual(len(normalized), 110)
        self.assertTrue(normalized.startswith("b" * 20 + LENGTH_FILLER))
        self.assertTrue(normalized.endswith("。"))

    def test_bounds_for_tiny_sources(self) -> None:
        self.assertEqual(length_bounds(""), (1, 1))
        self.assertEqual(length_bounds("a" * 10), (9, 11))
        self.assertEqual(adjust_length_strict("", ""), "。")

    def test_text_already_in_range_only_gains_terminal_punctuation(self) -> None:
        self.assertEqual(adjust_length_strict("a" * 10, "  bbbbbbbbbb  "), "bbbbbbbbbb。")


class SentenceRewriteTests(unittest.TestCase):
    def test_synonyms_replace_every_occurrence(self) -> None:
        self.assertEqual(apply_synonyms("真的非常简单，真的", 0), "确实很省心，确实")

    def test_rewrite_segment_alternates_rhythm_and_connector_words(self) -> None:
        self.assertEqual(rewrite_segment("真的很好。大家试试。", 0), "其实，确实很好。然后，很多人试试。")

    def test_micro_rewrite_prefers_table_entries(self) -> None:
        self.assertEqual(apply_micro_rewrite("昨天我去了超市。", 0), "前一天我去了超市。")

    def test_micro_rewrite_falls_back_to_word_substitutions(self) -> None:
        self.assertEqual(apply_micro_rewrite("这个很好用。", 1), "这瓶很好用。")

    def test_micro_rewrite_inserts_particles_when_nothing_else_applies(self) -> None:
        self.assertEqual(apply_micro_rewrite("我们出发吧，走了。", 2), "我们出发吧，也走了。")
        self.assertEqual(apply_micro_rewrite("我们出发吧。", 0), "我们出发吧，确实。")

    def test_micro_rewrite_skips_short_and_platform_sentences(self) -> None:
        for sentence in ("抖音", "Douyin。", "好的。", "。！"):
            with self.subTest(sentence=sentence):
                self.assertEqual(apply_micro_rewrite(sentence, 5), sentence)

    def test_strip_trailing_platform_tag(self) -> None:
        self.assertEqual(strip_trailing_platform_tag("好吃又实惠。抖音"), "好吃又实惠")
        self.assertEqual(strip_trailing_platform_tag("Nice DOUYIN! "), "Nice")
        self.assertEqual(strip_trailing_platform_tag("抖音"), "抖音")
        self.assertEqual(strip_trailing_platform_tag("抖音好物推荐。"), "抖音好物推荐。")

    def test_sanitize_by_forbidden_words_ignores_blank_entries(self) -> None:
        self.assertEqual(sanitize_by_forbidden_words("全网最强最好", ["最强", " "]), "全网最好")


class HighSimilarityVariantTests(unittest.TestCase):
    def test_variants_pass_strict_rewrite_quality_gate(self) -> None:
        source = "今天这个做法真的很实用，尤其是你时间紧的时候，照着步骤来，效率会明显提升，马上就能看到变化。"
        versions = build_high_similarity_rewrite_variants(source, 3)
        report = evaluate_quality("rewrite", source, versions)
        self.assertTrue(report.overall_passed)

    def test_variants_are_distinct(self) -> None:
        versions = build_high_similarity_rewrite_variants(SNACK_SOURCE, 3)
        self.assertEqual(len({_WHITESPACE.sub("", item) for item in versions}), 3)

    def test_every_sentence_is_reworded(self) -> None:
        source_sentences = split_sentences(JUICE_SOURCE)
        for version in build_high_similarity_rewrite_variants(JUICE_SOURCE, 3):
            version_sentences = split_sentences(version)
            self.assertEqual(len(version_sentences), len(source_sentences))
            for source_sentence, version_sentence in zip(source_sentences, version_sentences):
                self.assertNotEqual(_WHITESPACE.sub("", version_sentence), _WHITESPACE.sub("", source_sentence))

    def test_platform_tag_is_not_carried_into_variants(self) -> None:
        source = "昨天朋友来家里唠嗑，随手给我塞了盒永显传家的冻干叉烧肉。吃一口直接被惊艳到，立马去网上下单。抖音"
        for version in build_high_similarity_rewrite_variants(source, 3):
            self.assertIsNone(re.search(r"抖音[。！？!?]?[呀呢啊]", version))
            self.assertIsNone(re.search(r"抖音[。！？!?]?$", version))


class FrameworkVariantTests(unittest.TestCase):
    def test_rewrite_variants_respect_length_bounds(self) -> None:
        min_length, max_length = length_bounds(SNACK_SOURCE)
        variants = build_rewrite_variants(SNACK_SOURCE, 3, seed_base=17)
        self.assertEqual(len(variants), 3)
        for variant in variants:
            self.assertGreaterEqual(len(variant), min_length)
            self.assertLessEqual(len(variant), max_length)
        self.assertEqual(variants, build_rewrite_variants(SNACK_SOURCE, 3, seed_base=17))

    def test_selling_points_rotate_in_pairs(self) -> None:
        self.assertEqual(allocate_selling_points(["a", "b", "c"], 2), ["c", "a"])
        self.assertEqual(allocate_selling_points(["a"], 0), ["a"])
        self.assertEqual(allocate_selling_points([], 1), [])

    def test_product_variants_mention_product_in_hook(self) -> None:
        variants = build_product_variants(
            JUICE_SOURCE * 3,
            product_name="清润果汁",
            category="饮品",
            selling_points=["甘蔗清甜", "马蹄清香", "零添加"],
            target_audience="爱吃火锅的人",
            cta="点击下单",
            variant_count=3,
            seed_base=0,
        )
        self.assertEqual(len(variants), 3)
        for variant in variants:
            self.assertIn("清润果汁", variant.split("\n")[0])

    def test_finalize_strips_platform_tag_before_clamping(self) -> None:
        source = "今天这个做法真的很实用，照着步骤来效率会明显提升，马上就能看到变化。"
        close = source.replace("真的", "确实").replace("明显", "显著")
        min_length, max_length = length_bounds(source)

        for version in finalize_versions(source, [f"{close}抖音。"] * 3):
            self.assertNotIn("抖音", version)
            self.assertTrue(version.endswith("。"))
            self.assertGreaterEqual(len(version), min_length)
            self.assertLessEqual(len(version), max_length)

    def test_finalized_versions_are_bounded_and_terminated(self) -> None:
        sources = [SNACK_SOURCE, JUICE_SOURCE, "今天这个做法真的很实用，马上就能看到变化。抖音"]
        for source in sources:
            drafts = [
                source * 3,
                "短。",
                f"{source}抖音。",
                f"{source[:10]} douyin",
                "",
            ]
            for forbidden_words in ((), ("真的",)):
                cleaned = strip_trailing_platform_tag(source)
                min_length, max_length = length_bounds(cleaned)
                versions = finalize_versions(source, drafts, forbidden_words)
                self.assertEqual(len(versions), len(drafts))
                for version in versions:
                    with self.subTest(source=source[:8], forbidden=forbidden_words, version=version):
                        self.assertGreaterEqual(len(version), min_length)
                        self.assertLessEqual(len(version), max_length)
                        self.assertRegex(version, r"[。！？!?]$")
                        self.assertIsNone(re.search(r"(抖音|douyin)[。！？!?]?$", version, re.IGNORECASE))
                        for word in forbidden_words:
                            self.assertNotIn(word, version)

    def test_finalize_removes_forbidden_words(self) -> None:
        source = "这款面霜是全网最强的保湿单品。用了一周皮肤明显水润。推荐给干皮的你。"
        drafts = [source, source, source]
        for version in finalize_versions(source, drafts, ["最强"]):
            self.assertNotIn("最强", version)


if __name__ == "__main__":
    unittest.main()
