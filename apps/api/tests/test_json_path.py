"""Dotted-path lookup tests."""

from __future__ import annotations

import unittest

from copy_engine.domain.json_path import pick_first_text, pick_text_by_path


class PickTextByPathTests(unittest.TestCase):
    def test_walks_nested_keys_and_list_indices(self) -> None:
        data = {"result": {"items": [{"text": "第一段"}, {"text": "第二段"}]}}
        self.assertEqual(pick_text_by_path(data, "result.items.1.text"), "第二段")

    def test_keys_may_contain_path_like_characters(self) -> None:
        data = {"loaderData": {"video_(id)/page": {"url": "https://cdn/video.mp4"}}}
        self.assertEqual(pick_text_by_path(data, "loaderData.video_(id)/page.url"), "https://cdn/video.mp4")

    def test_non_string_leaves_and_missing_segments_yield_none(self) -> None:
        data = {"a": {"b": 1, "c": ["x"]}}
        cases = ["a.b", "a.c", "a.c.5", "a.c.first", "a.missing", "a.b.c"]
        for path in cases:
            with self.subTest(path=path):
                self.assertIsNone(pick_text_by_path(data, path))

    def test_blank_path_yields_none(self) -> None:
        for path in (None, "", "   ", " . "):
            with self.subTest(path=path):
                self.assertIsNone(pick_text_by_path({"": "x"}, path))

    def test_pick_first_text_prefers_explicit_path_then_candidates(self) -> None:
        data = {"custom": {"value": " 自定义 "}, "text": "默认", "blank": "  "}
        self.assertEqual(pick_first_text(data, "custom.value", ["text"]), "自定义")
        self.assertEqual(pick_first_text(data, "nope", ["blank", "text"]), "默认")
        self.assertIsNone(pick_first_text(data, None, ["blank"]))


if __name__ == "__main__":
    unittest.main()
