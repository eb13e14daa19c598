"""Log field redaction tests."""

from __future__ import annotations

import unittest

from copy_engine.core.logging_safety import safe_log_identifier, safe_log_url, truncate_for_log


class LoggingSafetyTests(unittest.TestCase):
    def test_identifier_is_stable_and_hides_raw_value(self) -> None:
        token = safe_log_identifier("req-secret-1", prefix="rid")
        self.assertEqual(token, safe_log_identifier(" req-secret-1 ", prefix="rid"))
        self.assertTrue(token.startswith("rid-"))
        self.assertEqual(len(token), len("rid-") + 12)
        self.assertNotIn("secret", token)
        self.assertEqual(safe_log_identifier(None, prefix="rid"), "rid-missing")

    def test_url_keeps_host_only(self) -> None:
        logged = safe_log_url("https://v.douyin.com/iRNBho6u/?token=abc")
        self.assertTrue(logged.startswith("v.douyin.com/url-"))
        self.assertNotIn("iRNBho6u", logged)
        self.assertEqual(safe_log_url("not a url"), safe_log_identifier("not a url", prefix="url"))

    def test_truncate_for_log(self) -> None:
        self.assertEqual(truncate_for_log("abcdef", 3), "abc")
        self.assertEqual(truncate_for_log(None), "empty")
        self.assertEqual(truncate_for_log(""), "empty")


if __name__ == "__main__":
    unittest.main()
