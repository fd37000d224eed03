# -*- coding: utf-8 -*-
"""
Test suite for logging.py
"""
from __future__ import annotations

import logging
import unittest

from vocoder_cli.utils.logging import (
    ROOT_LOGGER_NAME,
    compact_json,
    get_logger,
    level_from_string,
    log_http_request,
    mask_token,
    temporarily,
)


class TestLoggerFactory(unittest.TestCase):
    def test_names_live_under_package_root(self):
        self.assertEqual(get_logger("vocoder_cli.wrap.analyzer").name, "vocoder_cli.wrap.analyzer")
        self.assertEqual(get_logger("plugin").name, "vocoder_cli.plugin")
        root = logging.getLogger(ROOT_LOGGER_NAME)
        self.assertEqual(len(root.handlers), 1)
        self.assertFalse(root.propagate)

    def test_level_from_string(self):
        self.assertEqual(level_from_string("debug"), logging.DEBUG)
        self.assertEqual(level_from_string("nonsense"), logging.WARNING)
        self.assertEqual(level_from_string(None, default=logging.ERROR), logging.ERROR)

    def test_temporarily_restores_level(self):
        root = logging.getLogger(ROOT_LOGGER_NAME)
        before = root.level
        with temporarily(logging.DEBUG):
            self.assertEqual(root.level, logging.DEBUG)
        self.assertEqual(root.level, before)


class TestRedaction(unittest.TestCase):
    def test_mask_token(self):
        self.assertEqual(mask_token(None), "<none>")
        self.assertEqual(mask_token("abc"), "***")
        masked = mask_token("vc_1234567890")
        self.assertTrue(masked.startswith("vc_123"))
        self.assertNotIn("7890", masked)

    def test_compact_json_truncates(self):
        self.assertEqual(compact_json({"a": [1, 2]}), '{"a":[1,2]}')
        self.assertTrue(compact_json("x" * 50, limit=10).endswith("(truncated)"))

    def test_authorization_header_redacted(self):
        logger = get_logger("tests.http")
        with self.assertLogs(logger, level="DEBUG") as logs:
            log_http_request(logger, method="get", url="https://vocoder.test", headers={"Authorization": "Bearer vc_secret"})
        joined = "\n".join(logs.output)
        self.assertIn("HTTP GET https://vocoder.test", joined)
        self.assertNotIn("vc_secret", joined)


if __name__ == "__main__":
    unittest.main()
