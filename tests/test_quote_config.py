from __future__ import annotations

import unittest
from pathlib import Path

from quote_config import DEFAULT_AI_MODEL, DEFAULT_AI_TIMEOUT_S, load_config


class TestQuoteConfig(unittest.TestCase):
    def test_defaults(self) -> None:
        cfg = load_config({})
        self.assertIsNone(cfg.openai_api_key)
        self.assertEqual(cfg.ai_model, DEFAULT_AI_MODEL)
        self.assertEqual(cfg.ai_timeout_s, DEFAULT_AI_TIMEOUT_S)
        self.assertTrue(cfg.ai_enabled)
        self.assertFalse(cfg.ai_available)
        self.assertEqual(cfg.export_dir, Path("exports"))
        self.assertEqual(cfg.log_level, "INFO")
        self.assertFalse(cfg.log_json)

    def test_overrides(self) -> None:
        cfg = load_config(
            {
                "OPENAI_API_KEY": " sk-test ",
                "QUOTE_AI_MODEL": "gpt-4.1-mini",
                "QUOTE_AI_TIMEOUT_S": "12.5",
                "QUOTE_EXPORT_DIR": "/tmp/quotes",
                "QUOTE_LOG_LEVEL": "debug",
                "QUOTE_LOG_JSON": "yes",
            }
        )
        self.assertEqual(cfg.openai_api_key, "sk-test")
        self.assertTrue(cfg.ai_available)
        self.assertEqual(cfg.ai_model, "gpt-4.1-mini")
        self.assertEqual(cfg.ai_timeout_s, 12.5)
        self.assertEqual(cfg.export_dir, Path("/tmp/quotes"))
        self.assertEqual(cfg.log_level, "DEBUG")
        self.assertTrue(cfg.log_json)

    def test_kill_switch(self) -> None:
        cfg = load_config({"OPENAI_API_KEY": "sk-test", "QUOTE_AI_ENABLED": "off"})
        self.assertFalse(cfg.ai_enabled)
        self.assertFalse(cfg.ai_available)

    def test_invalid_timeout(self) -> None:
        with self.assertRaises(ValueError):
            load_config({"QUOTE_AI_TIMEOUT_S": "soon"})
        with self.assertRaises(ValueError):
            load_config({"QUOTE_AI_TIMEOUT_S": "0"})


if __name__ == "__main__":
    unittest.main()
