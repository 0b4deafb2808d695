from __future__ import annotations

import json
import logging
import sys
import unittest

from logging_config import StructuredFormatter, setup_logging


class TestLoggingConfig(unittest.TestCase):
    def tearDown(self) -> None:
        logging.basicConfig(force=True)

    def test_structured_formatter_merges_extra(self) -> None:
        record = logging.getLogger("quote_export").makeRecord(
            "quote_export",
            logging.INFO,
            __file__,
            10,
            "Quotation exported",
            (),
            None,
            extra={"quote_number": "QTN-2026-1234", "size_bytes": 2048},
        )
        payload = json.loads(StructuredFormatter().format(record))
        self.assertEqual(payload["message"], "Quotation exported")
        self.assertEqual(payload["severity"], "INFO")
        self.assertEqual(payload["logger"], "quote_export")
        self.assertEqual(payload["quote_number"], "QTN-2026-1234")
        self.assertEqual(payload["size_bytes"], 2048)
        self.assertNotIn("args", payload)

    def test_structured_formatter_includes_exception(self) -> None:
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = logging.getLogger("x").makeRecord("x", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())
        payload = json.loads(StructuredFormatter().format(record))
        self.assertIn("RuntimeError: boom", payload["exception"])

    def test_setup_logging(self) -> None:
        setup_logging(level="debug", json_lines=True)
        root = logging.getLogger()
        self.assertEqual(root.level, logging.DEBUG)
        self.assertIsInstance(root.handlers[0].formatter, StructuredFormatter)
        self.assertEqual(logging.getLogger("openai").level, logging.WARNING)


if __name__ == "__main__":
    unittest.main()
