from __future__ import annotations

import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from PIL import Image

from quote_export import ExportFormat, ExportPipeline, export_filename
from quote_model import new_draft
from quote_views import INTERACTIVE_STYLE, PAGE_WIDTH_PX, PRINT_STYLE, rasterize
from service_catalog import get_service


def _draft():
    d = new_draft()
    d.client_name = "Acme Corp"
    d.items = [get_service("google_ads").to_line_item()]
    return d


class TestQuoteExport(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.out_dir = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_export_filename(self) -> None:
        self.assertEqual(export_filename("QTN-2026-4821"), "Quotation-QTN-2026-4821.pdf")
        self.assertEqual(export_filename("QTN-2026-4821", ExportFormat.IMAGE), "Quotation-QTN-2026-4821.png")
        self.assertEqual(export_filename("../x y"), "Quotation-x-y.pdf")

    def test_pdf_export(self) -> None:
        d = _draft()
        result = ExportPipeline(output_dir=self.out_dir).export(d, ExportFormat.PDF)
        self.assertIsNotNone(result)
        self.assertEqual(result.path, self.out_dir / f"Quotation-{d.quote_number}.pdf")
        self.assertEqual(result.path.read_bytes(), result.data)
        self.assertTrue(result.data.startswith(b"%PDF"))
        self.assertEqual(result.format.mime_type, "application/pdf")

    def test_png_export_is_flat_and_double_scale(self) -> None:
        result = ExportPipeline(output_dir=self.out_dir).export(_draft(), ExportFormat.IMAGE)
        with Image.open(result.path) as img:
            self.assertEqual(img.width, PAGE_WIDTH_PX * 2)
            self.assertEqual(img.getpixel((0, 0))[:3], (255, 255, 255))

    def test_capture_forces_print_style(self) -> None:
        seen = []

        def spy(surface, **kwargs):
            probe = surface.clone()
            kwargs["on_clone"](probe)
            seen.append((surface.style, probe.style))
            return rasterize(surface, **kwargs)

        ExportPipeline(output_dir=self.out_dir, rasterizer=spy).capture_png(_draft())
        self.assertEqual(seen, [(INTERACTIVE_STYLE, PRINT_STYLE)])

    def test_export_does_not_touch_draft(self) -> None:
        d = _draft()
        before = repr(d)
        ExportPipeline(output_dir=self.out_dir).export(d)
        self.assertEqual(repr(d), before)

    def test_failed_export_leaves_no_file(self) -> None:
        def broken(surface, **kwargs):
            raise RuntimeError("canvas exploded")

        with self.assertLogs("quote_export", level="ERROR"):
            result = ExportPipeline(output_dir=self.out_dir, rasterizer=broken).export(_draft())
        self.assertIsNone(result)
        self.assertEqual(list(self.out_dir.iterdir()), [])

    def test_interrupted_write_leaves_no_partial_file(self) -> None:
        with patch("quote_export.os.replace", side_effect=OSError("disk full")):
            with self.assertLogs("quote_export", level="ERROR"):
                result = ExportPipeline(output_dir=self.out_dir).export(_draft())
        self.assertIsNone(result)
        self.assertEqual(list(self.out_dir.iterdir()), [])


if __name__ == "__main__":
    unittest.main()
