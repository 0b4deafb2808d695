from __future__ import annotations

import tempfile
import unittest
from io import BytesIO
from pathlib import Path

from PIL import Image

from quote_pdf import ImagePlacement, QuotePdfDocument, full_width_placement, make_quote_pdf_bytes


def _png(size=(794, 1400)) -> bytes:
    buf = BytesIO()
    Image.new("RGB", size, (255, 255, 255)).save(buf, format="PNG")
    return buf.getvalue()


class TestQuotePdf(unittest.TestCase):
    def _count_pdf_pages(self, pdf: bytes) -> int:
        """
        Best-effort page count without extra dependencies.

        In ReportLab output, each page object typically includes "/Type /Page",
        while the page tree includes "/Type /Pages". We count Page occurrences
        and subtract the Pages tree occurrence.
        """
        if not isinstance(pdf, (bytes, bytearray)):
            raise TypeError("pdf must be bytes")
        page = pdf.count(b"/Type /Page")
        pages_tree = pdf.count(b"/Type /Pages")
        return max(0, page - pages_tree)

    def test_make_quote_pdf_bytes_returns_single_page_pdf(self) -> None:
        pdf = make_quote_pdf_bytes(_png(), title="Quotation QTN-2026-1234", author="Taskio")
        self.assertTrue(pdf.startswith(b"%PDF"))
        self.assertEqual(self._count_pdf_pages(pdf), 1)

    def test_tall_capture_still_one_page(self) -> None:
        pdf = make_quote_pdf_bytes(_png((794, 4000)))
        self.assertEqual(self._count_pdf_pages(pdf), 1)

    def test_full_width_placement_keeps_aspect(self) -> None:
        p = full_width_placement((1588, 2246), 210.0)
        self.assertEqual((p.x_mm, p.y_mm), (0.0, 0.0))
        self.assertEqual(p.width_mm, 210.0)
        self.assertAlmostEqual(p.height_mm, 2246 * 210.0 / 1588)
        with self.assertRaises(ValueError):
            full_width_placement((0, 10), 210.0)

    def test_a4_page_geometry(self) -> None:
        doc = QuotePdfDocument()
        self.assertAlmostEqual(doc.page_width_mm, 210.0, places=0)
        self.assertAlmostEqual(doc.page_height_mm, 297.0, places=0)
        wide = QuotePdfDocument(orientation="landscape")
        self.assertAlmostEqual(wide.page_width_mm, 297.0, places=0)
        with self.assertRaises(ValueError):
            QuotePdfDocument(orientation="square")  # type: ignore[arg-type]

    def test_save_writes_pdf_file(self) -> None:
        doc = QuotePdfDocument(title="Quotation QTN-2026-1234")
        doc.add_image(_png(), full_width_placement((794, 1400), doc.page_width_mm))
        with tempfile.TemporaryDirectory() as tmp:
            path = doc.save(Path(tmp) / "Quotation-QTN-2026-1234.pdf")
            data = path.read_bytes()
        self.assertTrue(data.startswith(b"%PDF"))
        self.assertEqual(self._count_pdf_pages(data), 1)

    def test_add_image_validates(self) -> None:
        doc = QuotePdfDocument()
        with self.assertRaises(ValueError):
            doc.add_image(b"", ImagePlacement(0, 0, 10, 10))
        with self.assertRaises(ValueError):
            doc.add_image(_png(), ImagePlacement(0, 0, 0, 10))


if __name__ == "__main__":
    unittest.main()
