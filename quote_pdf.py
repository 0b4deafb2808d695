from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import List, Literal, Tuple

from PIL import Image
from reportlab.lib.pagesizes import A4, landscape, portrait
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

Orientation = Literal["portrait", "landscape"]


@dataclass(frozen=True)
class ImagePlacement:
    """Where an image sits on the page, in millimetres from the top-left corner."""

    x_mm: float
    y_mm: float
    width_mm: float
    height_mm: float


@dataclass(frozen=True)
class _PlacedImage:
    png_bytes: bytes
    placement: ImagePlacement


class QuotePdfDocument:
    """
    A single-page A4 document built from page-sized bitmaps.

    Geometry is expressed in millimetres with the origin at the top-left (the way the layout is
    designed); conversion to PDF points and PDF's bottom-left origin happens on render.
    """

    def __init__(self, *, orientation: Orientation = "portrait", title: str = "", author: str = "") -> None:
        if orientation not in ("portrait", "landscape"):
            raise ValueError(f"orientation must be 'portrait' or 'landscape' (got {orientation!r})")
        self.orientation = orientation
        self.title = title
        self.author = author
        self._pagesize: Tuple[float, float] = portrait(A4) if orientation == "portrait" else landscape(A4)
        self._images: List[_PlacedImage] = []

    @property
    def page_width_mm(self) -> float:
        return self._pagesize[0] / mm

    @property
    def page_height_mm(self) -> float:
        return self._pagesize[1] / mm

    def add_image(self, png_bytes: bytes, placement: ImagePlacement) -> None:
        if not png_bytes:
            raise ValueError("png_bytes must not be empty")
        if placement.width_mm <= 0 or placement.height_mm <= 0:
            raise ValueError(f"image size must be positive (got {placement.width_mm} x {placement.height_mm} mm)")
        self._images.append(_PlacedImage(png_bytes=png_bytes, placement=placement))

    def to_bytes(self) -> bytes:
        buf = BytesIO()
        c = canvas.Canvas(buf, pagesize=self._pagesize)
        if self.title:
            c.setTitle(self.title)
        if self.author:
            c.setAuthor(self.author)
        _, page_h = self._pagesize
        for placed in self._images:
            p = placed.placement
            c.drawImage(
                ImageReader(BytesIO(placed.png_bytes)),
                p.x_mm * mm,
                page_h - (p.y_mm + p.height_mm) * mm,
                width=p.width_mm * mm,
                height=p.height_mm * mm,
            )
        c.showPage()
        c.save()
        return buf.getvalue()

    def save(self, path: Path) -> Path:
        path = Path(path)
        path.write_bytes(self.to_bytes())
        return path


def full_width_placement(image_size_px: Tuple[int, int], page_width_mm: float) -> ImagePlacement:
    """
    Fit an image to the full page width at the top-left, scaling its height proportionally.
    """
    w_px, h_px = image_size_px
    if w_px <= 0 or h_px <= 0:
        raise ValueError(f"image size must be positive (got {w_px}x{h_px})")
    return ImagePlacement(x_mm=0.0, y_mm=0.0, width_mm=page_width_mm, height_mm=(h_px * page_width_mm) / w_px)


def make_quote_pdf_bytes(png_bytes: bytes, *, title: str = "", author: str = "") -> bytes:
    """
    Wrap one rasterized quotation into a portrait A4 PDF, full width, height scaled to match.
    """
    with Image.open(BytesIO(png_bytes)) as img:
        size = img.size
    doc = QuotePdfDocument(orientation="portrait", title=title, author=author)
    doc.add_image(png_bytes, full_width_placement(size, doc.page_width_mm))
    return doc.to_bytes()
