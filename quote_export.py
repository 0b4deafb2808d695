from __future__ import annotations

import logging
import os
import re
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from PIL import Image

from quote_model import QuotationDraft
from quote_pdf import make_quote_pdf_bytes
from quote_views import QuotePreviewSurface, encode_png, locate_surface, rasterize

logger = logging.getLogger(__name__)

EXPORT_SCALE = 2
EXPORT_BACKGROUND = "white"

Rasterizer = Callable[..., Image.Image]


class ExportFormat(str, Enum):
    PDF = "pdf"
    IMAGE = "png"

    @property
    def mime_type(self) -> str:
        return "application/pdf" if self is ExportFormat.PDF else "image/png"


@dataclass(frozen=True)
class ExportResult:
    path: Path
    format: ExportFormat
    data: bytes

    @property
    def filename(self) -> str:
        return self.path.name


_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def export_filename(quote_number: str, fmt: ExportFormat = ExportFormat.PDF) -> str:
    safe = _UNSAFE_FILENAME_CHARS.sub("-", quote_number).strip("-.") or "draft"
    return f"Quotation-{safe}.{fmt.value}"


def _force_print_style(surface: QuotePreviewSurface) -> None:
    surface.reset_for_print()


class ExportPipeline:
    """
    Snapshot the rendered quotation and write it out as a downloadable file.

    The pipeline only reads the draft. Failures are logged and reported as `None`; a file only
    appears in `output_dir` once it has been written completely.
    """

    def __init__(
        self,
        *,
        output_dir: Path,
        scale: int = EXPORT_SCALE,
        background: str = EXPORT_BACKGROUND,
        rasterizer: Rasterizer = rasterize,
    ) -> None:
        self.output_dir = Path(output_dir)
        self.scale = scale
        self.background = background
        self._rasterize = rasterizer

    def capture_png(self, draft: QuotationDraft) -> bytes:
        surface = locate_surface(draft)
        img = self._rasterize(surface, scale=self.scale, background=self.background, on_clone=_force_print_style)
        return encode_png(img)

    def build(self, draft: QuotationDraft, fmt: ExportFormat = ExportFormat.PDF) -> bytes:
        png = self.capture_png(draft)
        if fmt is ExportFormat.IMAGE:
            return png
        return make_quote_pdf_bytes(png, title=f"Quotation {draft.quote_number}", author=draft.sender_name)

    def export(self, draft: QuotationDraft, fmt: ExportFormat = ExportFormat.PDF) -> Optional[ExportResult]:
        filename = export_filename(draft.quote_number, fmt)
        try:
            data = self.build(draft, fmt)
            path = self._write_atomic(filename, data)
        except Exception:
            logger.exception("Quotation export failed", extra={"quote_number": draft.quote_number, "format": fmt.value})
            return None

        logger.info(
            "Quotation exported",
            extra={"quote_number": draft.quote_number, "path": str(path), "size_bytes": len(data)},
        )
        return ExportResult(path=path, format=fmt, data=data)

    def _write_atomic(self, filename: str, data: bytes) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        target = self.output_dir / filename
        fd, tmp_name = tempfile.mkstemp(prefix=".export-", suffix=".part", dir=self.output_dir)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        return target
