from __future__ import annotations

import base64
import copy
import logging
from dataclasses import dataclass, replace
from functools import lru_cache
from io import BytesIO
from typing import Callable, List, Optional, Tuple

from PIL import Image, ImageColor, ImageDraw, ImageFilter, ImageFont

from pricing_engine import budget_exceeded, format_money, grand_total
from quote_model import DEFAULT_SENDER_NAME, ContactMode, Currency, LineItem, QuotationDraft

logger = logging.getLogger(__name__)

PREVIEW_ELEMENT_ID = "quotation-preview"

# A4 at 96 dpi; layout coordinates below are in these base pixels and multiplied by `scale`.
PAGE_WIDTH_PX = 794
MIN_PAGE_HEIGHT_PX = 1123
MARGIN_PX = 56
LINE_SPACING = 1.35

STAGE_BACKGROUND = "#eef0f5"

_INK = (15, 23, 42)
_MUTED = (100, 116, 139)
_ACCENT = (37, 99, 235)
_RULE = (226, 232, 240)
_GOOD = (5, 150, 105)
_BAD = (225, 29, 72)
_PAPER = (255, 255, 255)


@dataclass(frozen=True)
class SurfaceStyle:
    """
    Presentation effects applied around the flat document when it is shown on screen.
    """

    tilt_deg: float = 0.0
    shadow_px: int = 0
    corner_radius_px: int = 0

    @property
    def is_flat(self) -> bool:
        return not (self.tilt_deg or self.shadow_px or self.corner_radius_px)


INTERACTIVE_STYLE = SurfaceStyle(tilt_deg=-1.5, shadow_px=24, corner_radius_px=18)
PRINT_STYLE = SurfaceStyle()


@dataclass
class QuotePreviewSurface:
    """
    The live document preview: the draft it shows plus the on-screen styling around it.

    Capturing always works on a `clone()` so print-only style changes never leak back into the
    interactive preview.
    """

    element_id: str
    draft: QuotationDraft
    style: SurfaceStyle = INTERACTIVE_STYLE

    def clone(self) -> "QuotePreviewSurface":
        return QuotePreviewSurface(element_id=self.element_id, draft=copy.deepcopy(self.draft), style=self.style)

    def reset_for_print(self) -> None:
        # transform: none; box-shadow: none; border-radius: 0
        self.style = replace(self.style, tilt_deg=0.0, shadow_px=0, corner_radius_px=0)


def locate_surface(draft: QuotationDraft, *, element_id: str = PREVIEW_ELEMENT_ID) -> QuotePreviewSurface:
    return QuotePreviewSurface(element_id=element_id, draft=draft)


def rasterize(
    surface: QuotePreviewSurface,
    *,
    scale: int = 2,
    background: str = "white",
    on_clone: Optional[Callable[[QuotePreviewSurface], None]] = None,
) -> Image.Image:
    """
    Capture a surface to an RGB bitmap at `scale` x the base layout size.

    `on_clone` runs against the cloned surface right before capture (the place to force print styling).
    """
    if isinstance(scale, bool) or not isinstance(scale, int) or scale < 1:
        raise ValueError(f"scale must be a positive int (got {scale!r})")
    clone = surface.clone()
    if on_clone is not None:
        on_clone(clone)
    page = render_document(clone.draft, scale=scale)
    return apply_surface_style(page, clone.style, scale=scale, background=background)


def render_document(draft: QuotationDraft, *, scale: int = 1) -> Image.Image:
    """
    Draw the flat quotation document. Width is fixed; height grows with the content.
    """
    height = _DocumentPainter(draft, scale=scale).paint()
    img = Image.new("RGB", (_px(PAGE_WIDTH_PX, scale), _px(height, scale)), _PAPER)
    _DocumentPainter(draft, scale=scale, image=img).paint()
    return img


def apply_surface_style(page: Image.Image, style: SurfaceStyle, *, scale: int, background: str) -> Image.Image:
    bg = ImageColor.getrgb(background)
    if style.is_flat:
        out = Image.new("RGB", page.size, bg)
        out.paste(page, (0, 0))
        return out

    w, h = page.size
    shadow = _px(style.shadow_px, scale)
    pad = shadow * 2
    canvas = Image.new("RGBA", (w + 2 * pad, h + 2 * pad), bg + (255,))

    if shadow:
        layer = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
        ImageDraw.Draw(layer).rounded_rectangle(
            [pad, pad + shadow // 2, pad + w - 1, pad + h - 1 + shadow // 2],
            radius=_px(style.corner_radius_px, scale),
            fill=_INK + (70,),
        )
        canvas = Image.alpha_composite(canvas, layer.filter(ImageFilter.GaussianBlur(shadow / 2)))

    mask = Image.new("L", page.size, 0)
    ImageDraw.Draw(mask).rounded_rectangle([0, 0, w - 1, h - 1], radius=_px(style.corner_radius_px, scale), fill=255)
    canvas.paste(page, (pad, pad), mask)

    if style.tilt_deg:
        canvas = canvas.rotate(
            style.tilt_deg,
            resample=Image.Resampling.BICUBIC,
            expand=True,
            fillcolor=bg + (255,),
        )
    return canvas.convert("RGB")


def encode_png(img: Image.Image) -> bytes:
    buf = BytesIO()
    img.save(buf, format="PNG", optimize=True)
    return buf.getvalue()


def png_data_uri(png_bytes: bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(png_bytes).decode("ascii")


def render_preview_png(draft: QuotationDraft, *, scale: int = 1) -> bytes:
    """
    The interactive (tilted, shadowed) preview, for showing next to the form.
    """
    return encode_png(rasterize(locate_surface(draft), scale=scale, background=STAGE_BACKGROUND))


def normalize_logo_png(image_bytes: bytes) -> bytes:
    """
    Decode any Pillow-readable image and re-encode it as PNG.

    Raises OSError when the bytes are unreadable or the image is too large to decode safely.
    """
    try:
        with Image.open(BytesIO(image_bytes)) as img:
            img.load()
            return encode_png(img.convert("RGBA"))
    except Image.DecompressionBombError as exc:
        raise OSError(f"logo image is too large: {exc}") from exc


def _px(value: float, scale: int) -> int:
    return int(round(value * scale))


@lru_cache(maxsize=64)
def _load_font(size_px: int, bold: bool) -> ImageFont.FreeTypeFont:
    name = "DejaVuSans-Bold.ttf" if bold else "DejaVuSans.ttf"
    try:
        return ImageFont.truetype(name, size_px)
    except OSError:
        # Pillow's bundled scalable font (no bold variant).
        return ImageFont.load_default(size=size_px)


class _DocumentPainter:
    """
    Lays out the document top-to-bottom.

    Without an image it only measures (returns the final height); with one it also draws. Both
    passes run the same code so the measured height always matches what gets drawn.
    """

    def __init__(self, draft: QuotationDraft, *, scale: int, image: Optional[Image.Image] = None) -> None:
        self.draft = draft
        self.scale = scale
        self.image = image
        self.draw = ImageDraw.Draw(image) if image is not None else None
        self.left = float(MARGIN_PX)
        self.right = float(PAGE_WIDTH_PX - MARGIN_PX)
        self.currency = Currency(draft.currency)

    def paint(self) -> float:
        y = float(MARGIN_PX)
        y = self._paint_header(y)
        y += 24
        self._line(self.left, y, self.right, y)
        y = self._paint_client(y + 28)
        y = self._paint_items(y + 32)
        y = self._paint_footer(y + 32)
        return max(float(MIN_PAGE_HEIGHT_PX), y + MARGIN_PX)

    # -- sections ---------------------------------------------------------

    def _paint_header(self, y: float) -> float:
        d = self.draft
        left_y = y
        left_y += self._text(self.left, left_y, "QUOTATION", size=34, bold=True)
        left_y += 6
        left_y += self._text(self.left, left_y, d.quote_number, size=14, bold=True, fill=_ACCENT)
        left_y += self._text(self.left, left_y, d.date, size=12, fill=_MUTED)

        right_y = y + self._paint_logo(self.right, y) + 8
        right_y += self._text(self.right, right_y, d.sender_name or DEFAULT_SENDER_NAME, size=18, bold=True, anchor="ra")
        for line in d.sender_address.split("\n"):
            right_y += self._text(self.right, right_y, line, size=11, fill=_MUTED, anchor="ra")
        contact = d.sender_email + (f"  |  {d.sender_phone}" if d.sender_phone else "")
        right_y += self._text(self.right, right_y, contact, size=11, fill=_MUTED, anchor="ra")
        return max(left_y, right_y)

    def _paint_logo(self, right: float, y: float) -> float:
        logo = _decode_logo(self.draft.logo_png_bytes)
        if logo is not None:
            logo.thumbnail((_px(160, self.scale), _px(48, self.scale)))
            if self.image is not None:
                self.image.paste(logo, (_px(right, self.scale) - logo.width, _px(y, self.scale)), logo)
            return logo.height / self.scale

        size = 32.0
        if self.draw is not None:
            cx, cy = right - size / 2, y + size / 2
            points = [(cx, y), (right, cy), (cx, y + size), (right - size, cy)]
            self.draw.polygon([(_px(px, self.scale), _px(py, self.scale)) for px, py in points], fill=_ACCENT)
        return size

    def _paint_client(self, y: float) -> float:
        d = self.draft
        col_w = (self.right - self.left) * 0.62
        top = y
        y += self._text(self.left, y, "PREPARED SPECIFICALLY FOR", size=10, bold=True, fill=_MUTED) + 6
        y = self._paragraph(self.left, y, d.client_name or "Valued Client", size=20, bold=True, max_width=col_w)
        y = self._paragraph(self.left, y, d.client_address or "Strategic Partner", size=12, fill=_MUTED, max_width=col_w)
        y += 6
        for label, value in (
            ("Email", d.client_email),
            ("Phone", d.client_phone),
            ("WA", d.client_whatsapp),
            ("Web", d.client_website),
        ):
            if value and value.strip():
                y = self._paragraph(self.left, y, f"{label}: {value.strip()}", size=11, max_width=col_w)

        right_y = top
        right_y += self._text(self.right, right_y, "PREFERRED CONTACT", size=10, bold=True, fill=_MUTED, anchor="ra")
        right_y += 6
        mode = ContactMode(d.preferred_contact_mode).value
        right_y += self._text(self.right, right_y, mode, size=13, bold=True, fill=_ACCENT, anchor="ra")
        return max(y, right_y)

    def _paint_items(self, y: float) -> float:
        title = f"PROPOSED SCOPE & INVESTMENT ({self.currency.value})"
        y += self._text(self.left, y, title, size=11, bold=True, fill=_MUTED) + 10
        if not self.draft.items:
            box_h = 90.0
            self._rect(self.left, y, self.right, y + box_h, outline=_RULE)
            mid_x = (self.left + self.right) / 2
            self._text(mid_x, y + box_h / 2, "Proposal Items Pending Selection", size=13, bold=True, fill=_MUTED, anchor="mm")
            return y + box_h
        for item in self.draft.items:
            y = self._paint_item(item, y) + 14
        return y

    def _paint_item(self, item: LineItem, y: float) -> float:
        pad = 16.0
        top = y
        x = self.left + pad
        inner_right = self.right - pad
        y += pad

        amount = format_money(item.total, self.currency)
        amount_w = self._text_width(amount, size=15, bold=True)
        self._text(inner_right, y, amount, size=15, bold=True, anchor="ra")
        text_w = inner_right - x - amount_w - 16
        y = self._paragraph(x, y, item.description, size=15, bold=True, max_width=text_w)
        if item.service_description:
            y = self._paragraph(x, y + 2, item.service_description, size=11, fill=_MUTED, max_width=text_w)
        rate = f"{item.quantity} units @ {format_money(item.unit_price, self.currency)}{item.billing_cycle.suffix}"
        y += 4
        y += self._text(x, y, rate, size=11, bold=True, fill=_ACCENT)

        y += 10
        gap = 20.0
        col_w = (inner_right - x - gap) / 2
        inc_y = self._bullets(x, y, "IN-SCOPE DELIVERABLES", item.includes, max_width=col_w, fill=_GOOD)
        exc_y = self._bullets(x + col_w + gap, y, "EXCLUSIONS", item.excludes, max_width=col_w, fill=_BAD)
        bottom = max(inc_y, exc_y) + pad
        self._rect(self.left, top, self.right, bottom, outline=_RULE)
        return bottom

    def _paint_footer(self, y: float) -> float:
        d = self.draft
        self._line(self.left, y, self.right, y)
        y += 24
        top = y
        stamp = 84.0
        y += self._text(self.left, y, "LEGAL & ADDITIONAL TERMS", size=10, bold=True, fill=_MUTED) + 6
        y = self._paragraph(self.left, y, d.notes, size=11, max_width=self.right - self.left - stamp - 24)

        sx = self.right - stamp
        self._ellipse(sx, top, self.right, top + stamp, outline=_ACCENT)
        self._text(sx + stamp / 2, top + stamp / 2 - 8, "OFFICIAL", size=10, bold=True, fill=_ACCENT, anchor="mm")
        self._text(sx + stamp / 2, top + stamp / 2 + 8, "PROPOSAL", size=10, bold=True, fill=_ACCENT, anchor="mm")
        y = max(y, top + stamp) + 24

        if d.client_budget and d.client_budget > 0:
            y += self._text(self.left, y, "TARGET CLIENT BUDGET", size=10, bold=True, fill=_MUTED) + 4
            y += self._text(self.left, y, format_money(d.client_budget, self.currency), size=16, bold=True)
            if budget_exceeded(d.items, d.client_budget):
                y += 4
                y += self._text(self.left, y, "Budget Adjustment Recommended", size=11, bold=True, fill=_BAD)
            y += 12

        y += self._text(self.right, y, "FINAL INVESTMENT TOTAL", size=11, bold=True, fill=_MUTED, anchor="ra") + 4
        y += self._text(self.right, y, format_money(grand_total(d.items), self.currency), size=30, bold=True, anchor="ra")
        return y

    # -- primitives -------------------------------------------------------

    def _font(self, size: float, bold: bool) -> ImageFont.FreeTypeFont:
        return _load_font(_px(size, self.scale), bold)

    def _text(
        self,
        x: float,
        y: float,
        text: str,
        *,
        size: float,
        bold: bool = False,
        fill: Tuple[int, int, int] = _INK,
        anchor: str = "la",
    ) -> float:
        """Draw one line; returns the line height in base pixels."""
        if self.draw is not None and text:
            self.draw.text(
                (_px(x, self.scale), _px(y, self.scale)),
                text,
                font=self._font(size, bold),
                fill=fill,
                anchor=anchor,
            )
        return size * LINE_SPACING

    def _text_width(self, text: str, *, size: float, bold: bool = False) -> float:
        return self._font(size, bold).getlength(text) / self.scale

    def _wrap(self, text: str, *, size: float, bold: bool, max_width: float) -> List[str]:
        lines: List[str] = []
        for paragraph in (text or "").split("\n"):
            current = ""
            for word in paragraph.split():
                candidate = f"{current} {word}" if current else word
                if self._text_width(candidate, size=size, bold=bold) <= max_width:
                    current = candidate
                    continue
                if current:
                    lines.append(current)
                # Hard-break words that are wider than the column on their own.
                while self._text_width(word, size=size, bold=bold) > max_width and len(word) > 1:
                    cut = len(word) - 1
                    while cut > 1 and self._text_width(word[:cut], size=size, bold=bold) > max_width:
                        cut -= 1
                    lines.append(word[:cut])
                    word = word[cut:]
                current = word
            lines.append(current)
        return lines

    def _paragraph(
        self,
        x: float,
        y: float,
        text: str,
        *,
        size: float,
        max_width: float,
        bold: bool = False,
        fill: Tuple[int, int, int] = _INK,
    ) -> float:
        for line in self._wrap(text, size=size, bold=bold, max_width=max_width):
            y += self._text(x, y, line, size=size, bold=bold, fill=fill)
        return y

    def _bullets(
        self,
        x: float,
        y: float,
        title: str,
        entries: Tuple[str, ...],
        *,
        max_width: float,
        fill: Tuple[int, int, int],
    ) -> float:
        y += self._text(x, y, title, size=9, bold=True, fill=fill) + 2
        indent = 12.0
        for entry in entries:
            self._text(x, y, "-", size=10, bold=True, fill=fill)
            y = self._paragraph(x + indent, y, entry, size=10, max_width=max_width - indent)
        return y

    def _line(self, x1: float, y1: float, x2: float, y2: float) -> None:
        if self.draw is not None:
            s = self.scale
            self.draw.line([(_px(x1, s), _px(y1, s)), (_px(x2, s), _px(y2, s))], fill=_RULE, width=max(1, s))

    def _rect(self, x1: float, y1: float, x2: float, y2: float, *, outline: Tuple[int, int, int]) -> None:
        if self.draw is not None:
            s = self.scale
            self.draw.rectangle([_px(x1, s), _px(y1, s), _px(x2, s), _px(y2, s)], outline=outline, width=max(1, s))

    def _ellipse(self, x1: float, y1: float, x2: float, y2: float, *, outline: Tuple[int, int, int]) -> None:
        if self.draw is not None:
            s = self.scale
            self.draw.ellipse([_px(x1, s), _px(y1, s), _px(x2, s), _px(y2, s)], outline=outline, width=2 * s)


def _decode_logo(png_bytes: Optional[bytes]) -> Optional[Image.Image]:
    if not png_bytes:
        return None
    try:
        with Image.open(BytesIO(png_bytes)) as img:
            return img.convert("RGBA")
    except OSError:
        logger.warning("Could not decode logo image; drawing the placeholder mark instead", exc_info=True)
        return None
