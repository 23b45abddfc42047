"""
PDF helpers: searchable text extraction and signature sealing.

Sealing renders one reportlab overlay per page (audit footer plus any
signatures placed on that page) and merges it onto the original page with
pypdf. Field coordinates arrive top-left based, in PDF points.
"""
from __future__ import annotations

import base64
import binascii
import io
import logging
import secrets
import string
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from PIL import Image, UnidentifiedImageError
from pypdf import PdfReader, PdfWriter
from pypdf.errors import PdfReadError
from reportlab.lib.utils import ImageReader
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"
TEXT_MIME_PREFIXES = ("text/",)
PNG_DATA_URL_PREFIX = "data:image/png;base64,"

FOOTER_FONT = "Helvetica"
FOOTER_SIZE = 8
FOOTER_Y = 20
FOOTER_GRAY = 0.5
TYPED_FONT = "Times-Italic"
TYPED_MAX_SIZE = 24
CAPTION_MIN_FIELD_HEIGHT = 40

_BASE36 = string.digits + string.ascii_lowercase


class PdfSealError(Exception):
    """The source document could not be parsed as a PDF."""


@dataclass
class SignatureStamp:
    """One collected value to render onto the page."""
    page_number: int
    x: float
    y: float
    width: float
    height: float
    field_type: str
    signature_type: str
    data: str
    signed_at: Optional[datetime] = None


def extract_text(content: bytes, mime_type: Optional[str]) -> Optional[str]:
    """Return searchable text for PDFs and plain-text uploads, None otherwise."""
    if mime_type == PDF_MIME_TYPE:
        try:
            reader = PdfReader(io.BytesIO(content))
            chunks = [page.extract_text() or "" for page in reader.pages]
        except (PdfReadError, ValueError) as exc:
            logger.warning("PDF text extraction failed: %s", exc)
            return None
        text = "\n".join(chunk for chunk in chunks if chunk).strip()
        return text or None
    if mime_type and mime_type.startswith(TEXT_MIME_PREFIXES):
        return content.decode("utf-8", errors="replace").strip() or None
    return None


def _base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_audit_id() -> str:
    """Return an id like ``AUD-LZ3K9Q1X-4F7A2B``."""
    timestamp = _base36(int(time.time() * 1000))
    random_part = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"AUD-{timestamp}-{random_part}".upper()


def footer_text(audit_id: str, page_index: int, page_count: int) -> str:
    return f"Document ID: {audit_id} | Page {page_index + 1} of {page_count}"


def decode_png(data: str) -> Optional[Image.Image]:
    payload = data[len(PNG_DATA_URL_PREFIX):] if data.startswith(PNG_DATA_URL_PREFIX) else data
    try:
        raw = base64.b64decode(payload, validate=True)
        image = Image.open(io.BytesIO(raw))
        image.load()
    except (binascii.Error, ValueError, UnidentifiedImageError, OSError):
        return None
    return image.convert("RGBA")


def _stamp_text(stamp: SignatureStamp) -> str:
    if stamp.field_type == "checkbox":
        return "X" if stamp.data.strip().lower() not in ("", "false", "0", "no", "off") else ""
    return stamp.data


def _draw_stamp(c: canvas.Canvas, stamp: SignatureStamp, page_height: float) -> None:
    pdf_y = page_height - stamp.y - stamp.height

    drawn = False
    if stamp.signature_type in ("drawn", "uploaded"):
        image = decode_png(stamp.data)
        if image is not None:
            c.drawImage(ImageReader(image), stamp.x, pdf_y, width=stamp.width,
                        height=stamp.height, mask="auto", preserveAspectRatio=True)
            drawn = True
        else:
            logger.warning("Could not decode signature image on page %s; rendering as text", stamp.page_number)
            c.setFillGray(0)
            c.setFont(FOOTER_FONT, 12)
            c.drawString(stamp.x, pdf_y + stamp.height / 2, stamp.data[:50])
            drawn = True

    if not drawn:
        text = _stamp_text(stamp)
        if text:
            size = min(stamp.height * 0.6, TYPED_MAX_SIZE)
            c.setFillGray(0)
            c.setFont(TYPED_FONT, size)
            c.drawString(stamp.x + 5, pdf_y + stamp.height / 2 - size / 3, text)

    if stamp.signed_at is not None and stamp.height > CAPTION_MIN_FIELD_HEIGHT:
        c.setFillGray(FOOTER_GRAY)
        c.setFont(FOOTER_FONT, FOOTER_SIZE)
        c.drawString(stamp.x, pdf_y - 12, f"Signed: {stamp.signed_at.strftime('%b %d, %Y')}")


def _render_overlay(width: float, height: float, footer: str, stamps: Iterable[SignatureStamp]) -> bytes:
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=(width, height))

    c.setFillGray(FOOTER_GRAY)
    c.setFont(FOOTER_FONT, FOOTER_SIZE)
    footer_width = stringWidth(footer, FOOTER_FONT, FOOTER_SIZE)
    c.drawString((width - footer_width) / 2, FOOTER_Y, footer)

    for stamp in stamps:
        _draw_stamp(c, stamp, height)

    c.showPage()
    c.save()
    return buf.getvalue()


def seal_pdf(pdf_bytes: bytes, stamps: List[SignatureStamp], audit_id: str) -> bytes:
    """
    Stamp every page with the audit footer and render each signature.

    Stamps that point at a page outside the document are skipped with a
    warning. Raises `PdfSealError` when the input is not a readable PDF.
    """
    try:
        reader = PdfReader(io.BytesIO(pdf_bytes))
        pages = list(reader.pages)
    except (PdfReadError, ValueError) as exc:
        raise PdfSealError(f"Unable to read PDF: {exc}") from exc

    page_count = len(pages)
    by_page: Dict[int, List[SignatureStamp]] = {}
    for stamp in stamps:
        if stamp.page_number < 1 or stamp.page_number > page_count:
            logger.warning("Skipping signature on invalid page %s (document has %s pages)",
                           stamp.page_number, page_count)
            continue
        by_page.setdefault(stamp.page_number - 1, []).append(stamp)

    writer = PdfWriter()
    for index, page in enumerate(pages):
        width = float(page.mediabox.width)
        height = float(page.mediabox.height)
        overlay = _render_overlay(width, height, footer_text(audit_id, index, page_count), by_page.get(index, []))
        page.merge_page(PdfReader(io.BytesIO(overlay)).pages[0])
        writer.add_page(page)

    out = io.BytesIO()
    writer.write(out)
    return out.getvalue()
