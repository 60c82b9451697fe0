"""PDF text extraction and thumbnail rendering with PyMuPDF."""

import base64
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import fitz  # PyMuPDF

from litreview.errors import ParseError, ValidationError

logger = logging.getLogger(__name__)

MAX_TEXT_PAGES = 3
THUMBNAIL_ZOOM = 1.0
JPEG_QUALITY = 80
MAX_IMAGE_BYTES = 5 * 1024 * 1024
IMAGE_MAX_SIZE = (400, 300)
IMAGE_SUFFIXES = {".png", ".jpg", ".jpeg", ".gif", ".bmp", ".webp", ".tif", ".tiff"}


@dataclass
class PdfContent:
    """Text of the first pages plus a first-page preview."""

    text: str
    page_count: int
    thumbnail: Optional[str]


def to_data_url(data: bytes, mime: str) -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def from_data_url(url: str) -> tuple[bytes, str]:
    """Decode a ``data:<mime>;base64,...`` URL into (bytes, mime)."""
    header, _, payload = url.partition(",")
    if not header.startswith("data:") or ";base64" not in header:
        raise ValueError("Not a base64 data URL")
    mime = header[len("data:"):].split(";")[0] or "application/octet-stream"
    return base64.b64decode(payload), mime


def read_pdf(data: bytes, max_pages: int = MAX_TEXT_PAGES) -> PdfContent:
    """Extract text from the first *max_pages* pages and render page one.

    Raises:
        ParseError: If the bytes are not a readable PDF
    """
    try:
        doc = fitz.open(stream=data, filetype="pdf")
    except (RuntimeError, ValueError) as e:
        raise ParseError(f"PDF parsing failed: {e}") from e

    try:
        texts = []
        for page_num in range(min(doc.page_count, max_pages)):
            texts.append(doc[page_num].get_text())
        thumbnail = _render_first_page(doc)
        return PdfContent(text="\n".join(texts), page_count=doc.page_count, thumbnail=thumbnail)
    finally:
        doc.close()


def _render_first_page(doc: "fitz.Document") -> Optional[str]:
    if doc.page_count == 0:
        return None
    try:
        pix = doc[0].get_pixmap(matrix=fitz.Matrix(THUMBNAIL_ZOOM, THUMBNAIL_ZOOM), alpha=False)
        return to_data_url(pix.tobytes("jpeg", jpg_quality=JPEG_QUALITY), "image/jpeg")
    except RuntimeError as e:
        logger.warning("Thumbnail generation failed: %s", e)
        return None


def image_to_thumbnail(path: Path) -> str:
    """Load an image file, scale it into 400×300 and return a JPEG data URL.

    Raises:
        ValidationError: If the file is not an image or larger than 5 MB
    """
    path = Path(path)
    if path.suffix.lower() not in IMAGE_SUFFIXES:
        raise ValidationError(["image"], "Please select a valid image file")
    if path.stat().st_size > MAX_IMAGE_BYTES:
        raise ValidationError(["image"], "Image file too large, please select an image smaller than 5MB")

    try:
        pix = fitz.Pixmap(str(path))
    except (RuntimeError, ValueError) as e:
        raise ValidationError(["image"], f"Image load failed: {e}") from e

    if pix.alpha:
        pix = fitz.Pixmap(pix, 0)
    if pix.colorspace and pix.colorspace.n not in (1, 3):
        pix = fitz.Pixmap(fitz.csRGB, pix)

    max_w, max_h = IMAGE_MAX_SIZE
    if pix.width > max_w or pix.height > max_h:
        ratio = min(max_w / pix.width, max_h / pix.height)
        pix = fitz.Pixmap(pix, max(1, int(pix.width * ratio)), max(1, int(pix.height * ratio)), None)

    return to_data_url(pix.tobytes("jpeg", jpg_quality=JPEG_QUALITY), "image/jpeg")
