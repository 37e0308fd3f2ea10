"""
File inspection helpers: format from name, PDF page count and native PDF text (pypdf).
Scanned PDFs yield little or no native text; callers fall back to OCR.
"""
from __future__ import annotations

import io
import logging
from pathlib import Path

from pypdf import PdfReader
from pypdf.errors import PdfReadError

logger = logging.getLogger(__name__)

# Minimum character count to consider PDF "text-based" (avoid treating scanned PDFs as text)
MIN_PDF_TEXT_LEN = 80
CONTENT_SAMPLE_CHARS = 4000


def file_format(file_name: str | Path | None) -> str:
    """Lowercase extension without dot ("" when absent)."""
    if not file_name:
        return ""
    return Path(str(file_name)).suffix.lower().lstrip(".")


def _reader(source: str | Path | bytes) -> PdfReader:
    if isinstance(source, (bytes, bytearray)):
        return PdfReader(io.BytesIO(bytes(source)))
    return PdfReader(str(source))


def pdf_page_count(source: str | Path | bytes) -> int | None:
    """Number of pages, or None when the PDF cannot be read."""
    try:
        return len(_reader(source).pages)
    except (PdfReadError, OSError, ValueError) as e:
        logger.debug("PDF page count failed: %s", e)
        return None


def extract_text_from_pdf(source: str | Path | bytes) -> str:
    """
    Native text from all pages (no OCR).
    Returns empty string on error or if the PDF has no extractable text (e.g. scanned image).
    """
    try:
        reader = _reader(source)
    except (PdfReadError, OSError, ValueError) as e:
        logger.debug("PDF open failed: %s", e)
        return ""
    parts: list[str] = []
    for page in reader.pages:
        try:
            text = page.extract_text()
        except (PdfReadError, ValueError, KeyError) as e:
            logger.debug("PDF page text extraction failed: %s", e)
            continue
        if text and text.strip():
            parts.append(text.strip())
    return "\n\n".join(parts).strip()


def content_sample(data: bytes | None, fmt: str) -> str:
    """Best-effort text sample for classification: PDF native text or decoded plain text."""
    if not data:
        return ""
    if fmt == "pdf":
        return extract_text_from_pdf(data)[:CONTENT_SAMPLE_CHARS]
    if fmt in ("txt", "xml", "csv"):
        return data[:CONTENT_SAMPLE_CHARS].decode("utf-8", errors="ignore")
    return ""
