"""
Single-page extraction from the in-flight PDF (email attachments).
"""

from __future__ import annotations

import base64
import binascii
import io

from pypdf import PdfReader, PdfWriter
from pypdf.errors import PdfReadError

from app.core.logging import get_logger
from app.workflow.errors import PdfPageError

logger = get_logger(__name__)

_DATA_URL_PREFIX = "base64,"


def decode_pdf_base64(pdf_base64: str) -> bytes:
    """Decode base64 PDF content, tolerating a ``data:...;base64,`` prefix."""
    if pdf_base64.startswith("data:") and _DATA_URL_PREFIX in pdf_base64:
        pdf_base64 = pdf_base64.split(_DATA_URL_PREFIX, 1)[1]
    return base64.b64decode(pdf_base64)


def extract_page(pdf_base64: str, page_number: int) -> str:
    """
    Return a one-page PDF (base64) holding page ``page_number`` (1-based).

    Raises:
        PdfPageError: The content is not a readable PDF or the page is out of range.
    """
    try:
        reader = PdfReader(io.BytesIO(decode_pdf_base64(pdf_base64)))
        total_pages = len(reader.pages)
    except (binascii.Error, ValueError, PdfReadError) as exc:
        raise PdfPageError(f"Failed to read PDF: {exc}") from exc

    if page_number < 1 or page_number > total_pages:
        raise PdfPageError(
            f"Invalid page number {page_number}. PDF has {total_pages} page(s). "
            f"Page number must be between 1 and {total_pages}."
        )

    writer = PdfWriter()
    writer.add_page(reader.pages[page_number - 1])
    buffer = io.BytesIO()
    writer.write(buffer)

    logger.info("Extracted single PDF page", page=page_number, total_pages=total_pages, size=buffer.tell())
    return base64.b64encode(buffer.getvalue()).decode("ascii")
