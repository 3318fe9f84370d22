"""Plain-text extraction from uploaded PDF and Word documents."""

from __future__ import annotations

import io
import logging

import pymupdf
from docx import Document

logger = logging.getLogger(__name__)


class ExtractionError(Exception):
    """Raised when a document cannot be parsed."""


def extract_pdf_text(data: bytes) -> str:
    with pymupdf.open(stream=data, filetype="pdf") as doc:
        logger.debug("PDF has %d pages, extracting text", len(doc))
        return "\n".join(page.get_text() for page in doc)


def extract_docx_text(data: bytes) -> str:
    document = Document(io.BytesIO(data))
    return "\n".join(p.text for p in document.paragraphs if p.text)


def extract_text(mime_type: str | None, data: bytes) -> str:
    """Return the plain text of a document, or ``""`` for unsupported types.

    The MIME type is matched loosely: anything mentioning ``pdf`` is read as
    PDF, anything mentioning ``word`` or ``docx`` as a Word document.
    """
    mime = (mime_type or "").lower()
    try:
        if "pdf" in mime:
            text = extract_pdf_text(data)
        elif "word" in mime or "docx" in mime:
            text = extract_docx_text(data)
        else:
            return ""
    except Exception as exc:
        raise ExtractionError(f"Failed to extract text from {mime or 'document'}: {exc}") from exc
    logger.debug("Extracted %d chars from %s", len(text), mime)
    return text


__all__ = ["ExtractionError", "extract_text", "extract_pdf_text", "extract_docx_text"]
