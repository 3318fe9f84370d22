"""Document text extraction."""

from .text_extractor import ExtractionError, extract_text

__all__ = ["ExtractionError", "extract_text"]
