from __future__ import annotations

import logging
from typing import Any, Dict

from libs.core.exceptions import ValidationError
from libs.core.models import ContentSuggestion
from libs.extract import extract_text
from libs.llm import LLMClient
from libs.storage import FileStorage

logger = logging.getLogger(__name__)


def display_type(mime_type: str) -> str:
    if "pdf" in mime_type:
        return "PDF"
    if "word" in mime_type:
        return "DOCX"
    return mime_type or "Document"


class UploadFile:
    """Store an uploaded document, then try to read it and suggest metadata.

    Extraction and suggestion are optional enrichments: when either fails
    the file is still stored and the caller gets empty defaults.
    """

    def __init__(self, llm: LLMClient, storage: FileStorage) -> None:
        self.llm = llm
        self.storage = storage

    def __call__(self, filename: str, mime_type: str, data: bytes) -> Dict[str, Any]:
        if not data:
            raise ValidationError("No file provided.")
        mime_type = mime_type or ""

        file_id = self.storage.save(filename, mime_type, data)

        extracted = ""
        suggested = ContentSuggestion()
        try:
            extracted = extract_text(mime_type, data)
            suggested = self.llm.suggest_metadata(filename, extracted)
        except Exception:
            logger.exception(
                "Content extraction/suggestion failed",
                extra={"file_id": file_id, "mimetype": mime_type},
            )

        return {
            "filename": filename,
            "mimetype": mime_type,
            "fileId": file_id,
            "url": f"/api/files/{file_id}",
            "type": display_type(mime_type),
            "extractedText": extracted,
            "suggested": suggested.model_dump(by_alias=True),
        }


__all__ = ["UploadFile", "display_type"]
