"""Pydantic models representing core domain entities."""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    """Accept both snake_case names and the camelCase aliases used on the wire."""

    model_config = ConfigDict(populate_by_name=True)


class Resource(_CamelModel):
    """A library item: a link or an uploaded document with searchable metadata."""

    id: Optional[str] = None
    title: str
    description: str
    url: Optional[str] = None
    file_id: Optional[str] = Field(default=None, alias="fileId")
    tags: List[str] = Field(default_factory=list)
    age_range: Optional[str] = Field(default=None, alias="ageRange")
    type: Optional[str] = None
    uploaded_by: Optional[str] = Field(default=None, alias="uploadedBy")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    extracted_text: Optional[str] = Field(default=None, alias="extractedText")
    # Per-turn usage note; never persisted.
    insight: Optional[str] = None
    owner_id: Optional[str] = Field(default=None, alias="ownerId")
    owner_email: Optional[str] = Field(default=None, alias="ownerEmail")
    patient_ids: List[str] = Field(default_factory=list, alias="patientIds")


class Patient(_CamelModel):
    """A client of the clinician that resources can be assigned to."""

    id: Optional[str] = None
    name: str
    notes: Optional[str] = None
    owner_id: Optional[str] = Field(default=None, alias="ownerId")
    owner_email: Optional[str] = Field(default=None, alias="ownerEmail")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")


class ChatMessage(BaseModel):
    """Single turn of a chat history."""

    role: Literal["user", "assistant", "system"]
    content: str


class ContentSuggestion(_CamelModel):
    """Metadata proposed by the text generator for an uploaded document."""

    tags: List[str] = Field(default_factory=list)
    age_range: Optional[str] = Field(default=None, alias="ageRange")
    type: Optional[str] = None
    summary: Optional[str] = None


class RetrievalResult(_CamelModel):
    """Shortlist produced for a query, optionally annotated with insights."""

    shortlist: List[Resource] = Field(default_factory=list)
    ranking_empty: bool = Field(default=True, alias="rankingEmpty")


__all__ = [
    "Resource",
    "Patient",
    "ChatMessage",
    "ContentSuggestion",
    "RetrievalResult",
]
