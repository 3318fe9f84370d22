from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Sequence

from libs.core.models import ChatMessage, ContentSuggestion, Resource


class LLMClient(ABC):
    """Abstract interface for language model interactions."""

    @abstractmethod
    def is_configured(self) -> bool:
        """Return whether credentials for the generator are present."""

    @abstractmethod
    def answer_with_resources(
        self,
        query: str,
        history: Sequence[ChatMessage],
        resources: Sequence[Resource],
    ) -> str:
        """Reply to ``query`` grounded on the shortlisted resources."""

    @abstractmethod
    def write_resource_notes(self, query: str, resources: Sequence[Resource]) -> List[str]:
        """Return one usage note per resource, positionally aligned."""

    @abstractmethod
    def suggest_metadata(self, title: str, text: str) -> ContentSuggestion:
        """Propose tags, age range, type and summary for a document."""
