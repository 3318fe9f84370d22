"""Core library exposing domain models, settings and exceptions."""

from .settings import Settings, get_settings
from .exceptions import (
    DomainError,
    NotFoundError,
    ValidationError,
    GeneratorUnavailableError,
)
from .models import Resource, Patient, ChatMessage, ContentSuggestion, RetrievalResult
from .users import BasicUser, load_users

__all__ = [
    "Settings",
    "get_settings",
    "DomainError",
    "NotFoundError",
    "ValidationError",
    "GeneratorUnavailableError",
    "Resource",
    "Patient",
    "ChatMessage",
    "ContentSuggestion",
    "RetrievalResult",
    "BasicUser",
    "load_users",
]
