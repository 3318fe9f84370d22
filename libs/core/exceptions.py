"""Base exceptions for the domain layer."""

from __future__ import annotations


class DomainError(Exception):
    """Base class for all domain level exceptions."""


class NotFoundError(DomainError):
    """Raised when an entity cannot be located."""


class ValidationError(DomainError):
    """Raised when data fails domain validation rules."""


class GeneratorUnavailableError(DomainError):
    """Raised when the text generator is required but not configured."""


__all__ = [
    "DomainError",
    "NotFoundError",
    "ValidationError",
    "GeneratorUnavailableError",
]
