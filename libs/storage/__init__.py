"""Blob storage for uploaded documents."""

from .file_storage import FileStorage, StoredFile

__all__ = ["FileStorage", "StoredFile"]
