"""Database utilities for the resource library."""

from . import models
from .database import get_session, init_db
from .repositories import PatientRepo, ResourceRepo, patient_from_row, resource_from_row

__all__ = [
    "models",
    "get_session",
    "init_db",
    "ResourceRepo",
    "PatientRepo",
    "resource_from_row",
    "patient_from_row",
]
