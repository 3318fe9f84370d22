import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

# Ensure project root on sys.path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from apps.api.main import (  # noqa: E402
    app,
    current_user,
    get_llm_client,
    get_patient_repo,
    get_resource_repo,
    get_storage,
)
from libs.core import BasicUser, ContentSuggestion  # noqa: E402
from libs.db import PatientRepo, ResourceRepo, models  # noqa: E402
from libs.llm import LLMClient  # noqa: E402
from libs.storage import FileStorage  # noqa: E402

OWNER = BasicUser("therapist", "speech123", "therapist@example.com")
_BASE_TIME = datetime(2024, 5, 1, tzinfo=timezone.utc)


def make_row(age: int = 0, **fields) -> models.Resource:
    """ORM resource as the repository would return it; larger ``age`` is older."""
    fields.setdefault("id", str(uuid4()))
    fields.setdefault("description", "")
    fields.setdefault("tags", [])
    fields.setdefault("patient_ids", [])
    fields.setdefault("owner_id", OWNER.username)
    fields.setdefault("created_at", _BASE_TIME - timedelta(days=age))
    return models.Resource(**fields)


def _apply_update(row, **fields):
    for key, value in fields.items():
        setattr(row, key, value)
    return row


@pytest.fixture()
def owner() -> BasicUser:
    return OWNER


@pytest.fixture()
def resource_repo() -> AsyncMock:
    repo = AsyncMock(spec=ResourceRepo)
    repo.create.side_effect = lambda **kw: make_row(**kw)
    repo.update.side_effect = _apply_update
    repo.list_recent.return_value = []
    repo.get.return_value = None
    repo.find_by_file.return_value = None
    return repo


@pytest.fixture()
def patient_repo() -> AsyncMock:
    repo = AsyncMock(spec=PatientRepo)
    repo.create.side_effect = lambda **kw: models.Patient(
        id=str(uuid4()), created_at=_BASE_TIME, **kw
    )
    repo.list_recent.return_value = []
    repo.get.return_value = None
    return repo


@pytest.fixture()
def llm() -> MagicMock:
    client = MagicMock(spec=LLMClient)
    client.is_configured.return_value = True
    client.answer_with_resources.return_value = "Try the drill cards."
    client.suggest_metadata.return_value = ContentSuggestion()
    client.write_resource_notes.side_effect = lambda query, resources: [
        f"note {i}" for i, _ in enumerate(resources, start=1)
    ]
    return client


@pytest.fixture()
def storage(tmp_path) -> FileStorage:
    return FileStorage(tmp_path / "uploads")


@pytest.fixture()
def client(resource_repo, patient_repo, llm, storage):
    """FastAPI test client with dependencies overridden."""

    app.dependency_overrides[get_resource_repo] = lambda: resource_repo
    app.dependency_overrides[get_patient_repo] = lambda: patient_repo
    app.dependency_overrides[get_llm_client] = lambda: llm
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[current_user] = lambda: OWNER

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
