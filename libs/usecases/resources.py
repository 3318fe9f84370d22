from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Union

from libs.core.exceptions import NotFoundError, ValidationError
from libs.core.models import Patient, Resource
from libs.core.users import BasicUser
from libs.db import PatientRepo, ResourceRepo, patient_from_row, resource_from_row
from libs.rag import derive_letter_tags, merge_tags, tokenize
from libs.storage import FileStorage

logger = logging.getLogger(__name__)

MAX_TITLE_TAG_LEN = 10

TagsInput = Union[List[str], str, None]


def title_tags(title: str) -> List[str]:
    """Fallback tags for a resource created without any: its short title words."""
    return [tok for tok in tokenize(title) if len(tok) <= MAX_TITLE_TAG_LEN]


def parse_tags(tags: TagsInput) -> List[str]:
    """Accept a list of tags or a comma-separated string."""
    if isinstance(tags, list):
        return [str(t) for t in tags if str(t)]
    if isinstance(tags, str):
        return [t.strip() for t in tags.split(",") if t.strip()]
    return []


def _string_ids(items: Iterable[object]) -> List[str]:
    return [p for p in items if isinstance(p, str)]


class ManageResources:
    """Create, edit, assign and delete library resources of one owner."""

    def __init__(
        self,
        repo: ResourceRepo,
        storage: FileStorage,
        library_limit: int = 200,
    ) -> None:
        self.repo = repo
        self.storage = storage
        self.library_limit = library_limit

    async def list(self, owner: BasicUser) -> List[Resource]:
        rows = await self.repo.list_recent(owner.username, self.library_limit)
        return [resource_from_row(r) for r in rows]

    async def create(
        self,
        owner: BasicUser,
        *,
        title: Optional[str],
        description: Optional[str],
        url: Optional[str] = None,
        tags: TagsInput = None,
        age_range: Optional[str] = None,
        type: Optional[str] = None,
        uploaded_by: Optional[str] = None,
        file_id: Optional[str] = None,
        extracted_text: Optional[str] = None,
    ) -> Resource:
        if not title or not title.strip() or not description or not description.strip():
            raise ValidationError("Title and description are required.")

        provided = parse_tags(tags)
        base_tags = provided if provided else title_tags(title)
        row = await self.repo.create(
            title=title,
            description=description,
            url=url,
            file_id=file_id,
            tags=merge_tags(base_tags, derive_letter_tags(title)),
            age_range=age_range,
            type=type,
            uploaded_by=uploaded_by or owner.email,
            owner_id=owner.username,
            owner_email=owner.email,
            patient_ids=[],
            extracted_text=extracted_text,
        )
        logger.info("resource_created", extra={"resource_id": row.id, "owner": owner.username})
        return resource_from_row(row)

    async def update(
        self,
        owner: BasicUser,
        resource_id: str,
        *,
        title: Optional[str] = None,
        description: Optional[str] = None,
        url: Optional[str] = None,
        tags: TagsInput = None,
        age_range: Optional[str] = None,
        type: Optional[str] = None,
        uploaded_by: Optional[str] = None,
        file_id: Optional[str] = None,
        patient_ids: Optional[list] = None,
    ) -> Resource:
        """Replace the supplied fields; ``None`` keeps the stored value."""
        row = await self._get(owner, resource_id)

        new_title = title if title is not None else row.title
        supplied_tags = parse_tags(tags)
        base_tags = supplied_tags if supplied_tags else list(row.tags or [])
        row = await self.repo.update(
            row,
            title=new_title,
            description=description if description is not None else row.description,
            url=url if url is not None else row.url,
            file_id=file_id if file_id is not None else row.file_id,
            tags=merge_tags(base_tags, derive_letter_tags(title or row.title)),
            age_range=age_range if age_range is not None else row.age_range,
            type=type if type is not None else row.type,
            uploaded_by=uploaded_by or row.uploaded_by or owner.email,
            patient_ids=(
                _string_ids(patient_ids)
                if isinstance(patient_ids, list)
                else list(row.patient_ids or [])
            ),
        )
        return resource_from_row(row)

    async def assign_patients(
        self, owner: BasicUser, resource_id: str, patient_ids: list
    ) -> Resource:
        if not isinstance(patient_ids, list):
            raise ValidationError("patientIds must be an array")
        row = await self._get(owner, resource_id)
        row = await self.repo.update(row, patient_ids=_string_ids(patient_ids))
        return resource_from_row(row)

    async def delete(self, owner: BasicUser, resource_id: str) -> None:
        row = await self._get(owner, resource_id)
        file_id = row.file_id
        await self.repo.delete(row)
        if not file_id:
            return
        try:
            self.storage.delete(file_id)
        except OSError:
            # the record is gone already; an orphaned blob is acceptable
            logger.exception("Failed to delete file %s", file_id)

    async def _get(self, owner: BasicUser, resource_id: str):
        row = await self.repo.get(resource_id, owner.username)
        if row is None:
            raise NotFoundError("Resource not found")
        return row


class ManagePatients:
    """Patients of one owner, and their removal from assigned resources."""

    def __init__(
        self, repo: PatientRepo, resources: ResourceRepo, limit: int = 200
    ) -> None:
        self.repo = repo
        self.resources = resources
        self.limit = limit

    async def list(self, owner: BasicUser) -> List[Patient]:
        rows = await self.repo.list_recent(owner.username, self.limit)
        return [patient_from_row(r) for r in rows]

    async def create(
        self, owner: BasicUser, name: Optional[str], notes: Optional[str] = None
    ) -> Patient:
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Name is required")
        row = await self.repo.create(
            name=name.strip(),
            notes=notes.strip() if isinstance(notes, str) else None,
            owner_id=owner.username,
            owner_email=owner.email,
        )
        return patient_from_row(row)

    async def delete(self, owner: BasicUser, patient_id: str) -> None:
        row = await self.repo.get(patient_id, owner.username)
        if row is None:
            raise NotFoundError("Patient not found")
        await self.repo.delete(row)
        await self.resources.pull_patient(owner.username, patient_id)


__all__ = ["ManageResources", "ManagePatients", "title_tags", "parse_tags"]
