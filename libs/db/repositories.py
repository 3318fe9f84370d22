"""Repository classes for CRUD operations on ORM models."""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from libs.core import models as domain
from . import models


def resource_from_row(row: models.Resource) -> domain.Resource:
    """Detach an ORM row into the domain model used by retrieval."""
    return domain.Resource(
        id=row.id,
        title=row.title,
        description=row.description,
        url=row.url,
        file_id=row.file_id,
        tags=list(row.tags or []),
        age_range=row.age_range,
        type=row.type,
        uploaded_by=row.uploaded_by,
        created_at=row.created_at,
        extracted_text=row.extracted_text,
        owner_id=row.owner_id,
        owner_email=row.owner_email,
        patient_ids=list(row.patient_ids or []),
    )


def patient_from_row(row: models.Patient) -> domain.Patient:
    return domain.Patient(
        id=row.id,
        name=row.name,
        notes=row.notes,
        owner_id=row.owner_id,
        owner_email=row.owner_email,
        created_at=row.created_at,
    )


class ResourceRepo:
    """CRUD operations for :class:`models.Resource`, scoped by owner."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(self, title: str, description: str, **fields) -> models.Resource:
        resource = models.Resource(title=title, description=description, **fields)
        self.session.add(resource)
        await self.session.flush()
        return resource

    async def get(self, resource_id: str, owner_id: str) -> Optional[models.Resource]:
        stmt = select(models.Resource).where(
            models.Resource.id == resource_id, models.Resource.owner_id == owner_id
        )
        res = await self.session.execute(stmt)
        return res.scalar_one_or_none()

    async def list_recent(self, owner_id: str, limit: int) -> List[models.Resource]:
        """Newest first, at most ``limit`` rows."""
        stmt = (
            select(models.Resource)
            .where(models.Resource.owner_id == owner_id)
            .order_by(models.Resource.created_at.desc())
            .limit(limit)
        )
        res = await self.session.execute(stmt)
        return list(res.scalars().all())

    async def find_by_file(self, file_id: str, owner_id: str) -> Optional[models.Resource]:
        stmt = select(models.Resource).where(
            models.Resource.file_id == file_id, models.Resource.owner_id == owner_id
        )
        res = await self.session.execute(stmt)
        return res.scalars().first()

    async def update(self, resource: models.Resource, **fields) -> models.Resource:
        for key, value in fields.items():
            setattr(resource, key, value)
        await self.session.flush()
        return resource

    async def delete(self, resource: models.Resource) -> None:
        await self.session.delete(resource)
        await self.session.flush()

    async def pull_patient(self, owner_id: str, patient_id: str) -> int:
        """Remove ``patient_id`` from every resource of the owner."""
        stmt = select(models.Resource).where(
            models.Resource.owner_id == owner_id,
            models.Resource.patient_ids.any(patient_id),
        )
        res = await self.session.execute(stmt)
        rows = list(res.scalars().all())
        for row in rows:
            row.patient_ids = [p for p in row.patient_ids if p != patient_id]
        await self.session.flush()
        return len(rows)


class PatientRepo:
    """CRUD operations for :class:`models.Patient`, scoped by owner."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(self, name: str, **fields) -> models.Patient:
        patient = models.Patient(name=name, **fields)
        self.session.add(patient)
        await self.session.flush()
        return patient

    async def get(self, patient_id: str, owner_id: str) -> Optional[models.Patient]:
        stmt = select(models.Patient).where(
            models.Patient.id == patient_id, models.Patient.owner_id == owner_id
        )
        res = await self.session.execute(stmt)
        return res.scalar_one_or_none()

    async def list_recent(self, owner_id: str, limit: int) -> List[models.Patient]:
        stmt = (
            select(models.Patient)
            .where(models.Patient.owner_id == owner_id)
            .order_by(models.Patient.created_at.desc())
            .limit(limit)
        )
        res = await self.session.execute(stmt)
        return list(res.scalars().all())

    async def delete(self, patient: models.Patient) -> None:
        await self.session.delete(patient)
        await self.session.flush()


__all__ = ["ResourceRepo", "PatientRepo", "resource_from_row", "patient_from_row"]
