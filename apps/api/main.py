from __future__ import annotations

import hmac
import logging
from functools import lru_cache
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple, Union
from uuid import UUID

from fastapi import Depends, FastAPI, File, HTTPException, Response, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import FileResponse, JSONResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from libs.core import (
    BasicUser,
    ChatMessage,
    GeneratorUnavailableError,
    NotFoundError,
    ValidationError,
    get_settings,
    load_users,
)
from libs.db import PatientRepo, ResourceRepo, get_session
from libs.llm import LLMClient, ReplicateLLMClient
from libs.logging import setup_logging
from libs.storage import FileStorage
from libs.usecases import FALLBACK_REPLY, Chat, ManagePatients, ManageResources
from libs.usecases import UploadFile as UploadFileUC

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Dependency factories


def get_storage() -> FileStorage:
    return FileStorage(get_settings().uploads_dir)


@lru_cache
def get_llm_client() -> LLMClient:
    return ReplicateLLMClient()


@lru_cache
def get_users() -> Tuple[BasicUser, ...]:
    return load_users(get_settings())


async def db_session() -> AsyncIterator[AsyncSession]:
    async with get_session() as session:
        yield session


def get_resource_repo(session: AsyncSession = Depends(db_session)) -> ResourceRepo:
    return ResourceRepo(session)


def get_patient_repo(session: AsyncSession = Depends(db_session)) -> PatientRepo:
    return PatientRepo(session)


security = HTTPBasic(auto_error=False)


def current_user(
    credentials: Optional[HTTPBasicCredentials] = Depends(security),
    users: Tuple[BasicUser, ...] = Depends(get_users),
) -> BasicUser:
    """Resolve HTTP Basic credentials against the configured users."""
    if credentials is None:
        raise HTTPException(
            status.HTTP_401_UNAUTHORIZED,
            detail="Missing auth",
            headers={"WWW-Authenticate": "Basic"},
        )
    for user in users:
        name_ok = hmac.compare_digest(credentials.username.encode(), user.username.encode())
        pass_ok = hmac.compare_digest(credentials.password.encode(), user.password.encode())
        if name_ok and pass_ok:
            return user
    raise HTTPException(
        status.HTTP_401_UNAUTHORIZED,
        detail="Invalid credentials",
        headers={"WWW-Authenticate": "Basic"},
    )


def _check_id(value: str, kind: str) -> str:
    try:
        UUID(value)
    except ValueError:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=f"Invalid {kind} id")
    return value


# ---------------------------------------------------------------------------
# Pydantic schemas


class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class PatientCreateRequest(_Request):
    name: Optional[str] = None
    notes: Optional[str] = None


class ResourceCreateRequest(_Request):
    title: Optional[str] = None
    description: Optional[str] = None
    url: Optional[str] = None
    tags: Union[List[str], str, None] = None
    age_range: Optional[str] = Field(default=None, alias="ageRange")
    type: Optional[str] = None
    uploaded_by: Optional[str] = Field(default=None, alias="uploadedBy")
    file_id: Optional[str] = Field(default=None, alias="fileId")
    extracted_text: Optional[str] = Field(default=None, alias="extractedText")


class ResourceUpdateRequest(_Request):
    title: Optional[str] = None
    description: Optional[str] = None
    url: Optional[str] = None
    tags: Union[List[str], str, None] = None
    age_range: Optional[str] = Field(default=None, alias="ageRange")
    type: Optional[str] = None
    uploaded_by: Optional[str] = Field(default=None, alias="uploadedBy")
    file_id: Optional[str] = Field(default=None, alias="fileId")
    patient_ids: Optional[List[Any]] = Field(default=None, alias="patientIds")


class PatientAssignRequest(_Request):
    patient_ids: Any = Field(default_factory=list, alias="patientIds")


class ChatRequest(BaseModel):
    message: Optional[str] = None
    history: List[ChatMessage] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# FastAPI application

setup_logging()
app = FastAPI(title="SpeechPath Library API")


# Factory dependencies for use cases -------------------------------------------------


def resources_uc(
    repo: ResourceRepo = Depends(get_resource_repo),
    storage: FileStorage = Depends(get_storage),
) -> ManageResources:
    return ManageResources(repo, storage, get_settings().library_limit)


def patients_uc(
    repo: PatientRepo = Depends(get_patient_repo),
    resources: ResourceRepo = Depends(get_resource_repo),
) -> ManagePatients:
    return ManagePatients(repo, resources, get_settings().library_limit)


def upload_file_uc(
    llm: LLMClient = Depends(get_llm_client),
    storage: FileStorage = Depends(get_storage),
) -> UploadFileUC:
    return UploadFileUC(llm, storage)


def chat_uc(
    llm: LLMClient = Depends(get_llm_client),
    repo: ResourceRepo = Depends(get_resource_repo),
) -> Chat:
    return Chat(llm, repo, get_settings().library_limit)


def _dump(model: BaseModel) -> Dict[str, Any]:
    return model.model_dump(by_alias=True, mode="json")


# Routes ---------------------------------------------------------------------


@app.get("/health")
def health() -> Dict[str, Any]:
    return {"ok": True, "message": "Server healthy"}


@app.get("/api/patients")
async def list_patients(
    uc: ManagePatients = Depends(patients_uc),
    user: BasicUser = Depends(current_user),
) -> Dict[str, Any]:
    return {"data": [_dump(p) for p in await uc.list(user)]}


@app.post("/api/patients", status_code=status.HTTP_201_CREATED)
async def create_patient(
    req: PatientCreateRequest,
    uc: ManagePatients = Depends(patients_uc),
    user: BasicUser = Depends(current_user),
) -> Dict[str, Any]:
    try:
        patient = await uc.create(user, req.name, req.notes)
    except ValidationError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return {"data": _dump(patient)}


@app.delete("/api/patients/{patient_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_patient(
    patient_id: str,
    uc: ManagePatients = Depends(patients_uc),
    user: BasicUser = Depends(current_user),
) -> Response:
    _check_id(patient_id, "patient")
    try:
        await uc.delete(user, patient_id)
    except NotFoundError as exc:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail=str(exc))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.get("/api/resources")
async def list_resources(
    uc: ManageResources = Depends(resources_uc),
    user: BasicUser = Depends(current_user),
) -> Dict[str, Any]:
    return {"data": [_dump(r) for r in await uc.list(user)]}


@app.post("/api/upload", status_code=status.HTTP_201_CREATED)
async def create_resource(
    req: ResourceCreateRequest,
    uc: ManageResources = Depends(resources_uc),
    user: BasicUser = Depends(current_user),
) -> Dict[str, Any]:
    try:
        resource = await uc.create(user, **req.model_dump())
    except ValidationError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return {"data": _dump(resource)}


@app.put("/api/resources/{resource_id}")
async def update_resource(
    resource_id: str,
    req: ResourceUpdateRequest,
    uc: ManageResources = Depends(resources_uc),
    user: BasicUser = Depends(current_user),
) -> Dict[str, Any]:
    _check_id(resource_id, "resource")
    try:
        resource = await uc.update(user, resource_id, **req.model_dump())
    except NotFoundError as exc:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail=str(exc))
    return {"data": _dump(resource)}


@app.put("/api/resources/{resource_id}/patients")
async def assign_patients(
    resource_id: str,
    req: PatientAssignRequest,
    uc: ManageResources = Depends(resources_uc),
    user: BasicUser = Depends(current_user),
) -> Dict[str, Any]:
    _check_id(resource_id, "resource")
    try:
        resource = await uc.assign_patients(user, resource_id, req.patient_ids)
    except ValidationError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except NotFoundError as exc:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail=str(exc))
    return {"data": _dump(resource)}


@app.delete("/api/resources/{resource_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_resource(
    resource_id: str,
    uc: ManageResources = Depends(resources_uc),
    user: BasicUser = Depends(current_user),
) -> Response:
    _check_id(resource_id, "resource")
    try:
        await uc.delete(user, resource_id)
    except NotFoundError as exc:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail=str(exc))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.post("/api/upload-file")
async def upload_file(
    file: Optional[UploadFile] = File(None),
    uc: UploadFileUC = Depends(upload_file_uc),
    user: BasicUser = Depends(current_user),
) -> Dict[str, Any]:
    if file is None:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="No file provided.")
    data = await file.read()
    if len(data) > get_settings().max_upload_bytes:
        raise HTTPException(
            status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="File too large."
        )
    try:
        return await run_in_threadpool(
            uc, file.filename or "upload", file.content_type or "", data
        )
    except ValidationError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except OSError as exc:
        logger.exception("Upload file error")
        raise HTTPException(
            status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to process file."
        ) from exc


@app.get("/api/files/{file_id}")
async def download_file(
    file_id: str,
    repo: ResourceRepo = Depends(get_resource_repo),
    storage: FileStorage = Depends(get_storage),
    user: BasicUser = Depends(current_user),
) -> FileResponse:
    _check_id(file_id, "file")
    owned = await repo.find_by_file(file_id, user.username)
    if owned is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="File not found")
    try:
        stored = storage.open(file_id)
    except FileNotFoundError:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="File not found")
    return FileResponse(stored.path, media_type=stored.content_type, filename=stored.filename)


@app.post("/api/chat")
async def chat(
    req: ChatRequest,
    uc: Chat = Depends(chat_uc),
    user: BasicUser = Depends(current_user),
) -> Any:
    try:
        result = await uc(user, req.message or "", req.history)
    except ValidationError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except GeneratorUnavailableError as exc:
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
    except Exception as exc:
        logger.exception("Generator or retrieval error")
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={
                "error": "Assistant temporarily unavailable.",
                "detail": str(exc),
                "fallback": {"reply": FALLBACK_REPLY, "resources": []},
            },
        )
    return {
        "reply": result.reply,
        "resources": [_dump(r) for r in result.shortlist],
        "rankingEmpty": result.ranking_empty,
    }


__all__ = ["app"]
