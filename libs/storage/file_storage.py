from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from uuid import uuid4

import yaml

_FILE_ID = re.compile(r"^[0-9a-f]{32}$")


@dataclass
class StoredFile:
    """An uploaded blob and the metadata recorded with it."""

    file_id: str
    filename: str
    content_type: str
    path: Path


class FileStorage:
    """File system based blob storage with a YAML metadata sidecar per file."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    # ------------------------------------------------------------------
    # public API
    def save(self, filename: str, content_type: str, data: bytes) -> str:
        """Store ``data`` and return its new file id."""

        self.root.mkdir(parents=True, exist_ok=True)
        file_id = uuid4().hex
        self._blob_path(file_id).write_bytes(data)
        meta = {"filename": filename, "content_type": content_type, "size": len(data)}
        self._meta_path(file_id).write_text(
            yaml.safe_dump(meta, allow_unicode=True), encoding="utf-8"
        )
        return file_id

    def open(self, file_id: str) -> StoredFile:
        """Look up a stored file; raises ``FileNotFoundError`` if unknown."""

        blob = self._blob_path(file_id)
        if not blob.exists():
            raise FileNotFoundError(file_id)
        meta_path = self._meta_path(file_id)
        meta = {}
        if meta_path.exists():
            meta = yaml.safe_load(meta_path.read_text(encoding="utf-8")) or {}
        return StoredFile(
            file_id=file_id,
            filename=meta.get("filename") or "download",
            content_type=meta.get("content_type") or "application/octet-stream",
            path=blob,
        )

    def delete(self, file_id: str) -> None:
        """Remove a stored file; raises ``FileNotFoundError`` if unknown."""

        blob = self._blob_path(file_id)
        blob.unlink()
        self._meta_path(file_id).unlink(missing_ok=True)

    # ------------------------------------------------------------------
    # helpers
    def _blob_path(self, file_id: str) -> Path:
        # ids are generated here; anything else would escape the root
        if not _FILE_ID.match(file_id or ""):
            raise FileNotFoundError(file_id)
        return self.root / f"{file_id}.bin"

    def _meta_path(self, file_id: str) -> Path:
        return self.root / f"{file_id}.yaml"
