"""Local filesystem blob storage.

Layout under ``STORAGE_ROOT``::

    <org_id>/<document_id>/v<version>_<file name>
    <org_id>/<document_id>/sealed/<request_id>.pdf

Paths persisted on rows are relative to the root so a deployment can move
the storage directory without rewriting the database.
"""

from __future__ import annotations

import logging
import re
import uuid
from pathlib import Path

from insign.errors import NotFoundError
from insign.utils.runtime import storage_root

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def safe_filename(name: str) -> str:
    cleaned = _UNSAFE_CHARS.sub("_", Path(name or "").name).strip("._")
    return cleaned[:150] or "file"


class StorageService:
    def __init__(self, root: str | Path | None = None):
        self.root = Path(root or storage_root()).resolve()

    def _resolve(self, relative_path: str) -> Path:
        path = (self.root / relative_path).resolve()
        if self.root not in path.parents:
            raise NotFoundError("File not found")
        return path

    @staticmethod
    def version_path(org_id: uuid.UUID, document_id: uuid.UUID, version: int, filename: str) -> str:
        return f"{org_id}/{document_id}/v{version}_{safe_filename(filename)}"

    @staticmethod
    def sealed_path(org_id: uuid.UUID, document_id: uuid.UUID, request_id: uuid.UUID) -> str:
        return f"{org_id}/{document_id}/sealed/{request_id}.pdf"

    def save(self, relative_path: str, content: bytes) -> str:
        target = self._resolve(relative_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)
        logger.debug("Stored %d bytes at %s", len(content), relative_path)
        return relative_path

    def read(self, relative_path: str) -> bytes:
        target = self._resolve(relative_path)
        if not target.is_file():
            raise NotFoundError("File not found")
        return target.read_bytes()

    def exists(self, relative_path: str | None) -> bool:
        if not relative_path:
            return False
        try:
            return self._resolve(relative_path).is_file()
        except NotFoundError:
            return False

    def delete(self, relative_path: str) -> bool:
        try:
            target = self._resolve(relative_path)
        except NotFoundError:
            return False
        if not target.is_file():
            return False
        target.unlink()
        return True


def get_storage_service() -> StorageService:
    return StorageService()
