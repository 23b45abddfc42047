"""
Document version repository.
"""
from __future__ import annotations

import uuid
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from insign.db import models


def list_versions(db: Session, *, document_id: uuid.UUID) -> List[models.DocumentVersion]:
    return (
        db.query(models.DocumentVersion)
        .filter(models.DocumentVersion.document_id == document_id)
        .order_by(models.DocumentVersion.version.desc())
        .all()
    )


def get_version(db: Session, *, version_id: uuid.UUID, document_id: uuid.UUID) -> Optional[models.DocumentVersion]:
    return (
        db.query(models.DocumentVersion)
        .filter(models.DocumentVersion.id == version_id, models.DocumentVersion.document_id == document_id)
        .first()
    )


def get_by_number(db: Session, *, document_id: uuid.UUID, version: int) -> Optional[models.DocumentVersion]:
    return (
        db.query(models.DocumentVersion)
        .filter(models.DocumentVersion.document_id == document_id, models.DocumentVersion.version == version)
        .first()
    )


def next_version_number(db: Session, *, document_id: uuid.UUID) -> int:
    current = (
        db.query(func.max(models.DocumentVersion.version))
        .filter(models.DocumentVersion.document_id == document_id)
        .scalar()
    )
    return (current or 0) + 1


def count_versions(db: Session, *, document_id: uuid.UUID) -> int:
    return db.query(models.DocumentVersion).filter(models.DocumentVersion.document_id == document_id).count()


def charged_bytes(db: Session, *, document_id: uuid.UUID) -> int:
    """Quota bytes held by a document: one charge per distinct blob (restores share their source's)."""
    rows = (
        db.query(models.DocumentVersion.file_path, func.max(models.DocumentVersion.size_bytes))
        .filter(models.DocumentVersion.document_id == document_id)
        .group_by(models.DocumentVersion.file_path)
        .all()
    )
    return sum(size or 0 for _path, size in rows)


def add_version(
    db: Session,
    *,
    document: models.Document,
    file_path: str,
    size_bytes: int,
    mime_type: str,
    changes_description: Optional[str],
    user_id: uuid.UUID,
) -> models.DocumentVersion:
    """Append a version and make it the document's current content. Caller commits."""
    number = next_version_number(db, document_id=document.id)
    version = models.DocumentVersion(
        document_id=document.id,
        version=number,
        file_path=file_path,
        size_bytes=size_bytes,
        mime_type=mime_type,
        changes_description=changes_description,
        created_by=user_id,
    )
    db.add(version)
    document.file_path = file_path
    document.size_bytes = size_bytes
    document.mime_type = mime_type
    document.version = number
    document.updated_by = user_id
    return version
