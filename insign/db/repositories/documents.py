"""
Document repository: org-scoped queries, creation with version 1, and
soft deletion.
"""
from __future__ import annotations

import uuid
from typing import List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, selectinload

from insign.db import models


def _live(db: Session, organization_id: uuid.UUID):
    return db.query(models.Document).filter(
        models.Document.organization_id == organization_id,
        models.Document.deleted_at.is_(None),
    )


def list_documents(
    db: Session,
    *,
    organization_id: uuid.UUID,
    folder_id: Optional[uuid.UUID] = None,
    search: Optional[str] = None,
    tag_id: Optional[uuid.UUID] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[models.Document]:
    q = _live(db, organization_id).options(selectinload(models.Document.tag_assignments))
    if folder_id is not None:
        q = q.filter(models.Document.folder_id == folder_id)
    if search:
        pattern = f"%{search.strip().lower()}%"
        q = q.filter(or_(
            func.lower(models.Document.name).like(pattern),
            func.lower(func.coalesce(models.Document.content_text, "")).like(pattern),
        ))
    if tag_id is not None:
        q = q.join(models.DocumentTagAssignment).filter(models.DocumentTagAssignment.tag_id == tag_id)
    return q.order_by(models.Document.created_at.desc()).offset(skip).limit(limit).all()


def get_document(db: Session, *, document_id: uuid.UUID, organization_id: uuid.UUID) -> Optional[models.Document]:
    return _live(db, organization_id).filter(models.Document.id == document_id).first()


def create_document(
    db: Session,
    *,
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
    name: str,
    file_path: str,
    mime_type: str,
    size_bytes: int,
    folder_id: Optional[uuid.UUID] = None,
    content_text: Optional[str] = None,
    document_id: Optional[uuid.UUID] = None,
) -> models.Document:
    """Add the document and its first version; the caller commits.

    `document_id` lets the caller write the blob under the final id first.
    """
    doc = models.Document(
        id=document_id or uuid.uuid4(),
        organization_id=organization_id,
        folder_id=folder_id,
        name=name,
        file_path=file_path,
        mime_type=mime_type,
        size_bytes=size_bytes,
        version=1,
        metadata_json={},
        content_text=content_text,
        created_by=user_id,
        updated_by=user_id,
    )
    db.add(doc)
    db.flush()
    db.add(models.DocumentVersion(
        document_id=doc.id,
        version=1,
        file_path=file_path,
        size_bytes=size_bytes,
        mime_type=mime_type,
        changes_description="Initial upload",
        created_by=user_id,
    ))
    return doc


def soft_delete(db: Session, *, doc: models.Document) -> None:
    doc.deleted_at = models.now_utc()
