"""
Tag repository and document/tag assignments.
"""
from __future__ import annotations

import uuid
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from insign.db import models


def list_tags(db: Session, *, organization_id: uuid.UUID) -> List[models.DocumentTag]:
    return (
        db.query(models.DocumentTag)
        .filter(models.DocumentTag.organization_id == organization_id)
        .order_by(models.DocumentTag.name.asc())
        .all()
    )


def get_tag(db: Session, *, tag_id: uuid.UUID, organization_id: uuid.UUID) -> Optional[models.DocumentTag]:
    return (
        db.query(models.DocumentTag)
        .filter(models.DocumentTag.id == tag_id, models.DocumentTag.organization_id == organization_id)
        .first()
    )


def name_taken(db: Session, *, organization_id: uuid.UUID, name: str, exclude_id: Optional[uuid.UUID] = None) -> bool:
    q = db.query(models.DocumentTag).filter(
        models.DocumentTag.organization_id == organization_id,
        func.lower(models.DocumentTag.name) == name.strip().lower(),
    )
    if exclude_id is not None:
        q = q.filter(models.DocumentTag.id != exclude_id)
    return db.query(q.exists()).scalar()


def create_tag(db: Session, *, organization_id: uuid.UUID, user_id: uuid.UUID, name: str, color: str) -> models.DocumentTag:
    tag = models.DocumentTag(organization_id=organization_id, name=name.strip(), color=color, created_by=user_id)
    db.add(tag)
    db.commit()
    db.refresh(tag)
    return tag


def update_tag(db: Session, *, tag: models.DocumentTag, name: Optional[str], color: Optional[str]) -> models.DocumentTag:
    if name is not None:
        tag.name = name.strip()
    if color is not None:
        tag.color = color
    db.commit()
    db.refresh(tag)
    return tag


def delete_tag(db: Session, *, tag: models.DocumentTag) -> None:
    db.delete(tag)
    db.commit()


def get_assignment(db: Session, *, document_id: uuid.UUID, tag_id: uuid.UUID) -> Optional[models.DocumentTagAssignment]:
    return (
        db.query(models.DocumentTagAssignment)
        .filter(
            models.DocumentTagAssignment.document_id == document_id,
            models.DocumentTagAssignment.tag_id == tag_id,
        )
        .first()
    )


def assign(db: Session, *, document_id: uuid.UUID, tag_id: uuid.UUID, user_id: uuid.UUID) -> models.DocumentTagAssignment:
    assignment = models.DocumentTagAssignment(document_id=document_id, tag_id=tag_id, assigned_by=user_id)
    db.add(assignment)
    db.commit()
    return assignment


def unassign(db: Session, *, assignment: models.DocumentTagAssignment) -> None:
    db.delete(assignment)
    db.commit()


def list_document_tags(db: Session, *, document_id: uuid.UUID) -> List[models.DocumentTag]:
    return (
        db.query(models.DocumentTag)
        .join(models.DocumentTagAssignment, models.DocumentTagAssignment.tag_id == models.DocumentTag.id)
        .filter(models.DocumentTagAssignment.document_id == document_id)
        .order_by(models.DocumentTag.name.asc())
        .all()
    )
