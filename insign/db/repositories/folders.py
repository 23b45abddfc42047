"""
Folder repository. Paths are materialized (``/a/b``) and rewritten for
descendants on rename.
"""
from __future__ import annotations

import uuid
from typing import List, Optional

from sqlalchemy.orm import Session

from insign.db import models


def _live(db: Session, organization_id: uuid.UUID):
    return db.query(models.Folder).filter(
        models.Folder.organization_id == organization_id,
        models.Folder.deleted_at.is_(None),
    )


def list_folders(db: Session, *, organization_id: uuid.UUID, parent_id: Optional[uuid.UUID] = None, all_levels: bool = False) -> List[models.Folder]:
    q = _live(db, organization_id)
    if not all_levels:
        if parent_id is None:
            q = q.filter(models.Folder.parent_id.is_(None))
        else:
            q = q.filter(models.Folder.parent_id == parent_id)
    return q.order_by(models.Folder.path.asc()).all()


def get_folder(db: Session, *, folder_id: uuid.UUID, organization_id: uuid.UUID) -> Optional[models.Folder]:
    return _live(db, organization_id).filter(models.Folder.id == folder_id).first()


def name_taken(db: Session, *, organization_id: uuid.UUID, parent_id: Optional[uuid.UUID], name: str, exclude_id: Optional[uuid.UUID] = None) -> bool:
    q = _live(db, organization_id).filter(models.Folder.name == name)
    q = q.filter(models.Folder.parent_id.is_(None)) if parent_id is None else q.filter(models.Folder.parent_id == parent_id)
    if exclude_id is not None:
        q = q.filter(models.Folder.id != exclude_id)
    return db.query(q.exists()).scalar()


def build_path(parent: Optional[models.Folder], name: str) -> str:
    return f"{parent.path}/{name}" if parent is not None else f"/{name}"


def create_folder(
    db: Session,
    *,
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
    name: str,
    parent: Optional[models.Folder],
    description: Optional[str],
) -> models.Folder:
    folder = models.Folder(
        organization_id=organization_id,
        parent_id=parent.id if parent is not None else None,
        name=name,
        path=build_path(parent, name),
        description=description,
        created_by=user_id,
    )
    db.add(folder)
    db.commit()
    db.refresh(folder)
    return folder


def rename_folder(db: Session, *, folder: models.Folder, name: str) -> None:
    """Rename and rewrite the materialized path of every descendant. Caller commits."""
    old_path = folder.path
    parent_path = old_path.rsplit("/", 1)[0]
    new_path = f"{parent_path}/{name}"
    folder.name = name
    folder.path = new_path
    descendants = (
        _live(db, folder.organization_id)
        .filter(models.Folder.path.startswith(f"{old_path}/", autoescape=True))
        .all()
    )
    for child in descendants:
        child.path = new_path + child.path[len(old_path):]


def has_children(db: Session, *, folder: models.Folder) -> bool:
    sub = _live(db, folder.organization_id).filter(models.Folder.parent_id == folder.id)
    docs = db.query(models.Document).filter(
        models.Document.folder_id == folder.id,
        models.Document.deleted_at.is_(None),
    )
    return db.query(sub.exists()).scalar() or db.query(docs.exists()).scalar()


def soft_delete(db: Session, *, folder: models.Folder) -> None:
    folder.deleted_at = models.now_utc()
    db.commit()
