"""
Document-level permission grants and effective level resolution.

Effective level = highest of:
- the baseline implied by the caller's role (documents:read/write/delete/manage),
- admin when the caller created the document,
- non-expired grants to the caller's user id or role id.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from insign.db import models
from insign.db.enums import PERMISSION_LEVEL_RANK
from insign.utils.role_permissions import has_scope

_BASELINE = (
    ("documents:manage", "admin"),
    ("documents:delete", "delete"),
    ("documents:write", "write"),
    ("documents:read", "read"),
)


def baseline_level(permissions: Iterable[str]) -> Optional[str]:
    perms = set(permissions or ())
    for required, level in _BASELINE:
        if has_scope(perms, required):
            return level
    return None


def level_satisfies(level: Optional[str], required: str) -> bool:
    if level is None:
        return False
    return PERMISSION_LEVEL_RANK.get(level, 0) >= PERMISSION_LEVEL_RANK[required]


def _max_level(levels: Iterable[Optional[str]]) -> Optional[str]:
    best = None
    for lvl in levels:
        if lvl is None:
            continue
        if best is None or PERMISSION_LEVEL_RANK.get(lvl, 0) > PERMISSION_LEVEL_RANK.get(best, 0):
            best = lvl
    return best


def _active_grants(db: Session, document_id: uuid.UUID):
    now = datetime.now(timezone.utc)
    return db.query(models.DocumentPermission).filter(
        models.DocumentPermission.document_id == document_id,
        or_(models.DocumentPermission.expires_at.is_(None), models.DocumentPermission.expires_at > now),
    )


def effective_level(db: Session, *, document: models.Document, current_user: Dict[str, Any]) -> Optional[str]:
    user_id = current_user.get("id")
    role_id = current_user.get("role_id")
    if document.created_by is not None and document.created_by == user_id:
        return "admin"
    levels = [baseline_level(current_user.get("permissions") or ())]
    clauses = [models.DocumentPermission.user_id == user_id]
    if role_id is not None:
        clauses.append(models.DocumentPermission.role_id == role_id)
    grants = _active_grants(db, document.id).filter(or_(*clauses)).all()
    levels.extend(g.permission_level for g in grants)
    return _max_level(levels)


def list_permissions(db: Session, *, document_id: uuid.UUID) -> List[models.DocumentPermission]:
    return (
        db.query(models.DocumentPermission)
        .filter(models.DocumentPermission.document_id == document_id)
        .order_by(models.DocumentPermission.created_at.desc())
        .all()
    )


def get_permission(db: Session, *, permission_id: uuid.UUID, document_id: uuid.UUID) -> Optional[models.DocumentPermission]:
    return (
        db.query(models.DocumentPermission)
        .filter(
            models.DocumentPermission.id == permission_id,
            models.DocumentPermission.document_id == document_id,
        )
        .first()
    )


def grant_exists(db: Session, *, document_id: uuid.UUID, user_id: Optional[uuid.UUID], role_id: Optional[uuid.UUID]) -> bool:
    q = db.query(models.DocumentPermission).filter(models.DocumentPermission.document_id == document_id)
    if user_id is not None:
        q = q.filter(models.DocumentPermission.user_id == user_id)
    else:
        q = q.filter(models.DocumentPermission.role_id == role_id)
    return db.query(q.exists()).scalar()


def grant(
    db: Session,
    *,
    document_id: uuid.UUID,
    user_id: Optional[uuid.UUID],
    role_id: Optional[uuid.UUID],
    level: str,
    granted_by: uuid.UUID,
    expires_at: Optional[datetime],
) -> models.DocumentPermission:
    perm = models.DocumentPermission(
        document_id=document_id,
        user_id=user_id,
        role_id=role_id,
        permission_level=level,
        granted_by=granted_by,
        expires_at=expires_at,
    )
    db.add(perm)
    db.commit()
    db.refresh(perm)
    return perm


def update_permission(db: Session, *, perm: models.DocumentPermission, level: Optional[str], expires_at: Optional[datetime], expires_set: bool) -> models.DocumentPermission:
    if level is not None:
        perm.permission_level = level
    if expires_set:
        perm.expires_at = expires_at
    db.commit()
    db.refresh(perm)
    return perm


def revoke(db: Session, *, perm: models.DocumentPermission) -> None:
    db.delete(perm)
    db.commit()
