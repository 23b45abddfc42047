"""
Organization audit log storage.

Rows are written through `insign.audit.log`; reads are always filtered to one
organization by the router.
"""
from __future__ import annotations

import uuid
from typing import List, Optional
from sqlalchemy.orm import Session

from insign.db import schemas, models


def create_audit_log(
    db: Session,
    entry: schemas.AuditLogCreate,
    actor_user_id: Optional[uuid.UUID],
    organization_id: Optional[uuid.UUID] = None,
) -> models.AuditLog:
    row = models.AuditLog(
        organization_id=organization_id,
        actor_user_id=actor_user_id,
        action_type=entry.action_type,
        status=entry.status,
        target_type=entry.target_type,
        target_id=entry.target_id,
        reason=entry.reason,
        metadata_json=entry.metadata or None,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def get_audit_logs(
    db: Session,
    organization_id: Optional[uuid.UUID] = None,
    user_id: Optional[uuid.UUID] = None,
    action_type: Optional[str] = None,
    target_type: Optional[str] = None,
    target_id: Optional[uuid.UUID] = None,
    status: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[models.AuditLog]:
    """Newest first; every filter is optional and they combine with AND."""
    filters = []
    if organization_id:
        filters.append(models.AuditLog.organization_id == organization_id)
    if user_id:
        filters.append(models.AuditLog.actor_user_id == user_id)
    if action_type:
        filters.append(models.AuditLog.action_type == action_type)
    if target_type:
        filters.append(models.AuditLog.target_type == target_type)
    if target_id:
        filters.append(models.AuditLog.target_id == target_id)
    if status:
        filters.append(models.AuditLog.status == status)
    return (
        db.query(models.AuditLog)
        .filter(*filters)
        .order_by(models.AuditLog.created_at.desc(), models.AuditLog.id)
        .offset(skip)
        .limit(limit)
        .all()
    )
