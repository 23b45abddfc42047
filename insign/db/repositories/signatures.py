"""
Signature request, participant, field, and signature audit repository.

State changes to a request's lifecycle live in
`insign.services.signing_service`; this module only reads and writes rows.
"""
from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session, selectinload

from insign.db import models, schemas
from insign.db.repositories import users as users_repo
from insign.utils import token_crypto


# Requests

def list_requests(db: Session, *, organization_id: uuid.UUID, status: Optional[str] = None, skip: int = 0, limit: int = 100) -> List[models.SignatureRequest]:
    q = (
        db.query(models.SignatureRequest)
        .options(selectinload(models.SignatureRequest.participants))
        .filter(models.SignatureRequest.organization_id == organization_id)
    )
    if status:
        q = q.filter(models.SignatureRequest.status == status)
    return q.order_by(models.SignatureRequest.created_at.desc()).offset(skip).limit(limit).all()


def get_request(db: Session, *, request_id: uuid.UUID, organization_id: uuid.UUID) -> Optional[models.SignatureRequest]:
    return (
        db.query(models.SignatureRequest)
        .filter(
            models.SignatureRequest.id == request_id,
            models.SignatureRequest.organization_id == organization_id,
        )
        .first()
    )


def lock_request(db: Session, *, request_id: uuid.UUID) -> models.SignatureRequest:
    """Re-read a request holding a row lock (no-op lock on SQLite)."""
    return (
        db.query(models.SignatureRequest)
        .filter(models.SignatureRequest.id == request_id)
        .with_for_update()
        .populate_existing()
        .one()
    )


def _new_participant(db: Session, *, organization_id: uuid.UUID, data: schemas.ParticipantCreate) -> models.SignatureParticipant:
    linked = users_repo.get_by_email_in_org(db, email=data.email, organization_id=organization_id)
    return models.SignatureParticipant(
        user_id=linked.id if linked else None,
        email=users_repo.normalize_email(data.email),
        full_name=data.full_name.strip(),
        role=data.role.value,
        order_index=data.order_index,
        status="pending",
        access_token=token_crypto.generate_access_token(32),
    )


def create_request(db: Session, *, organization_id: uuid.UUID, user_id: uuid.UUID, payload: schemas.SignatureRequestCreate) -> models.SignatureRequest:
    req = models.SignatureRequest(
        organization_id=organization_id,
        document_id=payload.document_id,
        title=payload.title.strip(),
        message=payload.message,
        status="draft",
        workflow_type=payload.workflow_type.value,
        expires_at=payload.expires_at,
        created_by=user_id,
    )
    req.participants = [_new_participant(db, organization_id=organization_id, data=p) for p in payload.participants]
    db.add(req)
    db.commit()
    db.refresh(req)
    return req


def update_request(db: Session, *, req: models.SignatureRequest, payload: schemas.SignatureRequestUpdate) -> Dict[str, Any]:
    changes = {}
    for key, value in payload.model_dump(exclude_unset=True).items():
        if key == "workflow_type" and value is not None:
            value = value.value if hasattr(value, "value") else value
        if key in ("title", "workflow_type") and value is None:
            continue
        setattr(req, key, value)
        changes[key] = value.isoformat() if hasattr(value, "isoformat") else value
    db.commit()
    db.refresh(req)
    return changes


def delete_request(db: Session, *, req: models.SignatureRequest) -> None:
    db.delete(req)
    db.commit()


def request_counts(req: models.SignatureRequest) -> Dict[str, int]:
    return {
        "participant_count": len(req.participants),
        "signed_count": sum(1 for p in req.participants if p.status == "signed"),
    }


# Participants

def add_participant(db: Session, *, req: models.SignatureRequest, data: schemas.ParticipantCreate) -> models.SignatureParticipant:
    participant = _new_participant(db, organization_id=req.organization_id, data=data)
    req.participants.append(participant)
    db.commit()
    db.refresh(participant)
    return participant


def get_participant(db: Session, *, participant_id: uuid.UUID, request_id: uuid.UUID) -> Optional[models.SignatureParticipant]:
    return (
        db.query(models.SignatureParticipant)
        .filter(
            models.SignatureParticipant.id == participant_id,
            models.SignatureParticipant.request_id == request_id,
        )
        .first()
    )


def get_participant_by_token(db: Session, *, access_token: str) -> Optional[models.SignatureParticipant]:
    if not access_token:
        return None
    return (
        db.query(models.SignatureParticipant)
        .filter(models.SignatureParticipant.access_token == access_token)
        .first()
    )


def remove_participant(db: Session, *, participant: models.SignatureParticipant) -> None:
    db.delete(participant)
    db.commit()


# Fields

def list_fields(db: Session, *, request_id: uuid.UUID) -> List[models.SignatureField]:
    return (
        db.query(models.SignatureField)
        .filter(models.SignatureField.request_id == request_id)
        .order_by(models.SignatureField.page_number.asc(), models.SignatureField.y.asc())
        .all()
    )


def get_field(db: Session, *, field_id: uuid.UUID, request_id: uuid.UUID) -> Optional[models.SignatureField]:
    return (
        db.query(models.SignatureField)
        .filter(models.SignatureField.id == field_id, models.SignatureField.request_id == request_id)
        .first()
    )


def create_field(db: Session, *, request_id: uuid.UUID, payload: schemas.FieldCreate) -> models.SignatureField:
    data = payload.model_dump()
    data["type"] = payload.type.value
    field = models.SignatureField(request_id=request_id, **data)
    db.add(field)
    db.commit()
    db.refresh(field)
    return field


def update_field(db: Session, *, field: models.SignatureField, payload: schemas.FieldUpdate) -> models.SignatureField:
    for key, value in payload.model_dump(exclude_unset=True).items():
        if value is None and key not in ("label", "options"):
            continue
        setattr(field, key, value)
    db.commit()
    db.refresh(field)
    return field


def delete_field(db: Session, *, field: models.SignatureField) -> None:
    db.delete(field)
    db.commit()


# Signatures

def get_signature(db: Session, *, participant_id: uuid.UUID, field_id: uuid.UUID) -> Optional[models.Signature]:
    return (
        db.query(models.Signature)
        .filter(models.Signature.participant_id == participant_id, models.Signature.field_id == field_id)
        .first()
    )


def list_request_signatures(db: Session, *, request_id: uuid.UUID) -> List[models.Signature]:
    return (
        db.query(models.Signature)
        .join(models.SignatureField, models.SignatureField.id == models.Signature.field_id)
        .filter(models.SignatureField.request_id == request_id)
        .all()
    )


def signed_field_ids(db: Session, *, participant_id: uuid.UUID) -> set:
    rows = db.query(models.Signature.field_id).filter(models.Signature.participant_id == participant_id).all()
    return {r[0] for r in rows}


# Audit trail

def add_audit_entry(
    db: Session,
    *,
    request_id: uuid.UUID,
    action: str,
    participant_id: Optional[uuid.UUID] = None,
    actor_user_id: Optional[uuid.UUID] = None,
    metadata: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> models.SignatureAuditLog:
    """Stage an audit entry; the surrounding operation commits."""
    entry = models.SignatureAuditLog(
        request_id=request_id,
        participant_id=participant_id,
        actor_user_id=actor_user_id,
        action=action,
        metadata_json=metadata or {},
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.add(entry)
    return entry


def list_audit_entries(db: Session, *, request_id: uuid.UUID) -> List[models.SignatureAuditLog]:
    return (
        db.query(models.SignatureAuditLog)
        .filter(models.SignatureAuditLog.request_id == request_id)
        .order_by(models.SignatureAuditLog.timestamp.desc())
        .all()
    )


def list_org_audit_entries(db: Session, *, organization_id: uuid.UUID, skip: int = 0, limit: int = 200):
    return (
        db.query(models.SignatureAuditLog, models.SignatureRequest.title)
        .join(models.SignatureRequest, models.SignatureRequest.id == models.SignatureAuditLog.request_id)
        .filter(models.SignatureRequest.organization_id == organization_id)
        .order_by(models.SignatureAuditLog.timestamp.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )
