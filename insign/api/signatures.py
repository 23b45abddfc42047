"""
Signature requests as seen by their organization: drafting (participants
and fields), the send/remind/cancel lifecycle, audit trails and the sealed
certificate.

Lifecycle rules live in `insign.services.signing_service`; this router
resolves the request, checks permissions and records audit entries.
"""
import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from insign.api.deps import get_current_user_context
from insign.api.documents import file_response
from insign.api.permissions import ensure_permission, require_document
from insign.audit import AuditAction, log_for_user
from insign.db import models, schemas
from insign.db.database import get_db
from insign.db.enums import RequestStatus
from insign.db.repositories import signatures as signatures_repo
from insign.services import signing_service
from insign.services.storage_service import StorageService, get_storage_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/signature-requests", tags=["signature-requests"])

DRAFT_ONLY_MESSAGE = "Only draft requests can be edited"
FIELDS_LOCKED_MESSAGE = "Cannot modify fields after request is sent"


def request_to_schema(req: models.SignatureRequest) -> schemas.SignatureRequest:
    return schemas.SignatureRequest(
        id=req.id,
        organization_id=req.organization_id,
        document_id=req.document_id,
        title=req.title,
        message=req.message,
        status=req.status,
        workflow_type=req.workflow_type,
        expires_at=req.expires_at,
        completed_at=req.completed_at,
        seal_hash=req.seal_hash,
        has_certificate=bool(req.certificate_path),
        created_by=req.created_by,
        created_at=req.created_at,
        updated_at=req.updated_at,
        **signatures_repo.request_counts(req),
    )


def request_detail(req: models.SignatureRequest) -> schemas.SignatureRequestDetail:
    base = request_to_schema(req).model_dump()
    return schemas.SignatureRequestDetail(
        **base,
        document_name=req.document.name if req.document is not None else None,
        participants=[schemas.Participant.model_validate(p) for p in req.participants],
        fields=[schemas.SignatureField.model_validate(f) for f in req.fields],
    )


def _get_request_or_404(db: Session, request_id: uuid.UUID, current_user) -> models.SignatureRequest:
    req = signatures_repo.get_request(db, request_id=request_id, organization_id=current_user["organization_id"])
    if req is None:
        raise HTTPException(status_code=404, detail="Signature request not found")
    return req


def _require_draft(req: models.SignatureRequest, detail: str = DRAFT_ONLY_MESSAGE) -> None:
    if req.status != RequestStatus.draft.value:
        raise HTTPException(status_code=400, detail=detail)


@router.get("", response_model=List[schemas.SignatureRequest])
def list_requests(
    status_filter: Optional[RequestStatus] = Query(default=None, alias="status"),
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "signatures:read")
    rows = signatures_repo.list_requests(
        db,
        organization_id=current_user["organization_id"],
        status=status_filter.value if status_filter else None,
        skip=skip,
        limit=limit,
    )
    return [request_to_schema(r) for r in rows]


@router.post("", response_model=schemas.SignatureRequestDetail, status_code=status.HTTP_201_CREATED)
def create_request(
    payload: schemas.SignatureRequestCreate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_permission(current_user, "signatures:write")
    require_document(db, payload.document_id, current_user, "read")

    req = signatures_repo.create_request(
        db, organization_id=current_user["organization_id"], user_id=user.id, payload=payload
    )
    signatures_repo.add_audit_entry(
        db,
        request_id=req.id,
        actor_user_id=user.id,
        action="request_created",
        metadata={"title": req.title, "workflowType": req.workflow_type, "participantCount": len(req.participants)},
    )
    db.commit()
    log_for_user(db, current_user, action=AuditAction.SIGNATURE_REQUEST_CREATE, target_type="signature_request",
                 target_id=req.id, metadata={"title": req.title, "document_id": str(req.document_id)})
    return request_detail(req)


@router.get("/audit", response_model=List[schemas.SignatureAuditEntry])
def organization_audit_trail(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=200, ge=1, le=1000),
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "signatures:read")
    rows = signatures_repo.list_org_audit_entries(
        db, organization_id=current_user["organization_id"], skip=skip, limit=limit
    )
    entries = []
    for entry, title in rows:
        item = schemas.SignatureAuditEntry.model_validate(entry)
        item.request_title = title
        entries.append(item)
    return entries


@router.get("/{request_id}", response_model=schemas.SignatureRequestDetail)
def get_request(
    request_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "signatures:read")
    return request_detail(_get_request_or_404(db, request_id, current_user))


@router.patch("/{request_id}", response_model=schemas.SignatureRequestDetail)
def update_request(
    request_id: uuid.UUID,
    payload: schemas.SignatureRequestUpdate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_permission(current_user, "signatures:write")
    req = _get_request_or_404(db, request_id, current_user)
    _require_draft(req)
    changes = signatures_repo.update_request(db, req=req, payload=payload)
    signatures_repo.add_audit_entry(
        db, request_id=req.id, actor_user_id=user.id, action="request_updated", metadata={"changes": changes}
    )
    db.commit()
    return request_detail(req)


@router.delete("/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_request(
    request_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "signatures:delete")
    req = _get_request_or_404(db, request_id, current_user)
    _require_draft(req, "Can only delete draft requests")
    title = req.title
    signatures_repo.delete_request(db, req=req)
    log_for_user(db, current_user, action=AuditAction.SIGNATURE_REQUEST_DELETE, target_type="signature_request",
                 target_id=request_id, metadata={"title": title})
    return None


# Lifecycle

@router.post("/{request_id}/send", response_model=schemas.SendResponse)
def send_request(
    request_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_permission(current_user, "signatures:write")
    req = _get_request_or_404(db, request_id, current_user)
    notified = signing_service.send_request(db, req, actor_user_id=user.id)
    log_for_user(db, current_user, action=AuditAction.SIGNATURE_REQUEST_SEND, target_type="signature_request",
                 target_id=req.id, metadata={"notified_participants": notified})
    return schemas.SendResponse(request_id=req.id, notified_participants=notified)


@router.post("/{request_id}/remind", response_model=schemas.SendResponse)
def remind_request(
    request_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_permission(current_user, "signatures:write")
    req = _get_request_or_404(db, request_id, current_user)
    reminded = signing_service.remind_request(db, req, actor_user_id=user.id)
    return schemas.SendResponse(request_id=req.id, notified_participants=reminded)


@router.post("/{request_id}/cancel", response_model=schemas.SignatureRequest)
def cancel_request(
    request_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_permission(current_user, "signatures:write")
    req = _get_request_or_404(db, request_id, current_user)
    req = signing_service.cancel_request(db, req, actor_user_id=user.id)
    log_for_user(db, current_user, action=AuditAction.SIGNATURE_REQUEST_CANCEL, target_type="signature_request",
                 target_id=req.id)
    return request_to_schema(req)


@router.get("/{request_id}/audit", response_model=List[schemas.SignatureAuditEntry])
def request_audit_trail(
    request_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "signatures:read")
    req = _get_request_or_404(db, request_id, current_user)
    entries = []
    for entry in signatures_repo.list_audit_entries(db, request_id=req.id):
        item = schemas.SignatureAuditEntry.model_validate(entry)
        item.request_title = req.title
        entries.append(item)
    return entries


# Certificate

@router.get("/{request_id}/certificate")
def download_certificate(
    request_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
    storage: StorageService = Depends(get_storage_service),
):
    _user, current_user = user_context
    ensure_permission(current_user, "signatures:read")
    req = _get_request_or_404(db, request_id, current_user)
    if req.status != RequestStatus.completed.value or not storage.exists(req.certificate_path):
        raise HTTPException(status_code=404, detail="Certificate not generated")
    name = f"{req.title}_signed.pdf"
    return file_response(storage.read(req.certificate_path), name, "application/pdf")


@router.post("/{request_id}/certificate", response_model=schemas.SignatureRequest)
def regenerate_certificate(
    request_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
    storage: StorageService = Depends(get_storage_service),
):
    _user, current_user = user_context
    ensure_permission(current_user, "signatures:write")
    req = _get_request_or_404(db, request_id, current_user)
    if req.status != RequestStatus.completed.value:
        raise HTTPException(status_code=400, detail="Certificates can only be generated for completed requests")
    signing_service.seal_request(db, req, storage=storage)
    db.refresh(req)
    return request_to_schema(req)


# Participants

@router.post("/{request_id}/participants", response_model=schemas.Participant, status_code=status.HTTP_201_CREATED)
def add_participant(
    request_id: uuid.UUID,
    payload: schemas.ParticipantCreate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_permission(current_user, "signatures:write")
    req = _get_request_or_404(db, request_id, current_user)
    _require_draft(req)
    email = payload.email.lower()
    if any(p.email.lower() == email for p in req.participants):
        raise HTTPException(status_code=409, detail="Participant already exists")
    participant = signatures_repo.add_participant(db, req=req, data=payload)
    signatures_repo.add_audit_entry(
        db, request_id=req.id, actor_user_id=user.id, participant_id=participant.id,
        action="participant_added", metadata={"participantEmail": participant.email},
    )
    db.commit()
    return participant


@router.delete("/{request_id}/participants/{participant_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_participant(
    request_id: uuid.UUID,
    participant_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_permission(current_user, "signatures:write")
    req = _get_request_or_404(db, request_id, current_user)
    _require_draft(req)
    participant = signatures_repo.get_participant(db, participant_id=participant_id, request_id=req.id)
    if participant is None:
        raise HTTPException(status_code=404, detail="Participant not found")
    email = participant.email
    signatures_repo.remove_participant(db, participant=participant)
    signatures_repo.add_audit_entry(
        db, request_id=req.id, actor_user_id=user.id,
        action="participant_removed", metadata={"participantEmail": email},
    )
    db.commit()
    return None


# Fields

@router.get("/{request_id}/fields", response_model=List[schemas.SignatureField])
def list_fields(
    request_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "signatures:read")
    req = _get_request_or_404(db, request_id, current_user)
    return signatures_repo.list_fields(db, request_id=req.id)


@router.post("/{request_id}/fields", response_model=schemas.SignatureField, status_code=status.HTTP_201_CREATED)
def create_field(
    request_id: uuid.UUID,
    payload: schemas.FieldCreate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "signatures:write")
    req = _get_request_or_404(db, request_id, current_user)
    _require_draft(req, FIELDS_LOCKED_MESSAGE)
    if signatures_repo.get_participant(db, participant_id=payload.participant_id, request_id=req.id) is None:
        raise HTTPException(status_code=404, detail="Participant not found")
    return signatures_repo.create_field(db, request_id=req.id, payload=payload)


@router.patch("/{request_id}/fields/{field_id}", response_model=schemas.SignatureField)
def update_field(
    request_id: uuid.UUID,
    field_id: uuid.UUID,
    payload: schemas.FieldUpdate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "signatures:write")
    req = _get_request_or_404(db, request_id, current_user)
    _require_draft(req, FIELDS_LOCKED_MESSAGE)
    field = signatures_repo.get_field(db, field_id=field_id, request_id=req.id)
    if field is None:
        raise HTTPException(status_code=404, detail="Field not found")
    if field.type == "dropdown" and "options" in payload.model_fields_set and not payload.options:
        raise HTTPException(status_code=400, detail="Dropdown fields require at least one option")
    return signatures_repo.update_field(db, field=field, payload=payload)


@router.delete("/{request_id}/fields/{field_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_field(
    request_id: uuid.UUID,
    field_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "signatures:write")
    req = _get_request_or_404(db, request_id, current_user)
    _require_draft(req, FIELDS_LOCKED_MESSAGE)
    field = signatures_repo.get_field(db, field_id=field_id, request_id=req.id)
    if field is None:
        raise HTTPException(status_code=404, detail="Field not found")
    signatures_repo.delete_field(db, field=field)
    return None
