"""
Signature workflow: request lifecycle and token-addressed signing sessions.

Organizer-side transitions (send, remind, cancel, expire) and participant-side
actions (view, sign, complete, decline) share the status rules below. Each
action commits its state change and audit entries first; emails, webhooks and
PDF sealing run afterwards and only log their failures.
"""
import hashlib
import logging
import uuid
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from insign.db import models, schemas
from insign.db.enums import (
    ACTIVE_REQUEST_STATUSES,
    SIGNING_ROLES,
    FieldType,
    ParticipantRole,
    ParticipantStatus,
    RequestStatus,
    WorkflowType,
    can_transition,
)
from insign.db.models import is_past, now_utc
from insign.db.repositories import signatures as signatures_repo
from insign.errors import NotFoundError, ServiceError, WorkflowError
from insign.services import pdf_service, webhook_service
from insign.services.notification_service import NotificationService
from insign.services.storage_service import StorageService, get_storage_service

logger = logging.getLogger(__name__)

# Participant states that can still be moved to expired.
OPEN_PARTICIPANT_STATUSES = frozenset({
    ParticipantStatus.pending.value,
    ParticipantStatus.notified.value,
    ParticipantStatus.viewed.value,
})
AWAITING_PARTICIPANT_STATUSES = frozenset({
    ParticipantStatus.notified.value,
    ParticipantStatus.viewed.value,
})
DEFAULT_DECLINE_REASON = "No reason provided"


def _signing_participants(req: models.SignatureRequest) -> List[models.SignatureParticipant]:
    return [p for p in req.participants if p.role in SIGNING_ROLES]


def _all_signed(req: models.SignatureRequest) -> bool:
    signers = _signing_participants(req)
    return bool(signers) and all(p.status == ParticipantStatus.signed.value for p in signers)


def _sender_name(req: models.SignatureRequest) -> str:
    creator = req.creator
    if creator is None:
        return "Insign"
    return creator.full_name or creator.email


def _request_event_data(req: models.SignatureRequest, **extra: Any) -> Dict[str, Any]:
    data = {
        "request_id": str(req.id),
        "document_id": str(req.document_id),
        "title": req.title,
        "status": req.status,
    }
    data.update(extra)
    return data


def _fire_webhook(db: Session, req: models.SignatureRequest, event: str, data: Dict[str, Any]) -> None:
    webhook_service.trigger_org_webhooks(db, req.organization_id, event, data)


def _email_participants(db: Session, req: models.SignatureRequest,
                        participants: List[models.SignatureParticipant], reminder: bool = False) -> None:
    if not participants:
        return
    service = NotificationService(db)
    sender = _sender_name(req)
    for participant in participants:
        try:
            service.notify_signature_request(participant, req, sender, reminder=reminder)
        except Exception:
            logger.exception("Failed to email participant %s for request %s", participant.id, req.id)


def _mark_notified(db: Session, req: models.SignatureRequest,
                   participants: List[models.SignatureParticipant], actor_user_id: Optional[uuid.UUID] = None) -> None:
    now = now_utc()
    for participant in participants:
        participant.status = ParticipantStatus.notified.value
        participant.notified_at = now
        signatures_repo.add_audit_entry(
            db,
            request_id=req.id,
            participant_id=participant.id,
            actor_user_id=actor_user_id,
            action="participant_notified",
            metadata={"participantEmail": participant.email, "orderIndex": participant.order_index},
        )


def initial_recipients(req: models.SignatureRequest) -> List[models.SignatureParticipant]:
    """Who gets the first invitation: every signer (parallel) or the lowest order group (sequential)."""
    signers = _signing_participants(req)
    if not signers:
        return []
    if req.workflow_type == WorkflowType.parallel.value:
        return signers
    first_index = min(p.order_index for p in signers)
    return [p for p in signers if p.order_index == first_index]


def next_group(req: models.SignatureRequest, current_index: int) -> List[models.SignatureParticipant]:
    """Pending signers of the next order group once the current group is fully signed."""
    signers = _signing_participants(req)
    current_group = [p for p in signers if p.order_index == current_index]
    if any(p.status != ParticipantStatus.signed.value for p in current_group):
        return []
    later = [p for p in signers if p.order_index > current_index]
    if not later:
        return []
    next_index = min(p.order_index for p in later)
    return [
        p for p in later
        if p.order_index == next_index and p.status == ParticipantStatus.pending.value
    ]


# Organizer-side lifecycle

def send_request(db: Session, req: models.SignatureRequest, actor_user_id: Optional[uuid.UUID] = None) -> int:
    if req.status != RequestStatus.draft.value:
        raise WorkflowError("Request already sent")
    if not _signing_participants(req):
        raise WorkflowError("At least one signer or approver is required")

    recipients = initial_recipients(req)
    req.status = RequestStatus.sent.value
    _mark_notified(db, req, recipients, actor_user_id)
    signatures_repo.add_audit_entry(
        db,
        request_id=req.id,
        actor_user_id=actor_user_id,
        action="request_sent",
        metadata={"workflowType": req.workflow_type, "participantCount": len(req.participants)},
    )
    db.commit()
    db.refresh(req)

    _email_participants(db, req, recipients)
    _fire_webhook(db, req, "signature_request.sent", _request_event_data(
        req, notified_participants=[p.email for p in recipients]))
    logger.info("Signature request %s sent to %d participant(s)", req.id, len(recipients))
    return len(recipients)


def remind_request(db: Session, req: models.SignatureRequest, actor_user_id: Optional[uuid.UUID] = None) -> int:
    if req.status not in ACTIVE_REQUEST_STATUSES:
        raise WorkflowError("Reminders can only be sent for active requests")
    waiting = [p for p in req.participants if p.status in AWAITING_PARTICIPANT_STATUSES]
    signatures_repo.add_audit_entry(
        db,
        request_id=req.id,
        actor_user_id=actor_user_id,
        action="reminder_sent",
        metadata={"participantEmails": [p.email for p in waiting]},
    )
    db.commit()
    _email_participants(db, req, waiting, reminder=True)
    return len(waiting)


def cancel_request(db: Session, req: models.SignatureRequest, actor_user_id: Optional[uuid.UUID] = None) -> models.SignatureRequest:
    if not can_transition(req.status, RequestStatus.cancelled.value):
        raise WorkflowError("Cannot cancel this request")
    previous = req.status
    req.status = RequestStatus.cancelled.value
    signatures_repo.add_audit_entry(
        db,
        request_id=req.id,
        actor_user_id=actor_user_id,
        action="request_cancelled",
        metadata={"previousStatus": previous},
    )
    db.commit()
    db.refresh(req)
    _fire_webhook(db, req, "signature_request.cancelled", _request_event_data(req))
    return req


def expire_request(db: Session, req: models.SignatureRequest) -> None:
    """Move an overdue active request and its open participants to expired (commits)."""
    req.status = RequestStatus.expired.value
    for participant in req.participants:
        if participant.status in OPEN_PARTICIPANT_STATUSES:
            participant.status = ParticipantStatus.expired.value
    signatures_repo.add_audit_entry(
        db,
        request_id=req.id,
        action="request_expired",
        metadata={"expiresAt": req.expires_at.isoformat() if req.expires_at else None},
    )
    db.commit()


def expire_overdue_requests(db: Session) -> int:
    candidates = (
        db.query(models.SignatureRequest)
        .filter(
            models.SignatureRequest.status.in_(list(ACTIVE_REQUEST_STATUSES)),
            models.SignatureRequest.expires_at.isnot(None),
        )
        .all()
    )
    expired = 0
    for req in candidates:
        if is_past(req.expires_at):
            expire_request(db, req)
            expired += 1
    if expired:
        logger.info("Expired %d overdue signature request(s)", expired)
    return expired


# Sealing

def _stamps_for(db: Session, req: models.SignatureRequest) -> List[pdf_service.SignatureStamp]:
    fields = {f.id: f for f in req.fields}
    stamps = []
    for signature in signatures_repo.list_request_signatures(db, request_id=req.id):
        field = fields.get(signature.field_id)
        if field is None:
            logger.warning("Signature %s references a missing field", signature.id)
            continue
        stamps.append(pdf_service.SignatureStamp(
            page_number=field.page_number,
            x=field.x,
            y=field.y,
            width=field.width,
            height=field.height,
            field_type=field.type,
            signature_type=signature.signature_type,
            data=signature.signature_data,
            signed_at=signature.timestamp,
        ))
    return stamps


def seal_request(db: Session, req: models.SignatureRequest, storage: Optional[StorageService] = None) -> str:
    """Render collected signatures onto the document and store the sealed copy; returns its path."""
    storage = storage or get_storage_service()
    document = req.document
    if document is None:
        raise NotFoundError("Document not found")
    if document.mime_type != pdf_service.PDF_MIME_TYPE:
        raise WorkflowError("Certificates can only be generated for PDF documents")

    audit_id = req.seal_hash or pdf_service.generate_audit_id()
    req.seal_hash = audit_id
    try:
        sealed = pdf_service.seal_pdf(storage.read(document.file_path), _stamps_for(db, req), audit_id)
    except pdf_service.PdfSealError as exc:
        raise ServiceError(str(exc), 422) from exc

    path = storage.save(StorageService.sealed_path(req.organization_id, document.id, req.id), sealed)
    req.certificate_path = path
    req.sealed_sha256 = hashlib.sha256(sealed).hexdigest()
    if req.completed_at is None:
        req.completed_at = now_utc()
    signatures_repo.add_audit_entry(
        db,
        request_id=req.id,
        action="certificate_generated",
        metadata={"auditId": audit_id, "sha256": req.sealed_sha256},
    )
    db.commit()
    return path


# Participant-side session

def resolve_session(db: Session, access_token: str) -> Tuple[models.SignatureParticipant, models.SignatureRequest]:
    """Apply the session gate shared by every token-addressed action."""
    participant = signatures_repo.get_participant_by_token(db, access_token=access_token)
    if participant is None:
        raise NotFoundError("Invalid access token")
    req = participant.request

    if req.status not in ACTIVE_REQUEST_STATUSES:
        raise WorkflowError("This signature request is no longer active")
    if req.expires_at is not None and is_past(req.expires_at):
        expire_request(db, req)
        raise WorkflowError("This signature request has expired")

    if participant.status == ParticipantStatus.signed.value:
        raise WorkflowError("You have already signed this document")
    if participant.status == ParticipantStatus.declined.value:
        raise WorkflowError("You have declined this request")
    if participant.role == ParticipantRole.cc.value:
        raise WorkflowError("CC recipients do not sign")

    if req.workflow_type == WorkflowType.sequential.value:
        ahead = [
            p for p in _signing_participants(req)
            if p.order_index < participant.order_index and p.status != ParticipantStatus.signed.value
        ]
        if ahead:
            raise WorkflowError("Please wait for previous participants to sign", 409)
    return participant, req


def _mark_viewed(db: Session, participant: models.SignatureParticipant, req: models.SignatureRequest,
                 ip_address: Optional[str], user_agent: Optional[str]) -> bool:
    changed = False
    if participant.viewed_at is None:
        participant.viewed_at = now_utc()
        if participant.status in (ParticipantStatus.pending.value, ParticipantStatus.notified.value):
            participant.status = ParticipantStatus.viewed.value
        signatures_repo.add_audit_entry(
            db,
            request_id=req.id,
            participant_id=participant.id,
            action="participant_viewed",
            metadata={"participantEmail": participant.email},
            ip_address=ip_address,
            user_agent=user_agent,
        )
        changed = True
    if req.status == RequestStatus.sent.value:
        req.status = RequestStatus.in_progress.value
        changed = True
    return changed


def get_session(db: Session, access_token: str, ip_address: Optional[str] = None,
                user_agent: Optional[str] = None) -> Dict[str, Any]:
    participant, req = resolve_session(db, access_token)
    if _mark_viewed(db, participant, req, ip_address, user_agent):
        db.commit()
        db.refresh(participant)

    document = req.document
    fields = [f for f in req.fields if f.participant_id == participant.id]
    return {
        "participant": participant,
        "request_id": req.id,
        "request_title": req.title,
        "request_message": req.message,
        "request_status": req.status,
        "workflow_type": req.workflow_type,
        "expires_at": req.expires_at,
        "sender_name": _sender_name(req),
        "document": {
            "id": document.id,
            "name": document.name,
            "mime_type": document.mime_type,
            "size_bytes": document.size_bytes,
        },
        "fields": fields,
        "signatures": list(participant.signatures),
    }


def get_session_document(db: Session, access_token: str,
                         storage: Optional[StorageService] = None) -> Tuple[models.Document, bytes]:
    _, req = resolve_session(db, access_token)
    storage = storage or get_storage_service()
    document = req.document
    return document, storage.read(document.file_path)


def sign_field(db: Session, access_token: str, payload: schemas.SignFieldRequest,
               ip_address: Optional[str] = None, user_agent: Optional[str] = None) -> models.Signature:
    participant, req = resolve_session(db, access_token)
    field = signatures_repo.get_field(db, field_id=payload.field_id, request_id=req.id)
    if field is None or field.participant_id != participant.id:
        raise WorkflowError("Invalid field")
    if field.type == FieldType.dropdown.value and payload.signature_data not in (field.options or []):
        raise WorkflowError("Invalid option")

    _mark_viewed(db, participant, req, ip_address, user_agent)

    signature = signatures_repo.get_signature(db, participant_id=participant.id, field_id=field.id)
    if signature is None:
        signature = models.Signature(participant_id=participant.id, field_id=field.id)
        db.add(signature)
    signature.signature_data = payload.signature_data
    signature.signature_type = payload.signature_type.value
    signature.timestamp = now_utc()
    signature.ip_address = ip_address
    signature.user_agent = user_agent
    if field.type not in (FieldType.signature.value, FieldType.initials.value):
        field.value = payload.signature_data

    participant.ip_address = ip_address
    participant.user_agent = user_agent
    signatures_repo.add_audit_entry(
        db,
        request_id=req.id,
        participant_id=participant.id,
        action="field_signed",
        metadata={"fieldId": str(field.id), "fieldType": field.type, "signatureType": signature.signature_type},
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.commit()
    db.refresh(signature)
    return signature


def complete(db: Session, access_token: str, ip_address: Optional[str] = None,
             user_agent: Optional[str] = None) -> Dict[str, Any]:
    participant, req = resolve_session(db, access_token)

    required = {f.id for f in req.fields if f.participant_id == participant.id and f.required}
    if required - signatures_repo.signed_field_ids(db, participant_id=participant.id):
        raise WorkflowError("Please complete all required fields")

    # Serialize concurrent completions of the same request.
    req = signatures_repo.lock_request(db, request_id=req.id)
    now = now_utc()
    participant.status = ParticipantStatus.signed.value
    participant.signed_at = now
    participant.ip_address = ip_address or participant.ip_address
    participant.user_agent = user_agent or participant.user_agent
    if req.status == RequestStatus.sent.value:
        req.status = RequestStatus.in_progress.value
    signatures_repo.add_audit_entry(
        db,
        request_id=req.id,
        participant_id=participant.id,
        action="participant_signed",
        metadata={"participantEmail": participant.email},
        ip_address=ip_address,
        user_agent=user_agent,
    )

    request_completed = _all_signed(req)
    to_notify: List[models.SignatureParticipant] = []
    if request_completed:
        req.status = RequestStatus.completed.value
        req.completed_at = now
        signatures_repo.add_audit_entry(
            db,
            request_id=req.id,
            action="request_completed",
            metadata={"participantCount": len(req.participants)},
        )
    elif req.workflow_type == WorkflowType.sequential.value:
        to_notify = next_group(req, participant.order_index)
        _mark_notified(db, req, to_notify)
    db.commit()
    db.refresh(req)

    _fire_webhook(db, req, "participant.signed", _request_event_data(
        req, participant_id=str(participant.id), participant_email=participant.email))

    if request_completed:
        try:
            seal_request(db, req)
        except (ServiceError, OSError) as exc:
            db.rollback()
            logger.warning("Could not seal signature request %s: %s", req.id, exc)
        try:
            NotificationService(db).notify_request_completed(req)
        except Exception:
            logger.exception("Completion notifications failed for request %s", req.id)
        _fire_webhook(db, req, "signature_request.completed", _request_event_data(
            req, completed_at=req.completed_at.isoformat() if req.completed_at else None))
    else:
        _email_participants(db, req, to_notify)

    return {
        "participant_status": participant.status,
        "request_status": req.status,
        "request_completed": request_completed,
        "notified_participants": len(to_notify),
    }


def decline(db: Session, access_token: str, reason: Optional[str] = None,
            ip_address: Optional[str] = None, user_agent: Optional[str] = None) -> Dict[str, Any]:
    participant, req = resolve_session(db, access_token)
    reason = (reason or "").strip() or DEFAULT_DECLINE_REASON

    req = signatures_repo.lock_request(db, request_id=req.id)
    participant.status = ParticipantStatus.declined.value
    participant.declined_at = now_utc()
    participant.decline_reason = reason
    participant.ip_address = ip_address or participant.ip_address
    participant.user_agent = user_agent or participant.user_agent
    req.status = RequestStatus.declined.value
    signatures_repo.add_audit_entry(
        db,
        request_id=req.id,
        participant_id=participant.id,
        action="participant_declined",
        metadata={"participantEmail": participant.email, "reason": reason},
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.commit()
    db.refresh(req)

    try:
        NotificationService(db).notify_request_declined(req, participant, reason)
    except Exception:
        logger.exception("Decline notification failed for request %s", req.id)
    _fire_webhook(db, req, "signature_request.declined", _request_event_data(
        req, participant_id=str(participant.id), participant_email=participant.email, reason=reason))

    return {"participant_status": participant.status, "request_status": req.status}
