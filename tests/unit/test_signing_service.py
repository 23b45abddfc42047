from datetime import timedelta

import pytest

from insign.db import models, schemas
from insign.db.models import now_utc
from insign.db.repositories import signatures as signatures_repo
from insign.errors import NotFoundError, WorkflowError
from insign.services import signing_service


@pytest.fixture
def document(db, org, admin):
    doc = models.Document(
        organization_id=org.id,
        name="Lease",
        file_path=f"{org.id}/lease.txt",
        mime_type="text/plain",
        size_bytes=12,
        created_by=admin.id,
    )
    db.add(doc)
    db.commit()
    return doc


@pytest.fixture
def make_request(db, org, admin, document):
    def _make(participants, workflow="sequential", expires_at=None):
        payload = schemas.SignatureRequestCreate(
            document_id=document.id,
            title="Lease renewal",
            workflow_type=workflow,
            expires_at=expires_at,
            participants=[schemas.ParticipantCreate(**p) for p in participants],
        )
        return signatures_repo.create_request(db, organization_id=org.id, user_id=admin.id, payload=payload)
    return _make


def _by_email(req, email):
    return next(p for p in req.participants if p.email == email)


SEQUENTIAL = [
    {"email": "first@example.com", "full_name": "First", "order_index": 0},
    {"email": "second@example.com", "full_name": "Second", "order_index": 1},
    {"email": "watcher@example.com", "full_name": "Watcher", "role": "cc", "order_index": 2},
]


def test_initial_recipients_sequential_and_parallel(make_request):
    seq = make_request(SEQUENTIAL)
    assert [p.email for p in signing_service.initial_recipients(seq)] == ["first@example.com"]

    par = make_request(SEQUENTIAL, workflow="parallel")
    assert sorted(p.email for p in signing_service.initial_recipients(par)) == [
        "first@example.com", "second@example.com",
    ]


def test_send_requires_a_signer(make_request, db):
    req = make_request([{"email": "cc@example.com", "full_name": "Only CC", "role": "cc"}])
    with pytest.raises(WorkflowError, match="At least one signer or approver is required"):
        signing_service.send_request(db, req)


def test_sequential_flow_notifies_next_group(make_request, db, email_outbox, webhook_calls):
    req = make_request(SEQUENTIAL)
    assert signing_service.send_request(db, req) == 1
    assert req.status == "sent"
    assert len(email_outbox.to("first@example.com")) == 1
    assert email_outbox.to("second@example.com") == []

    with pytest.raises(WorkflowError, match="Request already sent"):
        signing_service.send_request(db, req)

    second = _by_email(req, "second@example.com")
    with pytest.raises(WorkflowError) as exc:
        signing_service.resolve_session(db, second.access_token)
    assert exc.value.status_code == 409

    first = _by_email(req, "first@example.com")
    result = signing_service.complete(db, first.access_token)
    assert result == {
        "participant_status": "signed",
        "request_status": "in_progress",
        "request_completed": False,
        "notified_participants": 1,
    }
    assert second.status == "notified"
    assert len(email_outbox.to("second@example.com")) == 1

    with pytest.raises(WorkflowError, match="You have already signed this document"):
        signing_service.resolve_session(db, first.access_token)

    watcher = _by_email(req, "watcher@example.com")
    with pytest.raises(WorkflowError, match="CC recipients do not sign"):
        signing_service.resolve_session(db, watcher.access_token)


def test_completion_without_pdf_still_completes(make_request, db, email_outbox):
    req = make_request(SEQUENTIAL[:1])
    signing_service.send_request(db, req)
    participant = req.participants[0]

    result = signing_service.complete(db, participant.access_token)
    assert result["request_completed"] is True
    db.refresh(req)
    assert req.status == "completed"
    assert req.certificate_path is None
    assert any(m["subject"] == "Completed: Lease renewal" for m in email_outbox.sent)


def test_required_fields_gate_completion(make_request, db):
    req = make_request(SEQUENTIAL[:1])
    participant = req.participants[0]
    field = signatures_repo.create_field(db, request_id=req.id, payload=schemas.FieldCreate(
        participant_id=participant.id, type="dropdown", page_number=1, x=10, y=10, width=80, height=20,
        options=["Yes", "No"],
    ))
    signing_service.send_request(db, req)

    with pytest.raises(WorkflowError, match="Please complete all required fields"):
        signing_service.complete(db, participant.access_token)

    bad = schemas.SignFieldRequest(field_id=field.id, signature_data="Maybe", signature_type="typed")
    with pytest.raises(WorkflowError, match="Invalid option"):
        signing_service.sign_field(db, participant.access_token, bad)

    good = schemas.SignFieldRequest(field_id=field.id, signature_data="Yes", signature_type="typed")
    signing_service.sign_field(db, participant.access_token, good)
    assert field.value == "Yes"
    assert signing_service.complete(db, participant.access_token)["request_completed"] is True


def test_decline_uses_default_reason(make_request, db, email_outbox):
    req = make_request(SEQUENTIAL, workflow="parallel")
    signing_service.send_request(db, req)
    second = _by_email(req, "second@example.com")

    result = signing_service.decline(db, second.access_token, reason="   ")
    assert result == {"participant_status": "declined", "request_status": "declined"}
    assert second.decline_reason == signing_service.DEFAULT_DECLINE_REASON

    first = _by_email(req, "first@example.com")
    with pytest.raises(WorkflowError, match="no longer active"):
        signing_service.resolve_session(db, first.access_token)


def test_unknown_token(db):
    with pytest.raises(NotFoundError, match="Invalid access token"):
        signing_service.resolve_session(db, "nope")


def test_expire_overdue_requests(make_request, db):
    overdue = make_request(SEQUENTIAL, expires_at=now_utc() + timedelta(days=1))
    signing_service.send_request(db, overdue)
    overdue.expires_at = now_utc() - timedelta(minutes=5)
    db.commit()
    current = make_request(SEQUENTIAL, expires_at=now_utc() + timedelta(days=3))
    signing_service.send_request(db, current)

    assert signing_service.expire_overdue_requests(db) == 1
    db.refresh(overdue)
    db.refresh(current)
    assert overdue.status == "expired"
    assert {p.status for p in overdue.participants} == {"expired"}
    assert current.status == "sent"


def test_cancel_only_from_open_states(make_request, db, webhook_calls):
    req = make_request(SEQUENTIAL)
    signing_service.cancel_request(db, req)
    assert req.status == "cancelled"
    with pytest.raises(WorkflowError, match="Cannot cancel this request"):
        signing_service.cancel_request(db, req)
