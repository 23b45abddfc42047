import re
import uuid
from datetime import timedelta

import pytest

from insign.db import models
from insign.db.models import now_utc
from insign.services.pdf_service import extract_text
from insign.utils.role_permissions import ROLE_VIEWER

from tests.helpers import auth_headers, make_pdf


def _signing_token(outbox, email):
    messages = outbox.to(email)
    assert messages, f"no email for {email}"
    return re.search(r"/sign/([A-Za-z0-9_\-]+)", messages[-1]["text"]).group(1)


@pytest.fixture
def pdf_document(admin_headers, upload_document):
    return upload_document(admin_headers, content=make_pdf(pages=2), filename="msa.pdf",
                           mime_type="application/pdf", name="MSA.pdf")


@pytest.fixture
def create_request(client, admin_headers):
    def _create(document_id, participants, workflow="sequential", title="Master services agreement"):
        resp = client.post("/signature-requests", json={
            "document_id": document_id,
            "title": title,
            "message": "Please review",
            "workflow_type": workflow,
            "participants": participants,
        }, headers=admin_headers)
        assert resp.status_code == 201, resp.text
        return resp.json()
    return _create


def _participant(req, email):
    return next(p for p in req["participants"] if p["email"] == email)


def test_sequential_signing_produces_sealed_certificate(
    client, admin, admin_headers, pdf_document, create_request, email_outbox,
):
    req = create_request(pdf_document["id"], [
        {"email": "jane@example.com", "full_name": "Jane Doe", "order_index": 0},
        {"email": "bob@example.com", "full_name": "Bob Roe", "order_index": 1},
        {"email": "watcher@example.com", "full_name": "Watcher", "role": "cc", "order_index": 2},
    ])
    assert req["status"] == "draft"
    assert req["participant_count"] == 3
    base = f"/signature-requests/{req['id']}"
    jane = _participant(req, "jane@example.com")
    bob = _participant(req, "bob@example.com")

    sig_field = client.post(f"{base}/fields", json={
        "participant_id": jane["id"], "type": "signature", "page_number": 1,
        "x": 72, "y": 600, "width": 200, "height": 50,
    }, headers=admin_headers).json()
    text_field = client.post(f"{base}/fields", json={
        "participant_id": bob["id"], "type": "text", "page_number": 2,
        "x": 72, "y": 500, "width": 200, "height": 30, "label": "Company",
    }, headers=admin_headers).json()
    assert len(client.get(f"{base}/fields", headers=admin_headers).json()) == 2

    sent = client.post(f"{base}/send", headers=admin_headers)
    assert sent.json()["notified_participants"] == 1
    assert email_outbox.to("bob@example.com") == []
    assert email_outbox.to("watcher@example.com") == []

    locked = client.post(f"{base}/fields", json={
        "participant_id": jane["id"], "type": "initials", "page_number": 1,
        "x": 10, "y": 10, "width": 40, "height": 20,
    }, headers=admin_headers)
    assert locked.status_code == 400
    assert locked.json()["detail"] == "Cannot modify fields after request is sent"

    jane_token = _signing_token(email_outbox, "jane@example.com")

    session = client.get(f"/sign/{jane_token}")
    assert session.status_code == 200, session.text
    body = session.json()
    assert body["participant"]["status"] == "viewed"
    assert body["request_status"] == "in_progress"
    assert body["sender_name"] == "Ada Admin"
    assert [f["id"] for f in body["fields"]] == [sig_field["id"]]

    original = client.get(f"/sign/{jane_token}/document")
    assert original.content.startswith(b"%PDF")

    early = client.post(f"/sign/{jane_token}/complete")
    assert early.status_code == 400
    assert early.json()["detail"] == "Please complete all required fields"

    signed = client.post(f"/sign/{jane_token}/fields", json={
        "field_id": sig_field["id"], "signature_data": "Jane Doe", "signature_type": "typed",
    })
    assert signed.status_code == 200, signed.text
    wrong_field = client.post(f"/sign/{jane_token}/fields", json={
        "field_id": text_field["id"], "signature_data": "x", "signature_type": "typed",
    })
    assert wrong_field.status_code == 400
    assert wrong_field.json()["detail"] == "Invalid field"

    done = client.post(f"/sign/{jane_token}/complete").json()
    assert done == {
        "participant_status": "signed",
        "request_status": "in_progress",
        "request_completed": False,
        "notified_participants": 1,
    }
    again = client.get(f"/sign/{jane_token}")
    assert again.status_code == 400
    assert again.json()["detail"] == "You have already signed this document"

    bob_token = _signing_token(email_outbox, "bob@example.com")
    client.post(f"/sign/{bob_token}/fields", json={
        "field_id": text_field["id"], "signature_data": "Acme Corp", "signature_type": "typed",
    })
    final = client.post(f"/sign/{bob_token}/complete").json()
    assert final["request_completed"] is True
    assert final["request_status"] == "completed"

    detail = client.get(base, headers=admin_headers).json()
    assert detail["status"] == "completed"
    assert detail["has_certificate"] is True
    assert detail["signed_count"] == 2
    assert next(f for f in detail["fields"] if f["id"] == text_field["id"])["value"] == "Acme Corp"

    cert = client.get(f"{base}/certificate", headers=admin_headers)
    assert cert.status_code == 200
    text = extract_text(cert.content, "application/pdf")
    assert f"Document ID: {detail['seal_hash']} | Page 1 of 2" in text
    assert "Jane Doe" in text
    assert "Acme Corp" in text

    for email in (admin.email, "jane@example.com", "bob@example.com", "watcher@example.com"):
        assert any(m["subject"] == "Completed: Master services agreement" for m in email_outbox.to(email))

    actions = [e["action"] for e in client.get(f"{base}/audit", headers=admin_headers).json()]
    for expected in ("request_created", "request_sent", "participant_notified", "participant_viewed",
                     "field_signed", "participant_signed", "request_completed", "certificate_generated"):
        assert expected in actions

    org_trail = client.get("/signature-requests/audit", headers=admin_headers).json()
    assert {e["request_title"] for e in org_trail} == {"Master services agreement"}

    notes = client.get("/notifications", headers=admin_headers).json()
    assert any(n["event_type"] == "signature_request_completed" for n in notes["notifications"])


def test_waiting_participant_gets_conflict(client, pdf_document, create_request, admin_headers, db):
    req = create_request(pdf_document["id"], [
        {"email": "first@example.com", "full_name": "First", "order_index": 0},
        {"email": "second@example.com", "full_name": "Second", "order_index": 1},
    ])
    client.post(f"/signature-requests/{req['id']}/send", headers=admin_headers)
    second = db.get(models.SignatureParticipant, uuid.UUID(_participant(req, "second@example.com")["id"]))
    resp = client.get(f"/sign/{second.access_token}")
    assert resp.status_code == 409
    assert resp.json()["detail"] == "Please wait for previous participants to sign"


def test_parallel_decline_notifies_creator(
    client, admin, admin_headers, pdf_document, create_request, email_outbox, webhook_calls,
):
    req = create_request(pdf_document["id"], [
        {"email": "a@example.com", "full_name": "Ann"},
        {"email": "b@example.com", "full_name": "Ben"},
    ], workflow="parallel", title="NDA")
    sent = client.post(f"/signature-requests/{req['id']}/send", headers=admin_headers)
    assert sent.json()["notified_participants"] == 2

    reminded = client.post(f"/signature-requests/{req['id']}/remind", headers=admin_headers)
    assert reminded.json()["notified_participants"] == 2
    assert email_outbox.to("a@example.com")[-1]["subject"] == "Reminder: Signature Request: NDA"

    ben_token = _signing_token(email_outbox, "b@example.com")
    declined = client.post(f"/sign/{ben_token}/decline", json={"reason": "Terms unacceptable"})
    assert declined.json() == {"participant_status": "declined", "request_status": "declined"}

    [notice] = email_outbox.to(admin.email)
    assert notice["subject"] == "Declined: NDA"
    assert "Terms unacceptable" in notice["text"]

    ann_token = _signing_token(email_outbox, "a@example.com")
    blocked = client.get(f"/sign/{ann_token}")
    assert blocked.status_code == 400
    assert blocked.json()["detail"] == "This signature request is no longer active"

    unread = client.get("/notifications/unread-count", headers=admin_headers).json()
    assert unread["unread_count"] == 1


def test_decline_without_body_uses_default_reason(client, pdf_document, create_request, admin_headers,
                                                  email_outbox):
    req = create_request(pdf_document["id"], [{"email": "solo@example.com", "full_name": "Solo"}])
    client.post(f"/signature-requests/{req['id']}/send", headers=admin_headers)
    token = _signing_token(email_outbox, "solo@example.com")
    assert client.post(f"/sign/{token}/decline").status_code == 200
    detail = client.get(f"/signature-requests/{req['id']}", headers=admin_headers).json()
    assert detail["participants"][0]["decline_reason"] == "No reason provided"


def test_cancel_and_expire(client, db, pdf_document, create_request, admin_headers, email_outbox):
    cancelled = create_request(pdf_document["id"], [{"email": "c@example.com", "full_name": "Cy"}])
    client.post(f"/signature-requests/{cancelled['id']}/send", headers=admin_headers)
    resp = client.post(f"/signature-requests/{cancelled['id']}/cancel", headers=admin_headers)
    assert resp.json()["status"] == "cancelled"
    token = _signing_token(email_outbox, "c@example.com")
    assert client.get(f"/sign/{token}").status_code == 400

    overdue = create_request(pdf_document["id"], [{"email": "d@example.com", "full_name": "Di"}])
    client.post(f"/signature-requests/{overdue['id']}/send", headers=admin_headers)
    row = db.get(models.SignatureRequest, uuid.UUID(overdue["id"]))
    row.expires_at = now_utc() - timedelta(hours=1)
    db.commit()
    token = _signing_token(email_outbox, "d@example.com")
    expired = client.get(f"/sign/{token}")
    assert expired.status_code == 400
    assert expired.json()["detail"] == "This signature request has expired"
    assert client.get(f"/signature-requests/{overdue['id']}", headers=admin_headers).json()["status"] == "expired"


def test_draft_management(client, pdf_document, create_request, admin_headers):
    req = create_request(pdf_document["id"], [{"email": "e@example.com", "full_name": "Eve"}])
    base = f"/signature-requests/{req['id']}"

    dup = client.post(f"{base}/participants", json={"email": "E@example.com", "full_name": "Eve"},
                      headers=admin_headers)
    assert dup.status_code == 409
    added = client.post(f"{base}/participants", json={"email": "f@example.com", "full_name": "Fay"},
                        headers=admin_headers)
    assert added.status_code == 201
    assert client.delete(f"{base}/participants/{added.json()['id']}", headers=admin_headers).status_code == 204

    renamed = client.patch(base, json={"title": "Renamed"}, headers=admin_headers)
    assert renamed.json()["title"] == "Renamed"

    no_options = client.post(f"{base}/fields", json={
        "participant_id": req["participants"][0]["id"], "type": "dropdown", "page_number": 1,
        "x": 0, "y": 0, "width": 50, "height": 20,
    }, headers=admin_headers)
    assert no_options.status_code == 422

    listed = client.get("/signature-requests", params={"status": "draft"}, headers=admin_headers).json()
    assert [r["id"] for r in listed] == [req["id"]]
    assert client.delete(base, headers=admin_headers).status_code == 204
    assert client.get(base, headers=admin_headers).status_code == 404


def test_send_rules(client, pdf_document, create_request, admin_headers):
    cc_only = create_request(pdf_document["id"], [{"email": "cc@example.com", "full_name": "CC", "role": "cc"}])
    resp = client.post(f"/signature-requests/{cc_only['id']}/send", headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "At least one signer or approver is required"

    dup = client.post("/signature-requests", json={
        "document_id": pdf_document["id"],
        "title": "Dup",
        "participants": [
            {"email": "x@example.com", "full_name": "X"},
            {"email": "X@example.com", "full_name": "X again"},
        ],
    }, headers=admin_headers)
    assert dup.status_code == 422

    assert client.get("/sign/definitely-not-a-token").status_code == 404


def test_certificate_requires_pdf(client, admin_headers, upload_document, create_request, email_outbox):
    doc = upload_document(admin_headers, content=b"plain text terms", filename="terms.txt")
    req = create_request(doc["id"], [{"email": "t@example.com", "full_name": "Tia"}])
    client.post(f"/signature-requests/{req['id']}/send", headers=admin_headers)
    token = _signing_token(email_outbox, "t@example.com")
    assert client.post(f"/sign/{token}/complete").json()["request_completed"] is True

    detail = client.get(f"/signature-requests/{req['id']}", headers=admin_headers).json()
    assert detail["status"] == "completed"
    assert detail["has_certificate"] is False
    assert client.get(f"/signature-requests/{req['id']}/certificate", headers=admin_headers).status_code == 404
    regen = client.post(f"/signature-requests/{req['id']}/certificate", headers=admin_headers)
    assert regen.status_code == 400
    assert regen.json()["detail"] == "Certificates can only be generated for PDF documents"


def test_viewer_cannot_create_requests(client, org, make_user, pdf_document):
    viewer = make_user(org, ROLE_VIEWER)
    resp = client.post("/signature-requests", json={
        "document_id": pdf_document["id"],
        "title": "Nope",
        "participants": [{"email": "z@example.com", "full_name": "Z"}],
    }, headers=auth_headers(viewer))
    assert resp.status_code == 403
