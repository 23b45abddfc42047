import re
import uuid

import pytest

from insign.services.notification_service import (
    EVENT_SIGNATURE_COMPLETED,
    EVENT_SIGNATURE_DECLINED,
    NotificationService,
)

from tests.helpers import auth_headers


@pytest.fixture
def notify(db):
    def _notify(user, title="Heads up", event_type=EVENT_SIGNATURE_COMPLETED):
        return NotificationService(db).create_notification(
            user_id=user.id, event_type=event_type, title=title, message=f"{title}!"
        )
    return _notify


@pytest.fixture
def sent_request(client, admin_headers, upload_document, email_outbox):
    """A sent one-signer request on a text document; returns (request, signing token)."""
    def _send(email="signer@example.com", title="Statement of work"):
        doc = upload_document(admin_headers, content=b"scope and fees", filename="sow.txt")
        resp = client.post("/signature-requests", json={
            "document_id": doc["id"],
            "title": title,
            "participants": [{"email": email, "full_name": "Sam Signer"}],
        }, headers=admin_headers)
        assert resp.status_code == 201, resp.text
        req = resp.json()
        client.post(f"/signature-requests/{req['id']}/send", headers=admin_headers)
        token = re.search(r"/sign/([A-Za-z0-9_\-]+)", email_outbox.to(email)[-1]["text"]).group(1)
        return req, token
    return _send


def test_list_and_mark_read(client, admin, admin_headers, notify):
    first = notify(admin, "First")
    notify(admin, "Second")

    body = client.get("/notifications", headers=admin_headers).json()
    assert body["unread_count"] == 2
    assert body["total_count"] == 2
    assert {n["title"] for n in body["notifications"]} == {"First", "Second"}

    assert client.post(f"/notifications/{first.id}/read", headers=admin_headers).status_code == 204
    assert client.get("/notifications/unread-count", headers=admin_headers).json() == {"unread_count": 1}

    unread = client.get("/notifications?unread_only=true", headers=admin_headers).json()
    assert [n["title"] for n in unread["notifications"]] == ["Second"]
    assert unread["total_count"] == 2

    assert client.post("/notifications/read-all", headers=admin_headers).json() == {"unread_count": 0}


def test_cannot_read_someone_elses_notification(client, org, admin, make_user, notify):
    note = notify(admin)
    other = make_user(org)
    resp = client.post(f"/notifications/{note.id}/read", headers=auth_headers(other))
    assert resp.status_code == 404
    assert client.post(f"/notifications/{uuid.uuid4()}/read", headers=auth_headers(other)).status_code == 404
    assert client.get("/notifications", headers=auth_headers(other)).json()["total_count"] == 0


def test_preferences_defaults_and_update(client, admin_headers):
    prefs = client.get("/notifications/preferences", headers=admin_headers).json()["preferences"]
    assert prefs[EVENT_SIGNATURE_COMPLETED] == {"email_enabled": True, "in_app_enabled": True}
    assert prefs[EVENT_SIGNATURE_DECLINED] == {"email_enabled": True, "in_app_enabled": True}

    resp = client.put(f"/notifications/preferences/{EVENT_SIGNATURE_DECLINED}",
                      json={"in_app_enabled": False}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["email_enabled"] is True
    assert resp.json()["in_app_enabled"] is False

    prefs = client.get("/notifications/preferences", headers=admin_headers).json()["preferences"]
    assert prefs[EVENT_SIGNATURE_DECLINED] == {"email_enabled": True, "in_app_enabled": False}

    bad = client.put("/notifications/preferences/password_reset", json={"email_enabled": False},
                     headers=admin_headers)
    assert bad.status_code == 400
    assert bad.json()["detail"].startswith("Invalid event type")


def test_disabled_decline_email_still_leaves_in_app_notice(client, admin, admin_headers, sent_request, email_outbox):
    client.put(f"/notifications/preferences/{EVENT_SIGNATURE_DECLINED}",
               json={"email_enabled": False}, headers=admin_headers)
    _req, token = sent_request()

    assert client.post(f"/sign/{token}/decline", json={"reason": "Wrong rate"}).status_code == 200
    assert not any(m["subject"].startswith("Declined:") for m in email_outbox.to(admin.email))

    notes = client.get("/notifications", headers=admin_headers).json()["notifications"]
    assert len(notes) == 1
    assert notes[0]["event_type"] == EVENT_SIGNATURE_DECLINED
    assert "Wrong rate" in notes[0]["message"]


def test_completion_preferences(client, admin, admin_headers, sent_request, email_outbox):
    client.put(f"/notifications/preferences/{EVENT_SIGNATURE_COMPLETED}",
               json={"email_enabled": False, "in_app_enabled": False}, headers=admin_headers)
    req, token = sent_request(title="Retainer")

    assert client.post(f"/sign/{token}/complete").json()["request_completed"] is True
    # the signer is still told, the creator opted out of both channels
    assert [m["subject"] for m in email_outbox.to("signer@example.com")][-1] == "Completed: Retainer"
    assert email_outbox.to(admin.email) == []
    assert client.get("/notifications/unread-count", headers=admin_headers).json() == {"unread_count": 0}


def test_list_limit_is_bounded(client, admin, admin_headers, notify):
    for i in range(3):
        notify(admin, f"Note {i}")
    assert len(client.get("/notifications?limit=2", headers=admin_headers).json()["notifications"]) == 2
    assert client.get("/notifications?limit=0", headers=admin_headers).status_code == 422
    assert client.get("/notifications?limit=201", headers=admin_headers).status_code == 422
