import json

from insign.services import webhook_service
from insign.utils.role_permissions import ROLE_MEMBER

from tests.helpers import auth_headers


def _create_hook(client, headers, **overrides):
    payload = {"url": "https://hooks.example.com/insign", "events": ["document.uploaded"]}
    payload.update(overrides)
    resp = client.post("/webhooks", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_create_returns_secret_once(client, admin_headers):
    hook = _create_hook(client, admin_headers, description="CRM sync")
    assert hook["secret"]
    assert hook["events"] == ["document.uploaded"]
    assert hook["is_active"] is True

    listed = client.get("/webhooks", headers=admin_headers).json()
    assert [h["id"] for h in listed] == [hook["id"]]
    assert "secret" not in listed[0]
    assert "secret" not in client.get(f"/webhooks/{hook['id']}", headers=admin_headers).json()


def test_event_catalog(client, admin_headers):
    events = client.get("/webhooks/events", headers=admin_headers).json()
    assert "signature_request.completed" in events
    assert "document.uploaded" in events


def test_create_validation(client, admin_headers):
    resp = client.post("/webhooks", json={"url": "ftp://example.com", "events": ["document.uploaded"]},
                       headers=admin_headers)
    assert resp.status_code == 422
    assert "Invalid URL" in resp.text

    resp = client.post("/webhooks", json={"url": "https://example.com", "events": []}, headers=admin_headers)
    assert resp.status_code == 422
    assert "Select at least one event" in resp.text

    resp = client.post("/webhooks", json={"url": "https://example.com", "events": ["document.renamed"]},
                       headers=admin_headers)
    assert resp.status_code == 422
    assert "Unknown event: document.renamed" in resp.text


def test_member_cannot_manage_webhooks(client, org, make_user):
    member = make_user(org, ROLE_MEMBER)
    assert client.get("/webhooks", headers=auth_headers(member)).status_code == 403
    resp = client.post("/webhooks", json={"url": "https://example.com", "events": ["*"]},
                       headers=auth_headers(member))
    assert resp.status_code == 403


def test_send_test_event(client, admin_headers, webhook_calls):
    hook = _create_hook(client, admin_headers)
    resp = client.post(f"/webhooks/{hook['id']}/test", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "status_code": 200, "error": None}

    assert len(webhook_calls) == 1
    call = webhook_calls[0]
    assert call["url"] == "https://hooks.example.com/insign"
    assert call["headers"][webhook_service.EVENT_HEADER] == "webhook.test"
    assert webhook_service.verify_signature(
        call["data"], call["headers"][webhook_service.SIGNATURE_HEADER], hook["secret"]
    )

    refreshed = client.get(f"/webhooks/{hook['id']}", headers=admin_headers).json()
    assert refreshed["last_triggered_at"] is not None


def test_upload_fans_out_to_subscribed_hooks(client, admin_headers, upload_document, webhook_calls):
    subscribed = _create_hook(client, admin_headers, url="https://a.example.com/hook")
    _create_hook(client, admin_headers, url="https://b.example.com/hook", events=["*"])
    _create_hook(client, admin_headers, url="https://c.example.com/hook", events=["document.deleted"])
    _create_hook(client, admin_headers, url="https://d.example.com/hook", is_active=False)

    doc = upload_document(admin_headers, name="Quote")

    urls = sorted(c["url"] for c in webhook_calls)
    assert urls == ["https://a.example.com/hook", "https://b.example.com/hook"]
    call = next(c for c in webhook_calls if c["url"] == subscribed["url"])
    body = json.loads(call["data"])
    assert body["event"] == "document.uploaded"
    assert body["data"]["document_id"] == doc["id"]
    assert body["data"]["name"] == "Quote"
    assert webhook_service.verify_signature(
        call["data"], call["headers"][webhook_service.SIGNATURE_HEADER], subscribed["secret"]
    )


def test_update_and_delete(client, admin_headers, upload_document, webhook_calls):
    hook = _create_hook(client, admin_headers)

    resp = client.patch(f"/webhooks/{hook['id']}", json={"is_active": False}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["is_active"] is False
    upload_document(admin_headers)
    assert webhook_calls == []

    resp = client.patch(f"/webhooks/{hook['id']}", json={"events": ["bogus"]}, headers=admin_headers)
    assert resp.status_code == 422

    assert client.delete(f"/webhooks/{hook['id']}", headers=admin_headers).status_code == 204
    assert client.get(f"/webhooks/{hook['id']}", headers=admin_headers).status_code == 404

    actions = [a["action_type"] for a in client.get("/audits?target_type=webhook", headers=admin_headers).json()]
    assert sorted(actions) == ["webhook_create", "webhook_delete", "webhook_update"]


def test_webhooks_are_tenant_scoped(client, admin_headers, make_org, make_user):
    hook = _create_hook(client, admin_headers)
    other_admin = make_user(make_org(name="Globex"))
    assert client.get(f"/webhooks/{hook['id']}", headers=auth_headers(other_admin)).status_code == 404
    assert client.get("/webhooks", headers=auth_headers(other_admin)).json() == []
