import json

import requests

from insign.db import models
from insign.services import webhook_service


def _hook(db, org, events, url="https://hooks.example.com/in", active=True):
    hook = models.Webhook(organization_id=org.id, url=url, events=events, secret="whsec_test", is_active=active)
    db.add(hook)
    db.commit()
    return hook


def test_signature_roundtrip():
    body = json.dumps({"event": "x"})
    signature = webhook_service.compute_signature(body, "whsec_abc")
    assert len(signature) == 64
    assert webhook_service.verify_signature(body, signature, "whsec_abc")
    assert not webhook_service.verify_signature(body, signature, "whsec_other")
    assert not webhook_service.verify_signature(body, "", "whsec_abc")


def test_deliver_signs_the_exact_body(db_session, org, webhook_calls):
    hook = _hook(db_session, org, ["document.uploaded"])
    result = webhook_service.deliver(hook, "document.uploaded", {"document_id": "1"})
    assert result == {"success": True, "status_code": 200}

    call = webhook_calls[0]
    payload = json.loads(call["data"])
    assert payload["event"] == "document.uploaded"
    assert payload["data"] == {"document_id": "1"}
    assert call["headers"][webhook_service.EVENT_HEADER] == "document.uploaded"
    assert webhook_service.verify_signature(call["data"], call["headers"][webhook_service.SIGNATURE_HEADER], "whsec_test")


def test_deliver_reports_network_errors(db_session, org, monkeypatch):
    hook = _hook(db_session, org, ["*"])

    def _boom(*args, **kwargs):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr("insign.services.webhook_service.requests.post", _boom)
    result = webhook_service.deliver(hook, "participant.signed", {})
    assert result["success"] is False
    assert "refused" in result["error"]


def test_trigger_fans_out_to_subscribed_active_hooks(db_session, org, make_org, webhook_calls):
    wanted = _hook(db_session, org, ["signature_request.completed"], url="https://a.example.com")
    _hook(db_session, org, ["*"], url="https://b.example.com")
    _hook(db_session, org, ["document.deleted"], url="https://c.example.com")
    _hook(db_session, org, ["signature_request.completed"], url="https://d.example.com", active=False)
    _hook(db_session, make_org(name="Other"), ["*"], url="https://e.example.com")

    results = webhook_service.trigger_org_webhooks(db_session, org.id, "signature_request.completed", {"x": 1})

    assert sorted(c["url"] for c in webhook_calls) == ["https://a.example.com", "https://b.example.com"]
    assert len(results) == 2
    db_session.refresh(wanted)
    assert wanted.last_triggered_at is not None
