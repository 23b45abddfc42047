"""
Outgoing webhook delivery.

Payloads are JSON ``{"event", "timestamp", "data"}``. The exact request body
is signed with the hook's secret (HMAC-SHA256, hex) and sent in
``X-Insign-Signature``; receivers recompute it with `verify_signature`.
"""

import hashlib
import hmac
import json
import logging
import uuid
from typing import Any, Dict, List

import requests
from sqlalchemy.orm import Session

from insign.db import models
from insign.db.models import now_utc
from insign.db.repositories import webhooks as webhooks_repo
from insign.utils.runtime import webhook_timeout_seconds

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Insign-Signature"
EVENT_HEADER = "X-Insign-Event"
TEST_EVENT = "webhook.test"


def build_payload(event: str, data: Dict[str, Any]) -> Dict[str, Any]:
    return {"event": event, "timestamp": now_utc().isoformat(), "data": data}


def compute_signature(body: str, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), body.encode("utf-8"), hashlib.sha256).hexdigest()


def verify_signature(payload: str, signature: str, secret: str) -> bool:
    """Constant-time check of a received ``X-Insign-Signature`` value."""
    if not signature or not secret:
        return False
    return hmac.compare_digest(compute_signature(payload, secret), signature)


def deliver(hook: models.Webhook, event: str, data: Dict[str, Any]) -> Dict[str, Any]:
    body = json.dumps(build_payload(event, data), default=str)
    headers = {
        "Content-Type": "application/json",
        SIGNATURE_HEADER: compute_signature(body, hook.secret),
        EVENT_HEADER: event,
    }
    try:
        response = requests.post(hook.url, data=body, headers=headers, timeout=webhook_timeout_seconds())
    except requests.RequestException as exc:
        logger.warning("Webhook %s delivery of %s failed: %s", hook.id, event, exc)
        return {"success": False, "error": str(exc)}

    ok = 200 <= response.status_code < 300
    if not ok:
        logger.warning("Webhook %s returned HTTP %s for %s", hook.id, response.status_code, event)
    return {"success": ok, "status_code": response.status_code}


def trigger_org_webhooks(db: Session, organization_id: uuid.UUID, event: str, data: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Fan an event out to every active subscribed hook. Never raises."""
    results: List[Dict[str, Any]] = []
    try:
        hooks = webhooks_repo.list_subscribed(db, organization_id=organization_id, event=event)
    except Exception:
        logger.exception("Could not load webhooks for organization %s", organization_id)
        return results

    for hook in hooks:
        result = deliver(hook, event, data)
        results.append({"webhook_id": str(hook.id), **result})
        try:
            webhooks_repo.touch(db, hook=hook)
        except Exception:
            db.rollback()
            logger.exception("Could not record delivery time for webhook %s", hook.id)
    return results


def send_test(db: Session, hook: models.Webhook) -> Dict[str, Any]:
    result = deliver(hook, TEST_EVENT, {"webhook_id": str(hook.id), "message": "This is a test event from Insign"})
    webhooks_repo.touch(db, hook=hook)
    return result
