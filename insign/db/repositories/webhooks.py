"""
Webhook subscription repository.
"""
from __future__ import annotations

import uuid
from typing import List, Optional

from sqlalchemy.orm import Session

from insign.db import models, schemas
from insign.utils import token_crypto


def list_webhooks(db: Session, *, organization_id: uuid.UUID) -> List[models.Webhook]:
    return (
        db.query(models.Webhook)
        .filter(models.Webhook.organization_id == organization_id)
        .order_by(models.Webhook.created_at.desc())
        .all()
    )


def list_subscribed(db: Session, *, organization_id: uuid.UUID, event: str) -> List[models.Webhook]:
    """Active webhooks whose events include `event` or the '*' wildcard."""
    hooks = (
        db.query(models.Webhook)
        .filter(models.Webhook.organization_id == organization_id, models.Webhook.is_active.is_(True))
        .all()
    )
    # JSON containment differs between Postgres and SQLite; filter in Python.
    return [h for h in hooks if event in (h.events or []) or "*" in (h.events or [])]


def get_webhook(db: Session, *, webhook_id: uuid.UUID, organization_id: uuid.UUID) -> Optional[models.Webhook]:
    return (
        db.query(models.Webhook)
        .filter(models.Webhook.id == webhook_id, models.Webhook.organization_id == organization_id)
        .first()
    )


def create_webhook(db: Session, *, organization_id: uuid.UUID, user_id: uuid.UUID, payload: schemas.WebhookCreate) -> models.Webhook:
    hook = models.Webhook(
        organization_id=organization_id,
        url=payload.url,
        events=list(payload.events),
        description=payload.description,
        is_active=payload.is_active,
        secret=token_crypto.generate_webhook_secret(),
        created_by=user_id,
    )
    db.add(hook)
    db.commit()
    db.refresh(hook)
    return hook


def update_webhook(db: Session, *, hook: models.Webhook, payload: schemas.WebhookUpdate) -> models.Webhook:
    for key, value in payload.model_dump(exclude_unset=True).items():
        if value is not None or key == "description":
            setattr(hook, key, value)
    db.commit()
    db.refresh(hook)
    return hook


def delete_webhook(db: Session, *, hook: models.Webhook) -> None:
    db.delete(hook)
    db.commit()


def touch(db: Session, *, hook: models.Webhook) -> None:
    hook.last_triggered_at = models.now_utc()
    db.commit()
