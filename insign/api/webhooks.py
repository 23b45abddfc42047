"""
Organization webhooks. The signing secret is returned once, on create.
"""
import uuid
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from insign.api.deps import get_current_user_context
from insign.api.permissions import ensure_permission
from insign.audit import AuditAction, log_for_user
from insign.db import schemas
from insign.db.database import get_db
from insign.db.repositories import webhooks as webhooks_repo
from insign.services import webhook_service

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def _get_webhook_or_404(db: Session, webhook_id: uuid.UUID, organization_id: uuid.UUID):
    hook = webhooks_repo.get_webhook(db, webhook_id=webhook_id, organization_id=organization_id)
    if hook is None:
        raise HTTPException(status_code=404, detail="Webhook not found")
    return hook


@router.get("/events", response_model=List[str])
def list_events(user_context=Depends(get_current_user_context)):
    _user, current_user = user_context
    ensure_permission(current_user, "webhooks:read")
    return list(schemas.WEBHOOK_EVENTS)


@router.get("", response_model=List[schemas.Webhook])
def list_webhooks(
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "webhooks:read")
    return webhooks_repo.list_webhooks(db, organization_id=current_user["organization_id"])


@router.post("", response_model=schemas.WebhookCreateResponse, status_code=status.HTTP_201_CREATED)
def create_webhook(
    payload: schemas.WebhookCreate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_permission(current_user, "webhooks:write")
    hook = webhooks_repo.create_webhook(
        db, organization_id=current_user["organization_id"], user_id=user.id, payload=payload
    )
    log_for_user(db, current_user, action=AuditAction.WEBHOOK_CREATE, target_type="webhook", target_id=hook.id,
                 metadata={"url": hook.url, "events": list(hook.events)})
    return schemas.WebhookCreateResponse.model_validate(hook)


@router.get("/{webhook_id}", response_model=schemas.Webhook)
def get_webhook(
    webhook_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "webhooks:read")
    return _get_webhook_or_404(db, webhook_id, current_user["organization_id"])


@router.patch("/{webhook_id}", response_model=schemas.Webhook)
def update_webhook(
    webhook_id: uuid.UUID,
    payload: schemas.WebhookUpdate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "webhooks:write")
    hook = _get_webhook_or_404(db, webhook_id, current_user["organization_id"])
    hook = webhooks_repo.update_webhook(db, hook=hook, payload=payload)
    log_for_user(db, current_user, action=AuditAction.WEBHOOK_UPDATE, target_type="webhook", target_id=hook.id,
                 metadata={"fields": sorted(payload.model_fields_set)})
    return hook


@router.delete("/{webhook_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_webhook(
    webhook_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "webhooks:delete")
    hook = _get_webhook_or_404(db, webhook_id, current_user["organization_id"])
    url = hook.url
    webhooks_repo.delete_webhook(db, hook=hook)
    log_for_user(db, current_user, action=AuditAction.WEBHOOK_DELETE, target_type="webhook", target_id=webhook_id,
                 metadata={"url": url})
    return None


@router.post("/{webhook_id}/test", response_model=schemas.WebhookTestResponse)
def test_webhook(
    webhook_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "webhooks:write")
    hook = _get_webhook_or_404(db, webhook_id, current_user["organization_id"])
    return webhook_service.send_test(db, hook)
