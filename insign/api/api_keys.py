"""
API key management for the current user.

The full ``isk_<token_id>_<secret>`` string is only returned by create.
"""
import uuid
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from insign.api.deps import get_current_user_context
from insign.api.permissions import ensure_interactive_caller
from insign.audit import AuditAction, log_for_user
from insign.db import schemas
from insign.db.database import get_db
from insign.db.repositories import tokens as token_repo

router = APIRouter(prefix="/api-keys", tags=["api-keys"])


def _owned_key(db: Session, key_id: uuid.UUID, user_id: uuid.UUID):
    key = token_repo.get_key_owned(db, key_id=key_id, user_id=user_id)
    if key is None or key.kind != "api_key":
        raise HTTPException(status_code=404, detail="API key not found")
    return key


@router.get("", response_model=List[schemas.ApiKeyResponse])
def list_api_keys(
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_interactive_caller(current_user)
    return token_repo.list_api_keys(db, user_id=user.id)


@router.post("", response_model=schemas.ApiKeyCreateResponse, status_code=status.HTTP_201_CREATED)
def create_api_key(
    payload: schemas.ApiKeyCreateRequest,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_interactive_caller(current_user)
    key, full_token = token_repo.create_api_key(db, user=user, payload=payload)
    log_for_user(
        db,
        current_user,
        action=AuditAction.API_KEY_CREATE,
        target_type="api_key",
        target_id=key.id,
        metadata={
            "name": key.name,
            "scopes": list(key.scopes or []),
            "expires_at": key.expires_at.isoformat() if key.expires_at else None,
        },
    )
    return schemas.ApiKeyCreateResponse(
        **schemas.ApiKeyResponse.model_validate(key, from_attributes=True).model_dump(),
        key=full_token,
    )


@router.post("/{key_id}/revoke", response_model=schemas.ApiKeyResponse)
def revoke_api_key(
    key_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_interactive_caller(current_user)
    key = token_repo.revoke_key(db, key=_owned_key(db, key_id, user.id))
    log_for_user(db, current_user, action=AuditAction.API_KEY_REVOKE, target_type="api_key", target_id=key.id)
    return key


@router.delete("/{key_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_api_key(
    key_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_interactive_caller(current_user)
    token_repo.delete_key(db, key=_owned_key(db, key_id, user.id))
    log_for_user(db, current_user, action=AuditAction.API_KEY_DELETE, target_type="api_key", target_id=key_id)
    return None
