"""
Repositories for API keys and login session tokens.

Implements create/list/get/revoke/delete and last-used updates.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from insign.db import models, schemas
from insign.utils import token_crypto

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _issue(
    db: Session,
    *,
    user: models.User,
    name: str,
    scopes: List[str],
    kind: str,
    expires_at: Optional[datetime],
) -> Tuple[models.ApiKey, str]:
    token_id, secret, full_token = token_crypto.generate_token()
    prefix, last_four = token_crypto.derive_display_parts(full_token)
    key = models.ApiKey(
        user_id=user.id,
        organization_id=user.organization_id,
        token_id=token_id,
        token_hash=token_crypto.hash_secret(secret),
        name=name,
        prefix=prefix,
        last_four=last_four,
        scopes=list(scopes),
        kind=kind,
        status="active",
        created_at=_now(),
        expires_at=expires_at,
    )
    db.add(key)
    db.commit()
    db.refresh(key)
    return key, full_token


def create_api_key(db: Session, *, user: models.User, payload: schemas.ApiKeyCreateRequest) -> Tuple[models.ApiKey, str]:
    return _issue(db, user=user, name=payload.name, scopes=payload.scopes, kind="api_key", expires_at=payload.expires_at)


def create_session_token(db: Session, *, user: models.User, ttl_hours: int) -> Tuple[models.ApiKey, str]:
    return _issue(
        db,
        user=user,
        name="Login session",
        scopes=["*"],
        kind="session",
        expires_at=_now() + timedelta(hours=ttl_hours),
    )


def list_api_keys(db: Session, *, user_id: uuid.UUID) -> List[models.ApiKey]:
    return (
        db.query(models.ApiKey)
        .filter(models.ApiKey.user_id == user_id, models.ApiKey.kind == "api_key")
        .order_by(models.ApiKey.created_at.desc())
        .all()
    )


def get_key_owned(db: Session, *, key_id: uuid.UUID, user_id: uuid.UUID) -> Optional[models.ApiKey]:
    return (
        db.query(models.ApiKey)
        .filter(models.ApiKey.id == key_id, models.ApiKey.user_id == user_id)
        .first()
    )


def get_by_token_id(db: Session, *, token_id: str) -> Optional[models.ApiKey]:
    return db.query(models.ApiKey).filter(models.ApiKey.token_id == token_id).first()


def revoke_key(db: Session, *, key: models.ApiKey) -> models.ApiKey:
    if key.status != "revoked":
        key.status = "revoked"
        key.revoked_at = _now()
        db.commit()
        db.refresh(key)
    return key


def delete_key(db: Session, *, key: models.ApiKey) -> None:
    db.delete(key)
    db.commit()


def revoke_sessions_for_user(db: Session, *, user_id: uuid.UUID) -> int:
    sessions = (
        db.query(models.ApiKey)
        .filter(models.ApiKey.user_id == user_id, models.ApiKey.kind == "session", models.ApiKey.status == "active")
        .all()
    )
    now = _now()
    for s in sessions:
        s.status = "revoked"
        s.revoked_at = now
    db.commit()
    return len(sessions)


def mark_expired(db: Session, *, key: models.ApiKey) -> None:
    key.status = "expired"
    db.commit()


def mark_used_now(db: Session, *, key: models.ApiKey, ip_address: Optional[str] = None) -> None:
    key.last_used_at = _now()
    if ip_address:
        key.last_used_ip = ip_address[:45]
    try:
        db.commit()
    except SQLAlchemyError:
        logger.warning("Failed to record API key usage for %s", key.token_id, exc_info=True)
        db.rollback()
