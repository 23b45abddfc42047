"""
Single-use password reset and email verification tokens.

Only the sha256 digest is stored; the raw token is returned once so it can
be mailed to the user.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from insign.db import models
from insign.utils import token_crypto

PASSWORD_RESET_TTL = timedelta(hours=1)
EMAIL_VERIFICATION_TTL = timedelta(hours=24)


def issue_token(db: Session, *, user_id, purpose: str, ttl: timedelta) -> Tuple[models.AuthToken, str]:
    # Older unused tokens for the same purpose stop working once a new one exists
    (
        db.query(models.AuthToken)
        .filter(
            models.AuthToken.user_id == user_id,
            models.AuthToken.purpose == purpose,
            models.AuthToken.used_at.is_(None),
        )
        .update({models.AuthToken.used_at: datetime.now(timezone.utc)}, synchronize_session=False)
    )
    raw = token_crypto.generate_secret(32)
    record = models.AuthToken(
        user_id=user_id,
        purpose=purpose,
        token_hash=token_crypto.hash_lookup_token(raw),
        expires_at=datetime.now(timezone.utc) + ttl,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record, raw


def get_valid_token(db: Session, *, raw_token: str, purpose: str) -> Optional[models.AuthToken]:
    record = (
        db.query(models.AuthToken)
        .filter(
            models.AuthToken.token_hash == token_crypto.hash_lookup_token(raw_token or ""),
            models.AuthToken.purpose == purpose,
        )
        .first()
    )
    if record is None or record.used_at is not None or models.is_past(record.expires_at):
        return None
    return record


def mark_used(db: Session, *, record: models.AuthToken) -> None:
    record.used_at = datetime.now(timezone.utc)
    db.commit()
