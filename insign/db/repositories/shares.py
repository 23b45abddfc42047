"""
Public share link repository.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from insign.db import models
from insign.utils import token_crypto


def create_share(
    db: Session,
    *,
    document_id: uuid.UUID,
    user_id: uuid.UUID,
    password: Optional[str],
    expires_at: Optional[datetime],
    max_access_count: Optional[int],
) -> models.DocumentShare:
    share = models.DocumentShare(
        document_id=document_id,
        share_token=token_crypto.generate_access_token(32),
        password_hash=token_crypto.hash_secret(password) if password else None,
        expires_at=expires_at,
        max_access_count=max_access_count,
        access_count=0,
        created_by=user_id,
    )
    db.add(share)
    db.commit()
    db.refresh(share)
    return share


def list_shares(db: Session, *, document_id: uuid.UUID) -> List[models.DocumentShare]:
    return (
        db.query(models.DocumentShare)
        .filter(models.DocumentShare.document_id == document_id, models.DocumentShare.revoked_at.is_(None))
        .order_by(models.DocumentShare.created_at.desc())
        .all()
    )


def get_share(db: Session, *, share_id: uuid.UUID) -> Optional[models.DocumentShare]:
    return db.query(models.DocumentShare).filter(models.DocumentShare.id == share_id).first()


def get_by_token(db: Session, *, share_token: str) -> Optional[models.DocumentShare]:
    return db.query(models.DocumentShare).filter(models.DocumentShare.share_token == share_token).first()


def revoke_share(db: Session, *, share: models.DocumentShare) -> None:
    share.revoked_at = models.now_utc()
    db.commit()


def record_access(db: Session, *, share: models.DocumentShare) -> bool:
    """Count one access in a single conditional UPDATE; False once the limit is used up."""
    table = models.DocumentShare
    updated = (
        db.query(table)
        .filter(
            table.id == share.id,
            or_(table.max_access_count.is_(None), table.access_count < table.max_access_count),
        )
        .update(
            {table.access_count: table.access_count + 1, table.last_accessed_at: models.now_utc()},
            synchronize_session=False,
        )
    )
    db.commit()
    db.refresh(share)
    return updated == 1
