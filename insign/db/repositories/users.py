"""
User repository functions, always scoped to an organization.
"""
from __future__ import annotations

import uuid
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from insign.db import models, schemas
from insign.utils import token_crypto


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def get_user(db: Session, *, user_id: uuid.UUID, organization_id: uuid.UUID) -> Optional[models.User]:
    return (
        db.query(models.User)
        .filter(models.User.id == user_id, models.User.organization_id == organization_id)
        .first()
    )


def get_by_email_in_org(db: Session, *, email: str, organization_id: uuid.UUID) -> Optional[models.User]:
    return (
        db.query(models.User)
        .filter(func.lower(models.User.email) == normalize_email(email), models.User.organization_id == organization_id)
        .first()
    )


def get_by_email(db: Session, *, email: str) -> Optional[models.User]:
    """First user with this email across organizations (login and identity headers)."""
    return (
        db.query(models.User)
        .filter(func.lower(models.User.email) == normalize_email(email))
        .order_by(models.User.created_at.asc())
        .first()
    )


def email_registered(db: Session, *, email: str) -> bool:
    return db.query(
        db.query(models.User).filter(func.lower(models.User.email) == normalize_email(email)).exists()
    ).scalar()


def list_users(db: Session, *, organization_id: uuid.UUID) -> List[models.User]:
    return (
        db.query(models.User)
        .filter(models.User.organization_id == organization_id)
        .order_by(models.User.created_at.desc())
        .all()
    )


def count_users(db: Session, *, organization_id: uuid.UUID) -> int:
    return db.query(models.User).filter(models.User.organization_id == organization_id).count()


def create_user(
    db: Session,
    *,
    organization_id: uuid.UUID,
    email: str,
    password: Optional[str],
    first_name: Optional[str],
    last_name: Optional[str],
    role_id: Optional[uuid.UUID],
    email_verified: bool = False,
    commit: bool = True,
) -> models.User:
    user = models.User(
        organization_id=organization_id,
        email=normalize_email(email),
        password_hash=token_crypto.hash_secret(password) if password else None,
        first_name=first_name,
        last_name=last_name,
        role_id=role_id,
        status="active",
        email_verified_at=models.now_utc() if email_verified else None,
    )
    db.add(user)
    if commit:
        db.commit()
        db.refresh(user)
    else:
        db.flush()
    return user


def update_user(db: Session, *, user: models.User, payload: schemas.UserUpdate) -> models.User:
    data = payload.model_dump(exclude_unset=True)
    if "email" in data and data["email"] is not None:
        data["email"] = normalize_email(data["email"])
    if "status" in data and data["status"] is not None:
        data["status"] = str(data["status"].value if hasattr(data["status"], "value") else data["status"])
    for key, value in data.items():
        setattr(user, key, value)
    db.commit()
    db.refresh(user)
    return user


def set_password(db: Session, *, user: models.User, password: str) -> None:
    user.password_hash = token_crypto.hash_secret(password)
    db.commit()


def delete_user(db: Session, *, user: models.User) -> None:
    db.delete(user)
    db.commit()
