"""
Organization, signup, and storage quota repository functions.
"""
from __future__ import annotations

import uuid
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from insign.db import models, schemas
from insign.db.repositories import roles as roles_repo
from insign.db.repositories import users as users_repo
from insign.errors import StorageQuotaExceeded
from insign.utils.role_permissions import ROLE_ADMIN


def get_organization(db: Session, organization_id: uuid.UUID) -> Optional[models.Organization]:
    return db.query(models.Organization).filter(models.Organization.id == organization_id).first()


def get_by_domain(db: Session, domain: str) -> Optional[models.Organization]:
    return db.query(models.Organization).filter(models.Organization.domain == (domain or "").strip().lower()).first()


def domain_available(db: Session, domain: str) -> bool:
    return get_by_domain(db, domain) is None


def create_organization_with_admin(db: Session, payload: schemas.SignupRequest) -> Tuple[models.Organization, models.User]:
    """Create tenant, quota, and the first admin user in one transaction."""
    roles_repo.ensure_system_roles(db)
    admin_role = roles_repo.get_system_role(db, ROLE_ADMIN)
    if admin_role is None:
        raise RuntimeError("Admin system role is missing")

    org = models.Organization(
        name=payload.organization_name.strip(),
        domain=payload.organization_domain,
        subscription_tier="trial",
        status="active",
    )
    db.add(org)
    db.flush()
    db.add(models.StorageQuota(organization_id=org.id, total_bytes=org.max_storage_bytes, used_bytes=0))
    user = users_repo.create_user(
        db,
        organization_id=org.id,
        email=payload.email,
        password=payload.password,
        first_name=payload.first_name.strip(),
        last_name=payload.last_name.strip(),
        role_id=admin_role.id,
        email_verified=True,
        commit=False,
    )
    db.commit()
    db.refresh(org)
    db.refresh(user)
    return org, user


def update_organization(db: Session, *, org: models.Organization, payload: schemas.OrganizationUpdate) -> models.Organization:
    for key, value in payload.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(org, key, value)
    db.commit()
    db.refresh(org)
    return org


def get_storage_quota(db: Session, organization_id: uuid.UUID) -> Optional[models.StorageQuota]:
    return db.query(models.StorageQuota).filter(models.StorageQuota.organization_id == organization_id).first()


def _get_or_create_quota(db: Session, organization_id: uuid.UUID) -> models.StorageQuota:
    quota = get_storage_quota(db, organization_id)
    if quota is None:
        quota = models.StorageQuota(organization_id=organization_id, total_bytes=models.DEFAULT_STORAGE_BYTES, used_bytes=0)
        db.add(quota)
        db.flush()
    return quota


def get_storage_usage(db: Session, organization_id: uuid.UUID) -> dict:
    quota = get_storage_quota(db, organization_id)
    if quota is None:
        return {"used_bytes": 0, "total_bytes": models.DEFAULT_STORAGE_BYTES, "percentage": 0.0}
    total = quota.total_bytes or 0
    percentage = round((quota.used_bytes / total) * 100, 2) if total else 0.0
    return {"used_bytes": quota.used_bytes, "total_bytes": total, "percentage": percentage}


def ensure_capacity(db: Session, organization_id: uuid.UUID, additional_bytes: int) -> None:
    quota = _get_or_create_quota(db, organization_id)
    if quota.used_bytes + additional_bytes > quota.total_bytes:
        raise StorageQuotaExceeded()


def adjust_used_bytes(db: Session, organization_id: uuid.UUID, delta: int) -> None:
    """Add `delta` to used bytes (never below zero). Caller commits."""
    quota = _get_or_create_quota(db, organization_id)
    quota.used_bytes = max(0, (quota.used_bytes or 0) + delta)
