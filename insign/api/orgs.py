"""
Organization endpoints for the caller's tenant.
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from insign.api.deps import get_current_user_context
from insign.api.permissions import ensure_permission
from insign.audit import AuditAction, log_for_user
from insign.db import schemas
from insign.db.database import get_db
from insign.db.repositories import organizations as orgs_repo

router = APIRouter(prefix="/organization", tags=["organization"])


def _current_org(db: Session, current_user):
    org = orgs_repo.get_organization(db, current_user["organization_id"])
    if org is None:
        raise HTTPException(status_code=404, detail="Organization not found")
    return org


@router.get("", response_model=schemas.Organization)
def get_organization(
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    return _current_org(db, current_user)


@router.patch("", response_model=schemas.Organization)
def update_organization(
    payload: schemas.OrganizationUpdate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "organization:manage")
    org = orgs_repo.update_organization(db, org=_current_org(db, current_user), payload=payload)
    log_for_user(
        db,
        current_user,
        action=AuditAction.ORGANIZATION_UPDATE,
        target_type="organization",
        target_id=org.id,
        metadata={"fields": sorted(payload.model_dump(exclude_unset=True).keys())},
    )
    return org


@router.get("/storage", response_model=schemas.StorageUsage)
def get_storage_usage(
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    return orgs_repo.get_storage_usage(db, current_user["organization_id"])
