"""
User management within the caller's organization, plus self-profile endpoints.
"""
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from insign.api.deps import get_current_user_context
from insign.api.permissions import ensure_interactive_caller, ensure_permission
from insign.audit import AuditAction, log_for_user
from insign.db import schemas
from insign.db.database import get_db
from insign.db.repositories import organizations as orgs_repo
from insign.db.repositories import roles as roles_repo
from insign.db.repositories import tokens as token_repo
from insign.db.repositories import users as users_repo
from insign.utils.role_permissions import ROLE_MEMBER
from insign.utils.token_crypto import verify_secret

router = APIRouter(prefix="/users", tags=["users"])


def _resolve_role_id(db: Session, role_id: Optional[uuid.UUID], organization_id: uuid.UUID) -> uuid.UUID:
    if role_id is None:
        roles_repo.ensure_system_roles(db)
        role = roles_repo.get_system_role(db, ROLE_MEMBER)
    else:
        role = roles_repo.get_role_visible(db, role_id=role_id, organization_id=organization_id)
    if role is None:
        raise HTTPException(status_code=400, detail="Invalid role")
    return role.id


# Self profile

@router.get("/me", response_model=schemas.User)
def get_me(user_context=Depends(get_current_user_context)):
    user, _ctx = user_context
    return user


@router.patch("/me", response_model=schemas.User)
def update_me(
    payload: schemas.ProfileUpdate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, _ctx = user_context
    for key, value in payload.model_dump(exclude_unset=True).items():
        if isinstance(value, str):
            value = value.strip() or None
        setattr(user, key, value)
    db.commit()
    db.refresh(user)
    return user


@router.post("/me/password", response_model=schemas.MessageResponse)
def change_password(
    payload: schemas.PasswordChange,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_interactive_caller(current_user)
    if not user.password_hash or not verify_secret(payload.current_password, user.password_hash):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    users_repo.set_password(db, user=user, password=payload.new_password)
    log_for_user(db, current_user, action=AuditAction.PASSWORD_CHANGE, target_type="user", target_id=user.id)
    return {"message": "Password updated successfully"}


# Organization members

@router.get("", response_model=List[schemas.User])
def list_users(
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "users:read")
    return users_repo.list_users(db, organization_id=current_user["organization_id"])


@router.post("", response_model=schemas.User, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: schemas.UserCreate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "users:write")
    org_id = current_user["organization_id"]

    if users_repo.get_by_email_in_org(db, email=payload.email, organization_id=org_id):
        raise HTTPException(status_code=409, detail="Email already exists in your organization")
    org = orgs_repo.get_organization(db, org_id)
    if org is not None and users_repo.count_users(db, organization_id=org_id) >= org.max_users:
        raise HTTPException(status_code=400, detail="User limit reached")

    new_user = users_repo.create_user(
        db,
        organization_id=org_id,
        email=payload.email,
        password=payload.password,
        first_name=payload.first_name.strip(),
        last_name=payload.last_name.strip(),
        role_id=_resolve_role_id(db, payload.role_id, org_id),
    )
    log_for_user(db, current_user, action=AuditAction.USER_CREATE, target_type="user", target_id=new_user.id,
                 metadata={"email": new_user.email})
    return new_user


@router.get("/{user_id}", response_model=schemas.User)
def get_user(
    user_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "users:read")
    target = users_repo.get_user(db, user_id=user_id, organization_id=current_user["organization_id"])
    if target is None:
        raise HTTPException(status_code=404, detail="User not found")
    return target


@router.patch("/{user_id}", response_model=schemas.User)
def update_user(
    user_id: uuid.UUID,
    payload: schemas.UserUpdate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "users:write")
    org_id = current_user["organization_id"]
    target = users_repo.get_user(db, user_id=user_id, organization_id=org_id)
    if target is None:
        raise HTTPException(status_code=404, detail="User not found")

    changes = payload.model_dump(exclude_unset=True)
    if changes.get("email") and users_repo.normalize_email(changes["email"]) != target.email:
        if users_repo.get_by_email_in_org(db, email=changes["email"], organization_id=org_id):
            raise HTTPException(status_code=409, detail="Email already exists in your organization")
    if changes.get("role_id") is not None:
        _resolve_role_id(db, changes["role_id"], org_id)

    updated = users_repo.update_user(db, user=target, payload=payload)
    if changes.get("status") not in (None, "active"):
        token_repo.revoke_sessions_for_user(db, user_id=updated.id)
    log_for_user(db, current_user, action=AuditAction.USER_UPDATE, target_type="user", target_id=updated.id,
                 metadata={"fields": sorted(changes.keys())})
    return updated


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_permission(current_user, "users:delete")
    if user_id == user.id:
        raise HTTPException(status_code=400, detail="Cannot delete your own account")
    target = users_repo.get_user(db, user_id=user_id, organization_id=current_user["organization_id"])
    if target is None:
        raise HTTPException(status_code=404, detail="User not found")
    email = target.email
    users_repo.delete_user(db, user=target)
    log_for_user(db, current_user, action=AuditAction.USER_DELETE, target_type="user", target_id=user_id,
                 metadata={"email": email})
    return None
