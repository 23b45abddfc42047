"""
Roles and the permission catalog.

System roles are visible to every organization but can only be assigned,
never edited or deleted.
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
from insign.db.repositories import roles as roles_repo

router = APIRouter(prefix="/roles", tags=["roles"])


def _editable_role(db: Session, role_id: uuid.UUID, current_user, detail: str):
    role = roles_repo.get_role_visible(db, role_id=role_id, organization_id=current_user["organization_id"])
    if role is None:
        raise HTTPException(status_code=404, detail="Role not found")
    if role.is_system or role.organization_id != current_user["organization_id"]:
        raise HTTPException(status_code=403, detail=detail)
    return role


@router.get("", response_model=List[schemas.Role])
def list_roles(
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "roles:read")
    roles_repo.ensure_system_roles(db)
    return roles_repo.list_roles(db, organization_id=current_user["organization_id"])


@router.get("/permissions", response_model=List[schemas.Permission])
def list_permissions(
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "roles:read")
    roles_repo.ensure_system_roles(db)
    return roles_repo.list_permissions(db)


@router.post("", response_model=schemas.Role, status_code=status.HTTP_201_CREATED)
def create_role(
    payload: schemas.RoleCreate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "roles:write")
    org_id = current_user["organization_id"]
    if roles_repo.role_name_taken(db, organization_id=org_id, name=payload.name.strip()):
        raise HTTPException(status_code=409, detail="Role name already exists")
    try:
        role = roles_repo.create_role(db, organization_id=org_id, payload=payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    log_for_user(db, current_user, action=AuditAction.ROLE_CREATE, target_type="role", target_id=role.id,
                 metadata={"name": role.name})
    return role


@router.get("/{role_id}", response_model=schemas.Role)
def get_role(
    role_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "roles:read")
    role = roles_repo.get_role_visible(db, role_id=role_id, organization_id=current_user["organization_id"])
    if role is None:
        raise HTTPException(status_code=404, detail="Role not found")
    return role


@router.patch("/{role_id}", response_model=schemas.Role)
def update_role(
    role_id: uuid.UUID,
    payload: schemas.RoleUpdate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "roles:write")
    role = _editable_role(db, role_id, current_user, "Cannot modify this role")
    if payload.name is not None and roles_repo.role_name_taken(
        db, organization_id=current_user["organization_id"], name=payload.name.strip(), exclude_id=role.id
    ):
        raise HTTPException(status_code=409, detail="Role name already exists")
    role = roles_repo.update_role(db, role=role, payload=payload)
    log_for_user(db, current_user, action=AuditAction.ROLE_UPDATE, target_type="role", target_id=role.id,
                 metadata={"name": role.name})
    return role


@router.put("/{role_id}/permissions", response_model=schemas.Role)
def set_role_permissions(
    role_id: uuid.UUID,
    payload: schemas.RolePermissionsUpdate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "roles:manage")
    role = _editable_role(db, role_id, current_user, "Cannot modify this role")
    try:
        role = roles_repo.set_role_permissions(db, role=role, permission_ids=payload.permission_ids)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    log_for_user(db, current_user, action=AuditAction.ROLE_UPDATE, target_type="role", target_id=role.id,
                 metadata={"permissions": sorted(p.name for p in role.permissions)})
    return role


@router.delete("/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_role(
    role_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "roles:delete")
    role = _editable_role(db, role_id, current_user, "Cannot delete this role")
    if roles_repo.role_in_use(db, role_id=role.id):
        raise HTTPException(status_code=400, detail="Cannot delete role that is assigned to users")
    name = role.name
    roles_repo.delete_role(db, role=role)
    log_for_user(db, current_user, action=AuditAction.ROLE_DELETE, target_type="role", target_id=role_id,
                 metadata={"name": name})
    return None
