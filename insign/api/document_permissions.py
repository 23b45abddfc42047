"""
Per-document grants to users or roles of the same organization.

Managing grants requires `admin` on the document; `check` reports the
caller's own effective level.
"""
import uuid
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from insign.api.deps import get_current_user_context
from insign.api.permissions import ensure_permission, require_document
from insign.audit import AuditAction, log_for_user
from insign.db import schemas
from insign.db.database import get_db
from insign.db.enums import PermissionLevel
from insign.db.repositories import document_permissions as doc_perm_repo
from insign.db.repositories import documents as documents_repo
from insign.db.repositories import roles as roles_repo
from insign.db.repositories import users as users_repo

router = APIRouter(prefix="/documents/{document_id}/permissions", tags=["document-permissions"])


@router.get("/check", response_model=schemas.PermissionCheck)
def check_permission(
    document_id: uuid.UUID,
    level: PermissionLevel = Query(default=PermissionLevel.read),
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "documents:read")
    doc = documents_repo.get_document(db, document_id=document_id, organization_id=current_user["organization_id"])
    if doc is None:
        raise HTTPException(status_code=404, detail="Document not found")
    effective = doc_perm_repo.effective_level(db, document=doc, current_user=current_user)
    allowed = doc_perm_repo.level_satisfies(effective, level.value)
    return schemas.PermissionCheck(
        has_permission=allowed,
        permission_level=effective,
        message=None if allowed else f"Requires {level.value} permission",
    )


@router.get("", response_model=List[schemas.DocumentPermission])
def list_permissions(
    document_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "documents:read")
    doc = require_document(db, document_id, current_user, "admin")
    return doc_perm_repo.list_permissions(db, document_id=doc.id)


@router.post("", response_model=schemas.DocumentPermission, status_code=status.HTTP_201_CREATED)
def grant_permission(
    document_id: uuid.UUID,
    payload: schemas.DocumentPermissionCreate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_permission(current_user, "documents:write")
    doc = require_document(db, document_id, current_user, "admin")
    org_id = current_user["organization_id"]

    if payload.user_id is None and payload.role_id is None:
        raise HTTPException(status_code=400, detail="Either user_id or role_id must be provided")
    if payload.user_id is not None and payload.role_id is not None:
        raise HTTPException(status_code=400, detail="Provide either user_id or role_id, not both")
    if payload.user_id is not None and users_repo.get_user(db, user_id=payload.user_id, organization_id=org_id) is None:
        raise HTTPException(status_code=404, detail="User not found")
    if payload.role_id is not None and roles_repo.get_role_visible(db, role_id=payload.role_id, organization_id=org_id) is None:
        raise HTTPException(status_code=404, detail="Role not found")
    if doc_perm_repo.grant_exists(db, document_id=doc.id, user_id=payload.user_id, role_id=payload.role_id):
        raise HTTPException(status_code=409, detail="Permission already exists")

    perm = doc_perm_repo.grant(
        db,
        document_id=doc.id,
        user_id=payload.user_id,
        role_id=payload.role_id,
        level=payload.permission_level.value,
        granted_by=user.id,
        expires_at=payload.expires_at,
    )
    log_for_user(
        db,
        current_user,
        action=AuditAction.PERMISSION_GRANT,
        target_type="document",
        target_id=doc.id,
        metadata={
            "permission_id": str(perm.id),
            "user_id": str(perm.user_id) if perm.user_id else None,
            "role_id": str(perm.role_id) if perm.role_id else None,
            "level": perm.permission_level,
        },
    )
    return perm


@router.patch("/{permission_id}", response_model=schemas.DocumentPermission)
def update_permission(
    document_id: uuid.UUID,
    permission_id: uuid.UUID,
    payload: schemas.DocumentPermissionUpdate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "documents:write")
    doc = require_document(db, document_id, current_user, "admin")
    perm = doc_perm_repo.get_permission(db, permission_id=permission_id, document_id=doc.id)
    if perm is None:
        raise HTTPException(status_code=404, detail="Permission not found")
    perm = doc_perm_repo.update_permission(
        db,
        perm=perm,
        level=payload.permission_level.value if payload.permission_level else None,
        expires_at=payload.expires_at,
        expires_set="expires_at" in payload.model_fields_set,
    )
    log_for_user(db, current_user, action=AuditAction.PERMISSION_UPDATE, target_type="document", target_id=doc.id,
                 metadata={"permission_id": str(perm.id), "level": perm.permission_level})
    return perm


@router.delete("/{permission_id}", status_code=status.HTTP_204_NO_CONTENT)
def revoke_permission(
    document_id: uuid.UUID,
    permission_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "documents:write")
    doc = require_document(db, document_id, current_user, "admin")
    perm = doc_perm_repo.get_permission(db, permission_id=permission_id, document_id=doc.id)
    if perm is None:
        raise HTTPException(status_code=404, detail="Permission not found")
    doc_perm_repo.revoke(db, perm=perm)
    log_for_user(db, current_user, action=AuditAction.PERMISSION_REVOKE, target_type="document", target_id=doc.id,
                 metadata={"permission_id": str(permission_id)})
    return None
