"""
Organization audit log API.

Entries are scoped to the caller's organization; platform superadmins may
name another one.
"""
from typing import List, Optional
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from insign.api.deps import get_current_user_context
from insign.api.permissions import ensure_interactive_caller, ensure_permission
from insign.db import schemas
from insign.db.database import get_db
from insign.db.repositories import audits as audits_repo

router = APIRouter(prefix="/audits", tags=["audits"])


@router.get("", response_model=List[schemas.AuditLog])
def list_audit_logs(
    organization_id: Optional[uuid.UUID] = None,
    user_id: Optional[uuid.UUID] = None,
    action_type: Optional[str] = None,
    target_type: Optional[str] = None,
    target_id: Optional[uuid.UUID] = None,
    status: Optional[str] = None,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    if organization_id is not None and organization_id != current_user["organization_id"]:
        # cross-tenant reads are for platform superadmins only
        if not current_user.get("is_superadmin"):
            raise HTTPException(status_code=403, detail="Forbidden, superadmin required for another organization")
        ensure_interactive_caller(current_user)
        scope_org_id = organization_id
    else:
        ensure_permission(current_user, "audit:read")
        scope_org_id = current_user["organization_id"]
    return audits_repo.get_audit_logs(
        db,
        organization_id=scope_org_id,
        user_id=user_id,
        action_type=action_type,
        target_type=target_type,
        target_id=target_id,
        status=status,
        skip=skip,
        limit=limit,
    )
