"""
Organization tag catalog. Assigning tags to documents lives on the
documents router.
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
from insign.db.repositories import tags as tags_repo

router = APIRouter(prefix="/tags", tags=["tags"])


def _get_tag_or_404(db: Session, tag_id: uuid.UUID, organization_id: uuid.UUID):
    tag = tags_repo.get_tag(db, tag_id=tag_id, organization_id=organization_id)
    if tag is None:
        raise HTTPException(status_code=404, detail="Tag not found")
    return tag


@router.get("", response_model=List[schemas.Tag])
def list_tags(
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "tags:read")
    return tags_repo.list_tags(db, organization_id=current_user["organization_id"])


@router.post("", response_model=schemas.Tag, status_code=status.HTTP_201_CREATED)
def create_tag(
    payload: schemas.TagCreate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_permission(current_user, "tags:write")
    org_id = current_user["organization_id"]
    name = payload.name.strip()
    if tags_repo.name_taken(db, organization_id=org_id, name=name):
        raise HTTPException(status_code=409, detail="Tag name already exists")
    tag = tags_repo.create_tag(db, organization_id=org_id, user_id=user.id, name=name, color=payload.color)
    log_for_user(db, current_user, action=AuditAction.TAG_CREATE, target_type="tag", target_id=tag.id,
                 metadata={"name": tag.name})
    return tag


@router.patch("/{tag_id}", response_model=schemas.Tag)
def update_tag(
    tag_id: uuid.UUID,
    payload: schemas.TagUpdate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "tags:write")
    org_id = current_user["organization_id"]
    tag = _get_tag_or_404(db, tag_id, org_id)
    name = payload.name.strip() if payload.name is not None else None
    if name and tags_repo.name_taken(db, organization_id=org_id, name=name, exclude_id=tag.id):
        raise HTTPException(status_code=409, detail="Tag name already exists")
    tag = tags_repo.update_tag(db, tag=tag, name=name, color=payload.color)
    log_for_user(db, current_user, action=AuditAction.TAG_UPDATE, target_type="tag", target_id=tag.id,
                 metadata={"name": tag.name, "color": tag.color})
    return tag


@router.delete("/{tag_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_tag(
    tag_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "tags:delete")
    tag = _get_tag_or_404(db, tag_id, current_user["organization_id"])
    name = tag.name
    tags_repo.delete_tag(db, tag=tag)
    log_for_user(db, current_user, action=AuditAction.TAG_DELETE, target_type="tag", target_id=tag_id,
                 metadata={"name": name})
    return None
