"""
Folder endpoints. Folders nest through `parent_id` and carry a
materialized `/a/b` path that follows renames.
"""
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from insign.api.deps import get_current_user_context
from insign.api.permissions import ensure_permission
from insign.audit import AuditAction, log_for_user
from insign.db import schemas
from insign.db.database import get_db
from insign.db.repositories import folders as folders_repo

router = APIRouter(prefix="/folders", tags=["folders"])


def _get_folder_or_404(db: Session, folder_id: uuid.UUID, organization_id: uuid.UUID):
    folder = folders_repo.get_folder(db, folder_id=folder_id, organization_id=organization_id)
    if folder is None:
        raise HTTPException(status_code=404, detail="Folder not found")
    return folder


@router.get("", response_model=List[schemas.Folder])
def list_folders(
    parent_id: Optional[uuid.UUID] = None,
    all_levels: bool = False,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "folders:read")
    return folders_repo.list_folders(
        db, organization_id=current_user["organization_id"], parent_id=parent_id, all_levels=all_levels
    )


@router.post("", response_model=schemas.Folder, status_code=status.HTTP_201_CREATED)
def create_folder(
    payload: schemas.FolderCreate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_permission(current_user, "folders:write")
    org_id = current_user["organization_id"]
    parent = _get_folder_or_404(db, payload.parent_id, org_id) if payload.parent_id else None
    if folders_repo.name_taken(db, organization_id=org_id, parent_id=payload.parent_id, name=payload.name):
        raise HTTPException(status_code=409, detail="Folder already exists")
    folder = folders_repo.create_folder(
        db,
        organization_id=org_id,
        user_id=user.id,
        name=payload.name,
        parent=parent,
        description=payload.description,
    )
    log_for_user(db, current_user, action=AuditAction.FOLDER_CREATE, target_type="folder", target_id=folder.id,
                 metadata={"path": folder.path})
    return folder


@router.get("/{folder_id}", response_model=schemas.Folder)
def get_folder(
    folder_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "folders:read")
    return _get_folder_or_404(db, folder_id, current_user["organization_id"])


@router.patch("/{folder_id}", response_model=schemas.Folder)
def update_folder(
    folder_id: uuid.UUID,
    payload: schemas.FolderUpdate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "folders:write")
    org_id = current_user["organization_id"]
    folder = _get_folder_or_404(db, folder_id, org_id)
    old_path = folder.path

    if payload.name is not None and payload.name != folder.name:
        if folders_repo.name_taken(
            db, organization_id=org_id, parent_id=folder.parent_id, name=payload.name, exclude_id=folder.id
        ):
            raise HTTPException(status_code=409, detail="Folder already exists")
        folders_repo.rename_folder(db, folder=folder, name=payload.name)
    if payload.description is not None:
        folder.description = payload.description
    db.commit()
    db.refresh(folder)

    log_for_user(db, current_user, action=AuditAction.FOLDER_UPDATE, target_type="folder", target_id=folder.id,
                 metadata={"old_path": old_path, "path": folder.path})
    return folder


@router.delete("/{folder_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_folder(
    folder_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "folders:delete")
    folder = _get_folder_or_404(db, folder_id, current_user["organization_id"])
    if folders_repo.has_children(db, folder=folder):
        raise HTTPException(status_code=400, detail="Folder is not empty")
    folders_repo.soft_delete(db, folder=folder)
    log_for_user(db, current_user, action=AuditAction.FOLDER_DELETE, target_type="folder", target_id=folder.id,
                 metadata={"path": folder.path})
    return None
