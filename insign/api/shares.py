"""
Public share links for documents.

`router` holds the authenticated management endpoints; `public_router`
serves `/share/{token}` to anonymous holders of a link.
"""
import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from insign.api.deps import get_current_user_context
from insign.api.documents import file_response
from insign.api.permissions import ensure_permission, require_document
from insign.audit import AuditAction, log_for_user
from insign.db import models, schemas
from insign.db.database import get_db
from insign.db.models import is_past
from insign.db.repositories import shares as shares_repo
from insign.services.storage_service import StorageService, get_storage_service
from insign.utils.token_crypto import verify_secret
from insign.utils.urls import build_share_link

logger = logging.getLogger(__name__)

router = APIRouter(tags=["shares"])
public_router = APIRouter(prefix="/share", tags=["public-shares"])


def share_to_schema(share: models.DocumentShare) -> schemas.Share:
    return schemas.Share(
        id=share.id,
        document_id=share.document_id,
        share_url=build_share_link(share.share_token),
        has_password=bool(share.password_hash),
        expires_at=share.expires_at,
        access_count=share.access_count or 0,
        max_access_count=share.max_access_count,
        last_accessed_at=share.last_accessed_at,
        created_by=share.created_by,
        created_at=share.created_at,
    )


@router.post("/documents/{document_id}/shares", response_model=schemas.Share, status_code=status.HTTP_201_CREATED)
def create_share(
    document_id: uuid.UUID,
    payload: schemas.ShareCreate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_permission(current_user, "documents:write")
    doc = require_document(db, document_id, current_user, "write")
    if payload.expires_at is not None and is_past(payload.expires_at):
        raise HTTPException(status_code=400, detail="Expiration must be in the future")
    share = shares_repo.create_share(
        db,
        document_id=doc.id,
        user_id=user.id,
        password=payload.password,
        expires_at=payload.expires_at,
        max_access_count=payload.max_access_count,
    )
    log_for_user(db, current_user, action=AuditAction.SHARE_CREATE, target_type="document", target_id=doc.id,
                 metadata={"share_id": str(share.id), "has_password": bool(payload.password)})
    return share_to_schema(share)


@router.get("/documents/{document_id}/shares", response_model=List[schemas.Share])
def list_shares(
    document_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "documents:read")
    doc = require_document(db, document_id, current_user, "write")
    return [share_to_schema(s) for s in shares_repo.list_shares(db, document_id=doc.id)]


@router.delete("/shares/{share_id}", status_code=status.HTTP_204_NO_CONTENT)
def revoke_share(
    share_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "documents:write")
    share = shares_repo.get_share(db, share_id=share_id)
    if share is None or share.revoked_at is not None:
        raise HTTPException(status_code=404, detail="Share not found")
    doc = require_document(db, share.document_id, current_user, "write")
    shares_repo.revoke_share(db, share=share)
    log_for_user(db, current_user, action=AuditAction.SHARE_REVOKE, target_type="document", target_id=doc.id,
                 metadata={"share_id": str(share.id)})
    return None


# Public access

def _open_share(db: Session, share_token: str, password: Optional[str]) -> models.DocumentShare:
    """Validate a share link and count the access."""
    share = shares_repo.get_by_token(db, share_token=share_token)
    if share is None or share.document is None or share.document.deleted_at is not None:
        raise HTTPException(status_code=404, detail="Invalid share link")
    if share.revoked_at is not None:
        raise HTTPException(status_code=410, detail="This share link has been revoked")
    if share.expires_at is not None and is_past(share.expires_at):
        raise HTTPException(status_code=410, detail="This share link has expired")
    if share.max_access_count is not None and (share.access_count or 0) >= share.max_access_count:
        raise HTTPException(status_code=410, detail="This share link has reached its maximum access limit")
    if share.password_hash:
        if not password:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Password required",
                headers={"X-Requires-Password": "true"},
            )
        if not verify_secret(password, share.password_hash):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Incorrect password")
    if not shares_repo.record_access(db, share=share):
        raise HTTPException(status_code=410, detail="This share link has reached its maximum access limit")
    return share


@public_router.post("/{share_token}", response_model=schemas.SharedDocument)
def access_share(
    share_token: str,
    payload: Optional[schemas.ShareAccessRequest] = None,
    db: Session = Depends(get_db),
):
    share = _open_share(db, share_token, payload.password if payload else None)
    doc = share.document
    return schemas.SharedDocument(
        id=doc.id,
        name=doc.name,
        mime_type=doc.mime_type,
        size_bytes=doc.size_bytes,
        version=doc.version,
        access_count=share.access_count,
        expires_at=share.expires_at,
    )


@public_router.post("/{share_token}/download")
def download_share(
    share_token: str,
    payload: Optional[schemas.ShareAccessRequest] = None,
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage_service),
):
    share = _open_share(db, share_token, payload.password if payload else None)
    doc = share.document
    logger.info("share %s downloaded document %s", share.id, doc.id)
    return file_response(storage.read(doc.file_path), doc.name, doc.mime_type)
