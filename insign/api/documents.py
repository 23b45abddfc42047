"""
Document endpoints: upload, list/search, metadata updates, download,
soft delete and tag assignment.

Blobs live in `StorageService`; every upload is checked against and
counted toward the organization's storage quota.
"""
import logging
import uuid
from typing import List, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Response, UploadFile, status
from sqlalchemy.orm import Session

from insign.api.deps import get_current_user_context
from insign.api.permissions import ensure_permission, require_document
from insign.audit import AuditAction, log_for_user
from insign.db import schemas
from insign.db.database import get_db
from insign.db.repositories import documents as documents_repo
from insign.db.repositories import folders as folders_repo
from insign.db.repositories import organizations as orgs_repo
from insign.db.repositories import tags as tags_repo
from insign.db.repositories import versions as versions_repo
from insign.services import webhook_service
from insign.services.pdf_service import extract_text
from insign.services.storage_service import StorageService, get_storage_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/documents", tags=["documents"])

DEFAULT_MIME_TYPE = "application/octet-stream"


def file_response(content: bytes, filename: str, media_type: Optional[str]) -> Response:
    """Binary response with an RFC 5987 encoded attachment filename."""
    disposition = f"attachment; filename*=UTF-8''{quote(filename or 'download')}"
    return Response(
        content=content,
        media_type=media_type or DEFAULT_MIME_TYPE,
        headers={"Content-Disposition": disposition},
    )


def _require_folder(db: Session, folder_id: Optional[uuid.UUID], organization_id: uuid.UUID) -> None:
    if folder_id is None:
        return
    if folders_repo.get_folder(db, folder_id=folder_id, organization_id=organization_id) is None:
        raise HTTPException(status_code=404, detail="Folder not found")


@router.get("", response_model=List[schemas.Document])
def list_documents(
    folder_id: Optional[uuid.UUID] = None,
    search: Optional[str] = Query(default=None, max_length=255),
    tag_id: Optional[uuid.UUID] = None,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "documents:read")
    return documents_repo.list_documents(
        db,
        organization_id=current_user["organization_id"],
        folder_id=folder_id,
        search=search,
        tag_id=tag_id,
        skip=skip,
        limit=limit,
    )


@router.post("", response_model=schemas.Document, status_code=status.HTTP_201_CREATED)
def upload_document(
    file: UploadFile = File(...),
    name: Optional[str] = Form(default=None),
    folder_id: Optional[uuid.UUID] = Form(default=None),
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
    storage: StorageService = Depends(get_storage_service),
):
    user, current_user = user_context
    ensure_permission(current_user, "documents:write")
    org_id = current_user["organization_id"]
    _require_folder(db, folder_id, org_id)

    content = file.file.read()
    if not content:
        raise HTTPException(status_code=400, detail="File is empty")
    orgs_repo.ensure_capacity(db, org_id, len(content))

    display_name = (name or file.filename or "").strip() or "Untitled"
    mime_type = file.content_type or DEFAULT_MIME_TYPE
    document_id = uuid.uuid4()
    path = storage.save(StorageService.version_path(org_id, document_id, 1, file.filename or display_name), content)

    doc = documents_repo.create_document(
        db,
        organization_id=org_id,
        user_id=user.id,
        name=display_name[:255],
        file_path=path,
        mime_type=mime_type,
        size_bytes=len(content),
        folder_id=folder_id,
        content_text=extract_text(content, mime_type),
        document_id=document_id,
    )
    orgs_repo.adjust_used_bytes(db, org_id, len(content))
    db.commit()
    db.refresh(doc)
    logger.info("document %s uploaded (%d bytes) to org %s", doc.id, doc.size_bytes, org_id)

    log_for_user(db, current_user, action=AuditAction.DOCUMENT_UPLOAD, target_type="document", target_id=doc.id,
                 metadata={"name": doc.name, "size_bytes": doc.size_bytes})
    webhook_service.trigger_org_webhooks(db, org_id, "document.uploaded", {
        "document_id": str(doc.id),
        "name": doc.name,
        "mime_type": doc.mime_type,
        "size_bytes": doc.size_bytes,
    })
    return doc


@router.get("/{document_id}", response_model=schemas.Document)
def get_document(
    document_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "documents:read")
    return require_document(db, document_id, current_user, "read")


@router.get("/{document_id}/download")
def download_document(
    document_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
    storage: StorageService = Depends(get_storage_service),
):
    _user, current_user = user_context
    ensure_permission(current_user, "documents:read")
    doc = require_document(db, document_id, current_user, "read")
    return file_response(storage.read(doc.file_path), doc.name, doc.mime_type)


@router.patch("/{document_id}", response_model=schemas.Document)
def update_document(
    document_id: uuid.UUID,
    payload: schemas.DocumentUpdate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_permission(current_user, "documents:write")
    doc = require_document(db, document_id, current_user, "write")
    changes = payload.model_dump(exclude_unset=True)

    if "folder_id" in changes:
        _require_folder(db, changes["folder_id"], current_user["organization_id"])
        doc.folder_id = changes["folder_id"]
    if changes.get("name") is not None:
        doc.name = changes["name"].strip() or doc.name
    if changes.get("metadata") is not None:
        doc.metadata_json = dict(changes["metadata"])
    doc.updated_by = user.id
    db.commit()
    db.refresh(doc)

    log_for_user(db, current_user, action=AuditAction.DOCUMENT_UPDATE, target_type="document", target_id=doc.id,
                 metadata={"fields": sorted(changes.keys())})
    return doc


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_document(
    document_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "documents:delete")
    doc = require_document(db, document_id, current_user, "delete")
    org_id = current_user["organization_id"]

    released = versions_repo.charged_bytes(db, document_id=doc.id)
    documents_repo.soft_delete(db, doc=doc)
    orgs_repo.adjust_used_bytes(db, org_id, -released)
    db.commit()

    log_for_user(db, current_user, action=AuditAction.DOCUMENT_DELETE, target_type="document", target_id=doc.id,
                 metadata={"name": doc.name})
    webhook_service.trigger_org_webhooks(db, org_id, "document.deleted", {
        "document_id": str(doc.id),
        "name": doc.name,
    })
    return None


# Tag assignment

@router.get("/{document_id}/tags", response_model=List[schemas.Tag])
def list_document_tags(
    document_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "tags:read")
    doc = require_document(db, document_id, current_user, "read")
    return tags_repo.list_document_tags(db, document_id=doc.id)


@router.post("/{document_id}/tags", response_model=List[schemas.Tag], status_code=status.HTTP_201_CREATED)
def assign_tag(
    document_id: uuid.UUID,
    payload: schemas.TagAssignment,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_permission(current_user, "tags:write")
    doc = require_document(db, document_id, current_user, "write")
    tag = tags_repo.get_tag(db, tag_id=payload.tag_id, organization_id=current_user["organization_id"])
    if tag is None:
        raise HTTPException(status_code=404, detail="Tag not found")
    if tags_repo.get_assignment(db, document_id=doc.id, tag_id=tag.id) is not None:
        raise HTTPException(status_code=409, detail="Tag already assigned to document")
    tags_repo.assign(db, document_id=doc.id, tag_id=tag.id, user_id=user.id)
    return tags_repo.list_document_tags(db, document_id=doc.id)


@router.delete("/{document_id}/tags/{tag_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_tag(
    document_id: uuid.UUID,
    tag_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "tags:write")
    doc = require_document(db, document_id, current_user, "write")
    assignment = tags_repo.get_assignment(db, document_id=doc.id, tag_id=tag_id)
    if assignment is None:
        raise HTTPException(status_code=404, detail="Tag not assigned to document")
    tags_repo.unassign(db, assignment=assignment)
    return None
