"""
Document version history. Each upload appends a version and becomes the
document's current content; restoring re-points the document at an older
blob through a new version.
"""
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy.orm import Session

from insign.api.deps import get_current_user_context
from insign.api.documents import DEFAULT_MIME_TYPE, file_response
from insign.api.permissions import ensure_permission, require_document
from insign.audit import AuditAction, log_for_user
from insign.db import models, schemas
from insign.db.database import get_db
from insign.db.repositories import organizations as orgs_repo
from insign.db.repositories import versions as versions_repo
from insign.services.pdf_service import extract_text
from insign.services.storage_service import StorageService, get_storage_service

router = APIRouter(prefix="/documents/{document_id}/versions", tags=["document-versions"])


def _get_version_or_404(db: Session, version_id: uuid.UUID, document_id: uuid.UUID) -> models.DocumentVersion:
    version = versions_repo.get_version(db, version_id=version_id, document_id=document_id)
    if version is None:
        raise HTTPException(status_code=404, detail="Version not found")
    return version


@router.get("", response_model=List[schemas.DocumentVersion])
def list_versions(
    document_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "documents:read")
    doc = require_document(db, document_id, current_user, "read")
    return versions_repo.list_versions(db, document_id=doc.id)


@router.post("", response_model=schemas.DocumentVersion, status_code=status.HTTP_201_CREATED)
def create_version(
    document_id: uuid.UUID,
    file: UploadFile = File(...),
    changes_description: Optional[str] = Form(default=None),
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
    storage: StorageService = Depends(get_storage_service),
):
    user, current_user = user_context
    ensure_permission(current_user, "documents:write")
    doc = require_document(db, document_id, current_user, "write")
    org_id = current_user["organization_id"]

    content = file.file.read()
    if not content:
        raise HTTPException(status_code=400, detail="File is empty")
    orgs_repo.ensure_capacity(db, org_id, len(content))

    number = versions_repo.next_version_number(db, document_id=doc.id)
    mime_type = file.content_type or DEFAULT_MIME_TYPE
    path = storage.save(StorageService.version_path(org_id, doc.id, number, file.filename or doc.name), content)
    version = versions_repo.add_version(
        db,
        document=doc,
        file_path=path,
        size_bytes=len(content),
        mime_type=mime_type,
        changes_description=changes_description,
        user_id=user.id,
    )
    doc.content_text = extract_text(content, mime_type)
    orgs_repo.adjust_used_bytes(db, org_id, len(content))
    db.commit()
    db.refresh(version)

    log_for_user(db, current_user, action=AuditAction.DOCUMENT_VERSION_CREATE, target_type="document",
                 target_id=doc.id, metadata={"version": version.version, "size_bytes": version.size_bytes})
    return version


@router.get("/compare", response_model=schemas.VersionComparison)
def compare_versions(
    document_id: uuid.UUID,
    version1: uuid.UUID = Query(...),
    version2: uuid.UUID = Query(...),
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _user, current_user = user_context
    ensure_permission(current_user, "documents:read")
    doc = require_document(db, document_id, current_user, "read")
    v1 = _get_version_or_404(db, version1, doc.id)
    v2 = _get_version_or_404(db, version2, doc.id)
    return schemas.VersionComparison(
        version1=schemas.DocumentVersion.model_validate(v1),
        version2=schemas.DocumentVersion.model_validate(v2),
        size_diff=v2.size_bytes - v1.size_bytes,
        version_diff=v2.version - v1.version,
    )


@router.get("/{version_id}/download")
def download_version(
    document_id: uuid.UUID,
    version_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
    storage: StorageService = Depends(get_storage_service),
):
    _user, current_user = user_context
    ensure_permission(current_user, "documents:read")
    doc = require_document(db, document_id, current_user, "read")
    version = _get_version_or_404(db, version_id, doc.id)
    return file_response(storage.read(version.file_path), f"v{version.version}_{doc.name}", version.mime_type)


@router.post("/{version_id}/restore", response_model=schemas.DocumentVersion)
def restore_version(
    document_id: uuid.UUID,
    version_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
    storage: StorageService = Depends(get_storage_service),
):
    user, current_user = user_context
    ensure_permission(current_user, "documents:write")
    doc = require_document(db, document_id, current_user, "write")
    source = _get_version_or_404(db, version_id, doc.id)

    restored = versions_repo.add_version(
        db,
        document=doc,
        file_path=source.file_path,
        size_bytes=source.size_bytes,
        mime_type=source.mime_type,
        changes_description=f"Restored from version {source.version}",
        user_id=user.id,
    )
    if storage.exists(source.file_path):
        doc.content_text = extract_text(storage.read(source.file_path), source.mime_type)
    db.commit()
    db.refresh(restored)

    log_for_user(db, current_user, action=AuditAction.DOCUMENT_VERSION_RESTORE, target_type="document",
                 target_id=doc.id, metadata={"from_version": source.version, "version": restored.version})
    return restored


@router.delete("/{version_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_version(
    document_id: uuid.UUID,
    version_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
    storage: StorageService = Depends(get_storage_service),
):
    _user, current_user = user_context
    ensure_permission(current_user, "documents:delete")
    doc = require_document(db, document_id, current_user, "delete")
    version = _get_version_or_404(db, version_id, doc.id)
    if versions_repo.count_versions(db, document_id=doc.id) <= 1:
        raise HTTPException(status_code=400, detail="Cannot delete the only version")
    if version.version == doc.version:
        raise HTTPException(status_code=400, detail="Cannot delete the current version")

    number, path, size = version.version, version.file_path, version.size_bytes
    db.delete(version)
    db.flush()
    # Restored versions share the blob of their source.
    still_referenced = db.query(models.DocumentVersion).filter(models.DocumentVersion.file_path == path).count() > 0
    if not still_referenced:
        orgs_repo.adjust_used_bytes(db, current_user["organization_id"], -size)
    db.commit()
    if not still_referenced:
        storage.delete(path)

    log_for_user(db, current_user, action=AuditAction.DOCUMENT_VERSION_DELETE, target_type="document",
                 target_id=doc.id, metadata={"version": number})
    return None
