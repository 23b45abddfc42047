"""
Permission checks for organization-scoped routes.

Key helpers:
- ensure_permission(current_user, "resource:action")
- require_document(db, document_id, current_user, level)
- ensure_interactive_caller(current_user)
"""
import uuid
from typing import Any, Dict

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from insign.db import models
from insign.db.repositories import document_permissions as doc_perm_repo
from insign.db.repositories import documents as documents_repo
from insign.utils.role_permissions import has_scope


def ensure_permission(current_user: Dict[str, Any], permission: str) -> None:
    """Raise 403 unless both the role and any presented API key grant `permission`."""
    if not has_scope(current_user.get("permissions") or (), permission):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
    api_key = current_user.get("api_key")
    if api_key and not has_scope(api_key.get("scopes") or (), permission):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"API key missing required scope: {permission}",
        )


def ensure_interactive_caller(current_user: Dict[str, Any]) -> None:
    """Credential management needs a person: proxy identity or a login session, never an API key."""
    api_key = current_user.get("api_key")
    if api_key and api_key.get("kind") == "api_key":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="API keys cannot manage credentials",
        )


def require_document(
    db: Session,
    document_id: uuid.UUID,
    current_user: Dict[str, Any],
    level: str = "read",
) -> models.Document:
    """Load a live document of the caller's org and check the effective document level."""
    document = documents_repo.get_document(
        db, document_id=document_id, organization_id=current_user["organization_id"]
    )
    if document is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
    effective = doc_perm_repo.effective_level(db, document=document, current_user=current_user)
    if not doc_perm_repo.level_satisfies(effective, level):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"Requires {level} permission")
    return document
