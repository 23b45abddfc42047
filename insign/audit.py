"""
Organization audit logging helpers and enums.

Centralized helpers to persist normalized audit records with a consistent
schema. Signature workflow events have their own per-request trail in
`signature_audit_logs`; this log covers administrative actions.
"""
from __future__ import annotations
import logging
import uuid
from enum import Enum
from typing import Any, Optional, Dict
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from insign.db import schemas
from insign.db.repositories import audits as audits_repo

logger = logging.getLogger(__name__)


class AuditAction(str, Enum):
    # Organization
    ORGANIZATION_CREATE = "organization_create"
    ORGANIZATION_UPDATE = "organization_update"
    # Users and roles
    USER_CREATE = "user_create"
    USER_UPDATE = "user_update"
    USER_DELETE = "user_delete"
    USER_LOGIN = "user_login"
    USER_LOGIN_FAILED = "user_login_failed"
    PASSWORD_CHANGE = "password_change"
    PASSWORD_RESET = "password_reset"
    MFA_ENABLE = "mfa_enable"
    MFA_DISABLE = "mfa_disable"
    ROLE_CREATE = "role_create"
    ROLE_UPDATE = "role_update"
    ROLE_DELETE = "role_delete"
    # API keys
    API_KEY_CREATE = "api_key_create"
    API_KEY_REVOKE = "api_key_revoke"
    API_KEY_DELETE = "api_key_delete"
    # Documents
    DOCUMENT_UPLOAD = "document_upload"
    DOCUMENT_UPDATE = "document_update"
    DOCUMENT_DELETE = "document_delete"
    DOCUMENT_VERSION_CREATE = "document_version_create"
    DOCUMENT_VERSION_RESTORE = "document_version_restore"
    DOCUMENT_VERSION_DELETE = "document_version_delete"
    PERMISSION_GRANT = "permission_grant"
    PERMISSION_UPDATE = "permission_update"
    PERMISSION_REVOKE = "permission_revoke"
    SHARE_CREATE = "share_create"
    SHARE_REVOKE = "share_revoke"
    FOLDER_CREATE = "folder_create"
    FOLDER_UPDATE = "folder_update"
    FOLDER_DELETE = "folder_delete"
    TAG_CREATE = "tag_create"
    TAG_UPDATE = "tag_update"
    TAG_DELETE = "tag_delete"
    # Signature requests
    SIGNATURE_REQUEST_CREATE = "signature_request_create"
    SIGNATURE_REQUEST_SEND = "signature_request_send"
    SIGNATURE_REQUEST_CANCEL = "signature_request_cancel"
    SIGNATURE_REQUEST_DELETE = "signature_request_delete"
    # Webhooks
    WEBHOOK_CREATE = "webhook_create"
    WEBHOOK_UPDATE = "webhook_update"
    WEBHOOK_DELETE = "webhook_delete"


class AuditStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


def log(
    db: Session,
    *,
    action: AuditAction | str,
    status: AuditStatus | str = AuditStatus.SUCCESS,
    target_type: str,
    target_id: Optional[uuid.UUID] = None,
    actor_user_id: Optional[uuid.UUID],
    organization_id: Optional[uuid.UUID] = None,
    metadata: Optional[Dict[str, Any]] = None,
    reason: Optional[str] = None,
):
    """Central audit logging helper."""
    # Persist plain string values, not Enum reprs
    action_value = action.value if isinstance(action, AuditAction) else str(action)
    status_value = status.value if isinstance(status, AuditStatus) else str(status)
    audit_log = schemas.AuditLogCreate(
        action_type=action_value,
        status=status_value,
        target_type=target_type,
        target_id=target_id,
        reason=reason,
        metadata=metadata or {},
    )
    return audits_repo.create_audit_log(
        db,
        audit_log,
        actor_user_id=actor_user_id,
        organization_id=organization_id,
    )


def log_quietly(db: Session, **kwargs) -> None:
    """Write an audit record without letting a logging failure abort the caller."""
    try:
        log(db, **kwargs)
    except SQLAlchemyError:
        db.rollback()
        logger.warning("audit_log_failed action=%s", kwargs.get("action"), exc_info=True)


def log_for_user(db: Session, current_user: Dict[str, Any], *, action: AuditAction, target_type: str, target_id: Optional[uuid.UUID] = None, metadata: Optional[Dict[str, Any]] = None) -> None:
    """Convenience wrapper using the request's user context."""
    log_quietly(
        db,
        action=action,
        target_type=target_type,
        target_id=target_id,
        actor_user_id=current_user.get("id"),
        organization_id=current_user.get("organization_id"),
        metadata=metadata,
    )


__all__ = ["AuditAction", "AuditStatus", "log", "log_quietly", "log_for_user"]
