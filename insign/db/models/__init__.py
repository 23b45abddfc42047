"""
Domain-split SQLAlchemy models with a single aggregator.

Exposes `Base`, the timestamp helpers, and all ORM classes.
"""

from .base import Base, now_utc, as_utc, is_past  # re-export

from .organizations import Organization, StorageQuota, DEFAULT_STORAGE_BYTES
from .users import User, Role, Permission, MfaMethod, role_permissions
from .tokens import ApiKey, AuthToken
from .documents import (
    Folder,
    Document,
    DocumentVersion,
    DocumentPermission,
    DocumentShare,
    DocumentTag,
    DocumentTagAssignment,
)
from .signatures import (
    SignatureRequest,
    SignatureParticipant,
    SignatureField,
    Signature,
    SignatureAuditLog,
)
from .webhooks import Webhook
from .audit import AuditLog
from .notifications import UserNotificationPreference, Notification, EmailNotificationLog

__all__ = [
    # base
    "Base",
    "now_utc",
    "as_utc",
    "is_past",
    # tenancy
    "Organization",
    "StorageQuota",
    "DEFAULT_STORAGE_BYTES",
    # identity
    "User",
    "Role",
    "Permission",
    "MfaMethod",
    "role_permissions",
    "ApiKey",
    "AuthToken",
    # documents
    "Folder",
    "Document",
    "DocumentVersion",
    "DocumentPermission",
    "DocumentShare",
    "DocumentTag",
    "DocumentTagAssignment",
    # signatures
    "SignatureRequest",
    "SignatureParticipant",
    "SignatureField",
    "Signature",
    "SignatureAuditLog",
    # org-level
    "Webhook",
    "AuditLog",
    # notifications
    "UserNotificationPreference",
    "Notification",
    "EmailNotificationLog",
]
