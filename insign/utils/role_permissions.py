"""
Role-based permission utilities.

Defines the permission catalog (``resource:action`` strings), the default
grants of the global system roles, and scope matching shared by role
permissions and API key scopes.
"""

from typing import Dict, FrozenSet, Iterable, List, Tuple
from enum import Enum


RESOURCES: Tuple[str, ...] = (
    "documents",
    "folders",
    "tags",
    "signatures",
    "users",
    "roles",
    "webhooks",
    "organization",
    "audit",
)
ACTIONS: Tuple[str, ...] = ("read", "write", "delete", "manage")

PERMISSION_CATALOG: Tuple[str, ...] = tuple(f"{r}:{a}" for r in RESOURCES for a in ACTIONS)

ROLE_ADMIN = "Admin"
ROLE_MANAGER = "Manager"
ROLE_MEMBER = "Member"
ROLE_VIEWER = "Viewer"

_CONTENT_RESOURCES = ("documents", "folders", "tags", "signatures")

SYSTEM_ROLE_PERMISSIONS: Dict[str, FrozenSet[str]] = {
    ROLE_ADMIN: frozenset(PERMISSION_CATALOG),
    ROLE_MANAGER: frozenset(
        [f"{r}:{a}" for r in _CONTENT_RESOURCES for a in ACTIONS] + ["users:read"]
    ),
    ROLE_MEMBER: frozenset(f"{r}:{a}" for r in _CONTENT_RESOURCES for a in ("read", "write")),
    ROLE_VIEWER: frozenset(f"{r}:read" for r in _CONTENT_RESOURCES),
}

SYSTEM_ROLE_DESCRIPTIONS: Dict[str, str] = {
    ROLE_ADMIN: "Full access to every resource in the organization",
    ROLE_MANAGER: "Manage documents, folders, tags and signature requests",
    ROLE_MEMBER: "Create and edit documents and signature requests",
    ROLE_VIEWER: "Read-only access to documents and signature requests",
}

# Grants that make a role an organization administrator.
ORG_ADMIN_PERMISSION = "organization:manage"


class ApiKeyScope(str, Enum):
    """Scopes an API key may carry."""
    documents_read = "documents:read"
    documents_write = "documents:write"
    documents_delete = "documents:delete"
    signatures_read = "signatures:read"
    signatures_write = "signatures:write"
    users_read = "users:read"
    webhooks_read = "webhooks:read"
    webhooks_write = "webhooks:write"


API_KEY_SCOPES: FrozenSet[str] = frozenset(s.value for s in ApiKeyScope)
WILDCARD_SCOPES: FrozenSet[str] = frozenset({"*", "admin:*"} | {f"{r}:*" for r in RESOURCES})


def split_permission(permission: str) -> Tuple[str, str]:
    """Split ``resource:action``; raise ValueError on malformed input."""
    resource, sep, action = permission.partition(":")
    if not sep or not resource or not action:
        raise ValueError(f"Invalid permission '{permission}', expected resource:action")
    return resource, action


def has_scope(granted: Iterable[str], required: str) -> bool:
    """Return True when `granted` covers `required`.

    Matches the exact string, a ``resource:*`` wildcard, ``resource:manage``,
    ``admin:*`` and the global ``*``.
    """
    granted_set = set(granted or ())
    if not granted_set:
        return False
    if required in granted_set or "*" in granted_set or "admin:*" in granted_set:
        return True
    resource, _action = split_permission(required)
    return f"{resource}:*" in granted_set or f"{resource}:manage" in granted_set


def validate_api_key_scopes(scopes: Iterable[str]) -> List[str]:
    cleaned = [s.strip().lower() for s in (scopes or []) if s and s.strip()]
    if not cleaned:
        raise ValueError("At least one scope is required")
    for s in cleaned:
        if s not in API_KEY_SCOPES and s not in WILDCARD_SCOPES:
            raise ValueError(f"Invalid scope: {s}")
    # keep order, drop duplicates
    return list(dict.fromkeys(cleaned))


def get_system_role_permissions(role_name: str) -> FrozenSet[str]:
    if role_name not in SYSTEM_ROLE_PERMISSIONS:
        raise ValueError(f"Unknown role: {role_name}. System roles: {sorted(SYSTEM_ROLE_PERMISSIONS)}")
    return SYSTEM_ROLE_PERMISSIONS[role_name]
