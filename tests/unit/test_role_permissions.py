import pytest

from insign.utils.role_permissions import (
    PERMISSION_CATALOG,
    ROLE_ADMIN,
    ROLE_MANAGER,
    ROLE_MEMBER,
    ROLE_VIEWER,
    get_system_role_permissions,
    has_scope,
    split_permission,
    validate_api_key_scopes,
)


def test_catalog_covers_every_resource_action_pair():
    assert "documents:read" in PERMISSION_CATALOG
    assert "audit:manage" in PERMISSION_CATALOG
    assert len(PERMISSION_CATALOG) == len(set(PERMISSION_CATALOG)) == 36


def test_system_role_grants_are_nested():
    admin = get_system_role_permissions(ROLE_ADMIN)
    manager = get_system_role_permissions(ROLE_MANAGER)
    member = get_system_role_permissions(ROLE_MEMBER)
    viewer = get_system_role_permissions(ROLE_VIEWER)
    assert viewer < member < manager < admin
    assert "documents:delete" not in member
    assert "users:read" in manager
    assert "organization:manage" not in manager


def test_unknown_role_raises():
    with pytest.raises(ValueError):
        get_system_role_permissions("Owner")


def test_has_scope_matching_rules():
    assert has_scope(["documents:read"], "documents:read")
    assert not has_scope(["documents:read"], "documents:write")
    assert has_scope(["documents:manage"], "documents:delete")
    assert has_scope(["documents:*"], "documents:write")
    assert has_scope(["*"], "webhooks:write")
    assert has_scope(["admin:*"], "audit:read")
    assert not has_scope([], "documents:read")
    assert not has_scope(["folders:manage"], "documents:read")


def test_split_permission():
    assert split_permission("roles:write") == ("roles", "write")
    with pytest.raises(ValueError):
        split_permission("roles")


def test_validate_api_key_scopes_normalizes_and_dedupes():
    assert validate_api_key_scopes([" Documents:Read ", "documents:read", "signatures:write"]) == [
        "documents:read",
        "signatures:write",
    ]


def test_validate_api_key_scopes_rejects_unknown_and_empty():
    with pytest.raises(ValueError):
        validate_api_key_scopes(["documents:fly"])
    with pytest.raises(ValueError):
        validate_api_key_scopes([])
