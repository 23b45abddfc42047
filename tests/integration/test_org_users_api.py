import uuid
from datetime import timedelta

from insign.db.models import ApiKey, now_utc
from insign.utils.role_permissions import ROLE_MEMBER, ROLE_VIEWER

from tests.helpers import DEFAULT_PASSWORD, auth_headers, bearer


def test_organization_read_and_update(client, org, admin_headers, make_user):
    resp = client.get("/organization", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["name"] == "Acme Corp"

    updated = client.patch("/organization", json={"name": "Acme Industries", "timezone": "Europe/Berlin"},
                           headers=admin_headers)
    assert updated.status_code == 200
    assert updated.json()["timezone"] == "Europe/Berlin"

    member = make_user(org, ROLE_MEMBER)
    denied = client.patch("/organization", json={"name": "Hijacked"}, headers=auth_headers(member))
    assert denied.status_code == 403

    usage = client.get("/organization/storage", headers=admin_headers).json()
    assert usage["used_bytes"] == 0
    assert usage["percentage"] == 0


def test_user_management(client, admin, admin_headers):
    created = client.post("/users", json={
        "email": "New.Member@Example.com",
        "password": DEFAULT_PASSWORD,
        "first_name": "New",
        "last_name": "Member",
    }, headers=admin_headers)
    assert created.status_code == 201, created.text
    body = created.json()
    assert body["email"] == "new.member@example.com"
    assert body["role"]["name"] == ROLE_MEMBER

    dup = client.post("/users", json={
        "email": "new.member@example.com",
        "password": DEFAULT_PASSWORD,
        "first_name": "Dup",
        "last_name": "Member",
    }, headers=admin_headers)
    assert dup.status_code == 409
    assert dup.json()["detail"] == "Email already exists in your organization"

    listing = client.get("/users", headers=admin_headers).json()
    assert {u["email"] for u in listing} == {admin.email, "new.member@example.com"}

    patched = client.patch(f"/users/{body['id']}", json={"status": "inactive"}, headers=admin_headers)
    assert patched.json()["status"] == "inactive"
    blocked = client.get("/users/me", headers={"x-auth-request-email": "new.member@example.com"})
    assert blocked.status_code == 403

    self_delete = client.delete(f"/users/{admin.id}", headers=admin_headers)
    assert self_delete.status_code == 400
    assert self_delete.json()["detail"] == "Cannot delete your own account"
    assert client.delete(f"/users/{body['id']}", headers=admin_headers).status_code == 204
    assert client.get(f"/users/{body['id']}", headers=admin_headers).status_code == 404


def test_users_are_tenant_scoped(client, admin_headers, make_org, make_user):
    stranger = make_user(make_org(name="Other Co"))
    assert client.get(f"/users/{stranger.id}", headers=admin_headers).status_code == 404


def test_profile_and_password_change(client, admin, admin_headers):
    resp = client.patch("/users/me", json={"first_name": "Augusta"}, headers=admin_headers)
    assert resp.json()["first_name"] == "Augusta"
    assert client.patch("/users/me", json={"first_name": "A"}, headers=admin_headers).status_code == 422

    wrong = client.post("/users/me/password", json={
        "current_password": "wrong", "new_password": "Brand!New9pw", "confirm_password": "Brand!New9pw",
    }, headers=admin_headers)
    assert wrong.status_code == 400

    mismatch = client.post("/users/me/password", json={
        "current_password": DEFAULT_PASSWORD, "new_password": "Brand!New9pw", "confirm_password": "Other!New9pw",
    }, headers=admin_headers)
    assert mismatch.status_code == 422

    ok = client.post("/users/me/password", json={
        "current_password": DEFAULT_PASSWORD, "new_password": "Brand!New9pw", "confirm_password": "Brand!New9pw",
    }, headers=admin_headers)
    assert ok.status_code == 200
    login = client.post("/auth/login", json={"email": admin.email, "password": "Brand!New9pw"})
    assert login.status_code == 200


def test_custom_roles(client, org, admin_headers, make_user):
    roles = client.get("/roles", headers=admin_headers).json()
    assert {"Admin", "Manager", "Member", "Viewer"} <= {r["name"] for r in roles}
    system_admin = next(r for r in roles if r["name"] == "Admin")

    catalog = client.get("/roles/permissions", headers=admin_headers).json()
    by_name = {p["name"]: p["id"] for p in catalog}
    assert len(catalog) == 36

    created = client.post("/roles", json={
        "name": "Auditor",
        "permission_ids": [by_name["audit:read"], by_name["documents:read"]],
    }, headers=admin_headers)
    assert created.status_code == 201, created.text
    role = created.json()
    assert sorted(p["name"] for p in role["permissions"]) == ["audit:read", "documents:read"]

    assert client.post("/roles", json={"name": "Auditor"}, headers=admin_headers).status_code == 409
    assert client.patch(f"/roles/{system_admin['id']}", json={"name": "Boss"}, headers=admin_headers).status_code == 403

    auditor = make_user(org, ROLE_VIEWER)
    client.patch(f"/users/{auditor.id}", json={"role_id": role["id"]}, headers=admin_headers)
    in_use = client.delete(f"/roles/{role['id']}", headers=admin_headers)
    assert in_use.status_code == 400

    assert client.get("/audits", headers=auth_headers(auditor)).status_code == 200
    assert client.get("/users", headers=auth_headers(auditor)).status_code == 403


def test_api_keys_and_scopes(client, admin_headers):
    bad = client.post("/api-keys", json={"name": "bad", "scopes": ["nope:read"]}, headers=admin_headers)
    assert bad.status_code == 422

    created = client.post("/api-keys", json={"name": "CI", "scopes": ["documents:read"]}, headers=admin_headers)
    assert created.status_code == 201, created.text
    key = created.json()
    assert key["key"].startswith("isk_")

    listing = client.get("/api-keys", headers=admin_headers).json()
    assert [k["name"] for k in listing] == ["CI"]
    assert "key" not in listing[0]

    assert client.get("/documents", headers=bearer(key["key"])).status_code == 200
    denied = client.get("/users", headers=bearer(key["key"]))
    assert denied.status_code == 403
    assert denied.json()["detail"] == "API key missing required scope: users:read"

    revoked = client.post(f"/api-keys/{key['id']}/revoke", headers=admin_headers)
    assert revoked.json()["status"] == "revoked"
    again = client.get("/documents", headers=bearer(key["key"]))
    assert again.status_code == 401
    assert again.json()["detail"] == "API key has been revoked"

    assert client.delete(f"/api-keys/{key['id']}", headers=admin_headers).status_code == 204


def test_expired_and_malformed_keys(client, db, admin_headers):
    created = client.post("/api-keys", json={"name": "short", "scopes": ["documents:read"]}, headers=admin_headers)
    key = db.get(ApiKey, uuid.UUID(created.json()["id"]))
    key.expires_at = now_utc() - timedelta(minutes=1)
    db.commit()
    expired = client.get("/documents", headers=bearer(created.json()["key"]))
    assert expired.status_code == 401
    assert expired.json()["detail"] == "API key has expired"

    assert client.get("/documents", headers=bearer("isk_garbage")).status_code == 401
    assert client.get("/documents", headers=bearer("not-a-key")).status_code == 401


def test_user_limit(client, db, org, admin_headers):
    org.max_users = 1
    db.commit()
    resp = client.post("/users", json={
        "email": "one.too.many@example.com",
        "password": DEFAULT_PASSWORD,
        "first_name": "One",
        "last_name": "Toomany",
    }, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "User limit reached"


def test_api_keys_cannot_manage_credentials(client, admin_headers, upload_document):
    created = client.post("/api-keys", json={"name": "reader", "scopes": ["documents:read"]}, headers=admin_headers)
    key = bearer(created.json()["key"])

    minted = client.post("/api-keys", json={"name": "escalate", "scopes": ["*"]}, headers=key)
    assert minted.status_code == 403
    assert minted.json()["detail"] == "API keys cannot manage credentials"
    assert client.get("/api-keys", headers=key).status_code == 403
    assert client.post(f"/api-keys/{created.json()['id']}/revoke", headers=key).status_code == 403
    assert client.delete(f"/api-keys/{created.json()['id']}", headers=key).status_code == 403
    assert client.post("/auth/mfa/setup", json={"type": "totp"}, headers=key).status_code == 403
    assert client.post("/users/me/password", json={
        "current_password": DEFAULT_PASSWORD, "new_password": "Brand!New9pw", "confirm_password": "Brand!New9pw",
    }, headers=key).status_code == 403
    assert client.get("/webhooks", headers=key).status_code == 403
    assert [k["name"] for k in client.get("/api-keys", headers=admin_headers).json()] == ["reader"]

    # document permission routes still honour the key's scopes
    doc = upload_document(admin_headers)
    users_only = client.post("/api-keys", json={"name": "people", "scopes": ["users:read"]}, headers=admin_headers)
    narrow = bearer(users_only.json()["key"])
    check = client.get(f"/documents/{doc['id']}/permissions/check", headers=narrow)
    assert check.status_code == 403
    assert check.json()["detail"] == "API key missing required scope: documents:read"
    assert client.get(f"/documents/{doc['id']}/permissions", headers=narrow).status_code == 403
    assert client.get(f"/documents/{doc['id']}/permissions/check", headers=key).status_code == 200


def test_superadmin_reads_another_organization_audit_log(client, admin, admin_headers, make_org, make_user,
                                                         monkeypatch):
    other_org = make_org(name="Other Co")
    other_admin = make_user(other_org, email="boss@other.example.com")
    client.post("/api-keys", json={"name": "theirs", "scopes": ["documents:read"]},
                headers=auth_headers(other_admin))

    url = f"/audits?organization_id={other_org.id}"
    denied = client.get(url, headers=admin_headers)
    assert denied.status_code == 403

    monkeypatch.setenv("ADMIN_EMAILS", f"ops@example.com, {admin.email.upper()}")
    rows = client.get(url, headers=admin_headers).json()
    assert [r["action_type"] for r in rows] == ["api_key_create"]
    assert {r["organization_id"] for r in rows} == {str(other_org.id)}
    # without the parameter the superadmin still sees only their own organization
    assert all(r["organization_id"] == str(admin.organization_id) for r in client.get("/audits", headers=admin_headers).json())
