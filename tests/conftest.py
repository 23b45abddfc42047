import os

os.environ.setdefault("PYTEST_RUNNING", "1")
os.environ.setdefault("APP_BASE_URL", "http://localhost:3000")

import uuid

import pytest
from fastapi.testclient import TestClient

from insign.api.main import app
from insign.db import database as db_module
from insign.db import models
from insign.db.repositories import roles as roles_repo
from insign.db.repositories import users as users_repo
from insign.services import transactional_email_service
from insign.services.transactional_email_service import TransactionalEmailService
from insign.utils.role_permissions import ROLE_ADMIN

from tests.helpers import DEFAULT_PASSWORD, auth_headers


class RecordingEmailService(TransactionalEmailService):
    """Renders the real templates but keeps messages in memory."""

    def __init__(self):
        super().__init__()
        self.sent = []

    @property
    def is_configured(self) -> bool:
        return True

    async def send_email(self, to_email, subject, html_content, text_content=None):
        self.sent.append({"to": to_email, "subject": subject, "html": html_content, "text": text_content})
        return {"success": True, "provider": "test", "message_id": f"test-{len(self.sent)}"}

    def to(self, email):
        return [m for m in self.sent if m["to"] == email]


class FakeResponse:
    def __init__(self, status_code=200):
        self.status_code = status_code


@pytest.fixture(autouse=True)
def _fresh_schema():
    models.Base.metadata.drop_all(bind=db_module.engine)
    models.Base.metadata.create_all(bind=db_module.engine)
    yield


@pytest.fixture(autouse=True)
def storage_dir(tmp_path, monkeypatch):
    root = tmp_path / "storage"
    root.mkdir()
    monkeypatch.setenv("STORAGE_ROOT", str(root))
    monkeypatch.delenv("DEV_MODE", raising=False)
    return root


@pytest.fixture(autouse=True)
def email_outbox(monkeypatch):
    service = RecordingEmailService()
    monkeypatch.setattr(transactional_email_service, "_email_service", service)
    return service


@pytest.fixture(autouse=True)
def webhook_calls(monkeypatch):
    """Outgoing webhook POSTs, captured instead of sent."""
    calls = []

    def _post(url, data=None, headers=None, timeout=None, **kwargs):
        calls.append({"url": url, "data": data, "headers": headers or {}})
        return FakeResponse(200)

    monkeypatch.setattr("insign.services.webhook_service.requests.post", _post)
    return calls


@pytest.fixture
def db_session():
    session = db_module.SessionLocal()
    try:
        yield session
    finally:
        session.close()


# Some tests read better with a plain 'db' fixture
@pytest.fixture
def db(db_session):
    return db_session


@pytest.fixture
def client(db_session):
    def _override_get_db():
        yield db_session

    app.dependency_overrides[db_module.get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(db_module.get_db, None)


@pytest.fixture
def make_org(db_session):
    def _make(name="Acme Corp", domain=None):
        roles_repo.ensure_system_roles(db_session)
        org = models.Organization(name=name, domain=domain or f"org-{uuid.uuid4().hex[:8]}", status="active")
        db_session.add(org)
        db_session.flush()
        db_session.add(models.StorageQuota(organization_id=org.id, total_bytes=org.max_storage_bytes, used_bytes=0))
        db_session.commit()
        return org
    return _make


@pytest.fixture
def make_user(db_session):
    def _make(org, role=ROLE_ADMIN, email=None, password=DEFAULT_PASSWORD, first_name="Test", last_name="User"):
        roles_repo.ensure_system_roles(db_session)
        role_row = roles_repo.get_system_role(db_session, role) if isinstance(role, str) else role
        return users_repo.create_user(
            db_session,
            organization_id=org.id,
            email=email or f"user_{uuid.uuid4().hex[:8]}@example.com",
            password=password,
            first_name=first_name,
            last_name=last_name,
            role_id=role_row.id if role_row else None,
            email_verified=True,
        )
    return _make


@pytest.fixture
def org(make_org):
    return make_org()


@pytest.fixture
def admin(org, make_user):
    return make_user(org, ROLE_ADMIN, first_name="Ada", last_name="Admin")


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def upload_document(client):
    def _upload(headers, content=b"hello insign", filename="contract.txt",
                mime_type="text/plain", name=None, folder_id=None):
        data = {}
        if name is not None:
            data["name"] = name
        if folder_id is not None:
            data["folder_id"] = str(folder_id)
        resp = client.post(
            "/documents",
            files={"file": (filename, content, mime_type)},
            data=data,
            headers=headers,
        )
        assert resp.status_code == 201, resp.text
        return resp.json()
    return _upload

