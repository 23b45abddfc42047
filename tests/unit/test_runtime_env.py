import pytest

from insign.utils import runtime


def test_dev_mode_off_by_default(monkeypatch):
    monkeypatch.delenv("DEV_MODE", raising=False)
    assert runtime.dev_mode_requested() is False
    assert runtime.dev_mode_active() is False


def test_dev_mode_allowed_on_localhost(monkeypatch):
    monkeypatch.setenv("DEV_MODE", "true")
    monkeypatch.setenv("APP_BASE_URL", "http://localhost:3000")
    assert runtime.dev_mode_active() is True


def test_dev_mode_refused_on_public_host(monkeypatch):
    monkeypatch.setenv("DEV_MODE", "true")
    monkeypatch.setenv("APP_BASE_URL", "https://app.example.com")
    with pytest.raises(RuntimeError):
        runtime.dev_mode_active()


def test_dev_mode_extra_allowed_hosts(monkeypatch):
    monkeypatch.setenv("DEV_MODE", "true")
    monkeypatch.setenv("APP_BASE_URL", "http://devbox.internal:3000")
    monkeypatch.setenv("DEV_MODE_ALLOWED_HOSTS", "devbox.internal")
    assert runtime.dev_mode_active() is True


def test_numeric_settings_fall_back_on_garbage(monkeypatch):
    monkeypatch.setenv("SESSION_TOKEN_TTL_HOURS", "abc")
    monkeypatch.setenv("WEBHOOK_TIMEOUT_SECONDS", "soon")
    assert runtime.session_token_ttl_hours() == 12
    assert runtime.webhook_timeout_seconds() == 10.0

    monkeypatch.setenv("SESSION_TOKEN_TTL_HOURS", "0")
    assert runtime.session_token_ttl_hours() == 1


def test_superadmin_emails_are_normalized(monkeypatch):
    monkeypatch.setenv("ADMIN_EMAILS", " Boss@Example.com, ,ops@example.com")
    assert runtime.superadmin_emails() == {"boss@example.com", "ops@example.com"}
