import asyncio
from datetime import datetime, timezone

import pytest

from insign.services.transactional_email_service import (
    EmailProvider,
    MailgunEmailService,
    SmtpEmailService,
    TransactionalEmailConfig,
    TransactionalEmailService,
    html_to_text,
)


@pytest.fixture
def clean_email_env(monkeypatch):
    for name in (
        "EMAIL_PROVIDER", "RESEND_API_KEY", "SENDGRID_API_KEY", "MAILGUN_API_KEY", "MAILGUN_DOMAIN",
        "SMTP_HOST", "SMTP_USERNAME", "SMTP_PASSWORD", "SMTP_USE_TLS", "SMTP_USE_SSL",
        "EMAIL_TEMPLATE_DIR", "REPLY_TO_EMAIL",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_unknown_provider_falls_back_to_resend(clean_email_env):
    clean_email_env.setenv("EMAIL_PROVIDER", "carrier-pigeon")
    config = TransactionalEmailConfig()
    assert config.provider is EmailProvider.RESEND
    assert config.validate() == ["RESEND_API_KEY is required for the resend provider"]


def test_mailgun_requires_key_and_domain(clean_email_env):
    clean_email_env.setenv("EMAIL_PROVIDER", "mailgun")
    clean_email_env.setenv("MAILGUN_API_KEY", "key-123")
    errors = TransactionalEmailConfig().validate()
    assert errors == ["MAILGUN_DOMAIN is required for the mailgun provider"]


def test_unconfigured_service_reports_failure(clean_email_env):
    service = TransactionalEmailService()
    assert service.is_configured is False
    result = asyncio.run(service.send_email("a@example.com", "Hi", "<p>Hi</p>"))
    assert result == {"success": False, "error": "Email service not configured"}
    status = asyncio.run(service.test_connection())
    assert status["success"] is False


def test_mailgun_provider_posts_form(clean_email_env, monkeypatch):
    clean_email_env.setenv("EMAIL_PROVIDER", "mailgun")
    clean_email_env.setenv("MAILGUN_API_KEY", "key-123")
    clean_email_env.setenv("MAILGUN_DOMAIN", "mg.example.com")
    captured = {}

    class _Resp:
        status_code = 200
        text = "ok"

        def json(self):
            return {"id": "<msg@mg>"}

    def _post(url, auth=None, data=None, timeout=None):
        captured.update(url=url, auth=auth, data=data)
        return _Resp()

    monkeypatch.setattr("requests.post", _post)
    service = TransactionalEmailService()
    assert isinstance(service.provider_service, MailgunEmailService)

    result = asyncio.run(service.send_email("to@example.com", "Subject", "<p>Body</p>", "Body"))
    assert result == {"success": True, "provider": "mailgun", "message_id": "<msg@mg>"}
    assert captured["url"] == "https://api.mailgun.net/v3/mg.example.com/messages"
    assert captured["auth"] == ("api", "key-123")
    assert captured["data"]["text"] == "Body"


def test_provider_exceptions_are_reported_not_raised(clean_email_env, monkeypatch):
    clean_email_env.setenv("EMAIL_PROVIDER", "smtp")
    clean_email_env.setenv("SMTP_HOST", "smtp.example.com")

    async def _fail(message, **options):
        raise ConnectionRefusedError("no route")

    service = TransactionalEmailService()
    assert isinstance(service.provider_service, SmtpEmailService)
    monkeypatch.setattr(service.provider_service, "smtp", type("S", (), {"send": staticmethod(_fail)}))
    result = asyncio.run(service.send_email("to@example.com", "S", "<p>x</p>"))
    assert result["success"] is False
    assert "no route" in result["error"]


def test_smtp_message_and_options(clean_email_env, monkeypatch):
    clean_email_env.setenv("EMAIL_PROVIDER", "smtp")
    clean_email_env.setenv("SMTP_HOST", "smtp.example.com")
    clean_email_env.setenv("SMTP_USERNAME", "mailer")
    clean_email_env.setenv("SMTP_PASSWORD", "pw")
    clean_email_env.setenv("REPLY_TO_EMAIL", "support@example.com")
    sent = {}

    async def _send(message, **options):
        sent["message"] = message
        sent["options"] = options

    service = TransactionalEmailService()
    monkeypatch.setattr(service.provider_service, "smtp", type("S", (), {"send": staticmethod(_send)}))
    result = asyncio.run(service.send_email("to@example.com", "Hello", "<p>Hi <b>there</b></p>"))

    assert result["success"] is True
    message = sent["message"]
    assert message["To"] == "to@example.com"
    assert message["Reply-To"] == "support@example.com"
    assert sent["options"]["start_tls"] is True
    assert sent["options"]["username"] == "mailer"


def test_html_to_text():
    assert html_to_text("<p>Hello &amp; welcome</p><p>Line<br>two</p>") == "Hello & welcome\nLine\ntwo"


def test_render_signature_request_templates(clean_email_env):
    service = TransactionalEmailService()
    html, text = service.render_template("signature_request", {
        "participant_name": "Jane <Doe>",
        "sender_name": "Ada Admin",
        "request_title": "NDA",
        "request_message": "Please sign today",
        "document_name": "nda.pdf",
        "signing_url": "http://localhost:3000/sign/tok",
        "expires_at": datetime(2030, 5, 1, 12, 0, tzinfo=timezone.utc),
        "is_reminder": True,
    })
    assert "Jane &lt;Doe&gt;" in html
    assert "http://localhost:3000/sign/tok" in html
    assert "still waiting" in text
    assert "May 01, 2030" in text


def test_render_completed_template_lists_participants(clean_email_env):
    service = TransactionalEmailService()
    html, text = service.render_template("signature_completed", {
        "request_title": "NDA",
        "document_name": "nda.pdf",
        "completed_at": datetime(2030, 1, 1, tzinfo=timezone.utc),
        "request_url": "http://localhost:3000/signatures/1",
        "participants": [
            {"name": "Jane", "email": "jane@example.com", "signed_at": datetime(2030, 1, 1, tzinfo=timezone.utc)},
            {"name": "Watcher", "email": "cc@example.com", "signed_at": None},
        ],
        "recipient_email": "jane@example.com",
    })
    assert "jane@example.com" in html
    assert "- Watcher <cc@example.com>" in text


def test_missing_template_raises(clean_email_env):
    with pytest.raises(RuntimeError):
        TransactionalEmailService().render_template("does_not_exist", {})
