"""
Transactional email delivery.

Outbound mail for signing invitations, completion and decline notices,
password resets and address verification goes through one of the
supported providers:

- Resend (default)
- SendGrid
- Mailgun (HTTP API through ``requests``)
- SMTP (any relay, through ``aiosmtplib``)

The provider is picked with ``EMAIL_PROVIDER``. When the selected provider
is missing credentials the service stays up and every send reports
``success=False`` so callers can record the failure in the email log.
"""

import os
import re
import logging
from email.message import EmailMessage
from enum import Enum
from pathlib import Path
from typing import Optional, Dict, Any, List, Tuple

from jinja2 import Environment, FileSystemLoader, TemplateNotFound, select_autoescape

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "email"


class EmailProvider(Enum):
    RESEND = "resend"
    SENDGRID = "sendgrid"
    MAILGUN = "mailgun"
    SMTP = "smtp"


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class TransactionalEmailConfig:
    """Provider settings read from the environment."""

    def __init__(self):
        raw_provider = os.getenv("EMAIL_PROVIDER", "resend").strip().lower()
        try:
            self.provider = EmailProvider(raw_provider)
        except ValueError:
            logger.warning("Unknown EMAIL_PROVIDER %r, falling back to resend", raw_provider)
            self.provider = EmailProvider.RESEND

        self.from_email = os.getenv("FROM_EMAIL", "noreply@insign.app")
        self.from_name = os.getenv("FROM_NAME", "Insign")
        self.reply_to_email = os.getenv("REPLY_TO_EMAIL", "")

        self.resend_api_key = os.getenv("RESEND_API_KEY", "")
        self.sendgrid_api_key = os.getenv("SENDGRID_API_KEY", "")
        self.mailgun_api_key = os.getenv("MAILGUN_API_KEY", "")
        self.mailgun_domain = os.getenv("MAILGUN_DOMAIN", "")

        self.smtp_host = os.getenv("SMTP_HOST", "")
        self.smtp_port = int(os.getenv("SMTP_PORT", "587"))
        self.smtp_username = os.getenv("SMTP_USERNAME", "")
        self.smtp_password = os.getenv("SMTP_PASSWORD", "")
        self.smtp_use_tls = _env_flag("SMTP_USE_TLS", "true")
        self.smtp_use_ssl = _env_flag("SMTP_USE_SSL")

        self.template_dir = os.getenv("EMAIL_TEMPLATE_DIR", str(DEFAULT_TEMPLATE_DIR))

    @property
    def sender(self) -> str:
        return f"{self.from_name} <{self.from_email}>"

    def validate(self) -> List[str]:
        errors: List[str] = []
        if not self.from_email:
            errors.append("FROM_EMAIL is required")

        required = {
            EmailProvider.RESEND: [("RESEND_API_KEY", self.resend_api_key)],
            EmailProvider.SENDGRID: [("SENDGRID_API_KEY", self.sendgrid_api_key)],
            EmailProvider.MAILGUN: [
                ("MAILGUN_API_KEY", self.mailgun_api_key),
                ("MAILGUN_DOMAIN", self.mailgun_domain),
            ],
            EmailProvider.SMTP: [("SMTP_HOST", self.smtp_host)],
        }
        for env_name, value in required[self.provider]:
            if not value:
                errors.append(f"{env_name} is required for the {self.provider.value} provider")
        return errors

    def is_configured(self) -> bool:
        return not self.validate()


class ResendEmailService:
    name = "resend"

    def __init__(self, config: TransactionalEmailConfig):
        import resend

        resend.api_key = config.resend_api_key
        self.client = resend
        self.config = config

    async def send_email(self, to_email: str, subject: str, html_content: str,
                         text_content: Optional[str] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "from": self.config.sender,
            "to": [to_email],
            "subject": subject,
            "html": html_content,
        }
        if text_content:
            payload["text"] = text_content
        if self.config.reply_to_email:
            payload["reply_to"] = self.config.reply_to_email

        result = self.client.Emails.send(payload)
        return {"success": True, "provider": self.name, "message_id": result.get("id", "")}


class SendGridEmailService:
    name = "sendgrid"

    def __init__(self, config: TransactionalEmailConfig):
        from sendgrid import SendGridAPIClient

        self.client = SendGridAPIClient(api_key=config.sendgrid_api_key)
        self.config = config

    async def send_email(self, to_email: str, subject: str, html_content: str,
                         text_content: Optional[str] = None) -> Dict[str, Any]:
        from sendgrid.helpers.mail import From, Mail, PlainTextContent

        mail = Mail(
            from_email=From(self.config.from_email, self.config.from_name),
            to_emails=to_email,
            subject=subject,
            html_content=html_content,
        )
        if text_content:
            mail.plain_text_content = PlainTextContent(text_content)
        if self.config.reply_to_email:
            mail.reply_to = self.config.reply_to_email

        response = self.client.send(mail)
        if response.status_code >= 400:
            return {
                "success": False,
                "provider": self.name,
                "error": f"HTTP {response.status_code}",
            }
        return {
            "success": True,
            "provider": self.name,
            "message_id": response.headers.get("X-Message-Id", ""),
        }


class MailgunEmailService:
    name = "mailgun"

    def __init__(self, config: TransactionalEmailConfig):
        import requests

        self.requests = requests
        self.config = config
        self.base_url = f"https://api.mailgun.net/v3/{config.mailgun_domain}"

    async def send_email(self, to_email: str, subject: str, html_content: str,
                         text_content: Optional[str] = None) -> Dict[str, Any]:
        data = {
            "from": self.config.sender,
            "to": to_email,
            "subject": subject,
            "html": html_content,
        }
        if text_content:
            data["text"] = text_content
        if self.config.reply_to_email:
            data["h:Reply-To"] = self.config.reply_to_email

        response = self.requests.post(
            f"{self.base_url}/messages",
            auth=("api", self.config.mailgun_api_key),
            data=data,
            timeout=15,
        )
        if response.status_code != 200:
            return {
                "success": False,
                "provider": self.name,
                "error": f"HTTP {response.status_code}: {response.text}",
            }
        return {"success": True, "provider": self.name, "message_id": response.json().get("id", "")}


class SmtpEmailService:
    name = "smtp"

    def __init__(self, config: TransactionalEmailConfig):
        import aiosmtplib

        self.smtp = aiosmtplib
        self.config = config

    def _build_message(self, to_email: str, subject: str, html_content: str,
                       text_content: Optional[str]) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.config.sender
        message["To"] = to_email
        message["Subject"] = subject
        if self.config.reply_to_email:
            message["Reply-To"] = self.config.reply_to_email
        message.set_content(text_content or html_to_text(html_content))
        message.add_alternative(html_content, subtype="html")
        return message

    async def send_email(self, to_email: str, subject: str, html_content: str,
                         text_content: Optional[str] = None) -> Dict[str, Any]:
        message = self._build_message(to_email, subject, html_content, text_content)
        options: Dict[str, Any] = {
            "hostname": self.config.smtp_host,
            "port": self.config.smtp_port,
        }
        if self.config.smtp_use_ssl:
            options["use_tls"] = True
        elif self.config.smtp_use_tls:
            options["start_tls"] = True
        if self.config.smtp_username and self.config.smtp_password:
            options["username"] = self.config.smtp_username
            options["password"] = self.config.smtp_password

        await self.smtp.send(message, **options)
        return {"success": True, "provider": self.name, "message_id": message.get("Message-ID", "")}


PROVIDER_CLASSES = {
    EmailProvider.RESEND: ResendEmailService,
    EmailProvider.SENDGRID: SendGridEmailService,
    EmailProvider.MAILGUN: MailgunEmailService,
    EmailProvider.SMTP: SmtpEmailService,
}


def html_to_text(html_content: str) -> str:
    text = re.sub(r"<(br|/p|/div|/h[1-6]|/li)\s*/?>", "\n", html_content, flags=re.IGNORECASE)
    text = re.sub(r"<[^>]+>", "", text)
    text = (
        text.replace("&amp;", "&")
        .replace("&lt;", "<")
        .replace("&gt;", ">")
        .replace("&quot;", '"')
        .replace("&#39;", "'")
    )
    lines = [re.sub(r"[ \t]+", " ", line).strip() for line in text.splitlines()]
    return "\n".join(line for line in lines if line)


class TransactionalEmailService:
    """Renders templates and delegates delivery to the configured provider."""

    def __init__(self, config: Optional[TransactionalEmailConfig] = None):
        self.config = config or TransactionalEmailConfig()
        self.provider_service = None
        self._setup_provider()
        self.template_env = self._build_template_env()

    def _setup_provider(self):
        errors = self.config.validate()
        if errors:
            logger.warning("Email service not configured: %s", "; ".join(errors))
            return
        provider_cls = PROVIDER_CLASSES[self.config.provider]
        try:
            self.provider_service = provider_cls(self.config)
        except ImportError:
            logger.error("Email provider %s is missing its client library", self.config.provider.value)
            return
        logger.info("Initialized %s email provider", self.config.provider.value)

    def _build_template_env(self) -> Environment:
        template_path = Path(self.config.template_dir)
        if not template_path.exists():
            logger.warning("Email template directory not found: %s", template_path)
            template_path = DEFAULT_TEMPLATE_DIR
        return Environment(
            loader=FileSystemLoader(str(template_path)),
            autoescape=select_autoescape(enabled_extensions=("html",), default_for_string=False),
        )

    @property
    def is_configured(self) -> bool:
        return self.provider_service is not None

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Send one message.

        Returns a dict with ``success`` plus either ``message_id`` or ``error``.
        Provider failures are reported, never raised.
        """
        if not self.provider_service:
            return {"success": False, "error": "Email service not configured"}

        logger.info("Sending email to %s via %s", to_email, self.config.provider.value)
        try:
            result = await self.provider_service.send_email(
                to_email=to_email,
                subject=subject,
                html_content=html_content,
                text_content=text_content,
            )
        except Exception as exc:  # provider SDKs raise assorted exception types
            logger.error("Email delivery to %s failed: %s", to_email, exc, exc_info=True)
            return {"success": False, "provider": self.config.provider.value, "error": str(exc)}

        if result.get("success"):
            logger.info("Email sent to %s via %s", to_email, result.get("provider"))
        else:
            logger.error("Email delivery to %s failed: %s", to_email, result.get("error"))
        return result

    def render_template(self, template_name: str, context: Dict[str, Any]) -> Tuple[str, str]:
        """Render ``<name>.html`` and ``<name>.txt``; the text part falls back to stripped HTML."""
        try:
            html_content = self.template_env.get_template(f"{template_name}.html").render(**context)
        except TemplateNotFound as exc:
            raise RuntimeError(f"Email template not found: {template_name}") from exc

        try:
            text_content = self.template_env.get_template(f"{template_name}.txt").render(**context)
        except TemplateNotFound:
            text_content = html_to_text(html_content)
        return html_content, text_content

    async def test_connection(self) -> Dict[str, Any]:
        errors = self.config.validate()
        if errors:
            return {"success": False, "error": f"Configuration errors: {', '.join(errors)}"}
        if not self.provider_service:
            return {"success": False, "error": "Email provider could not be initialized"}
        return {
            "success": True,
            "provider": self.config.provider.value,
            "message": f"Email service ready ({self.config.provider.value})",
        }


_email_service: Optional[TransactionalEmailService] = None


def get_transactional_email_service() -> TransactionalEmailService:
    global _email_service
    if _email_service is None:
        _email_service = TransactionalEmailService()
    return _email_service
