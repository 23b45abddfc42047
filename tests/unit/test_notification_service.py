from datetime import timedelta

import pytest

from insign.db import models
from insign.db.models import now_utc
from insign.services.notification_service import (
    EVENT_SIGNATURE_COMPLETED,
    EVENT_SIGNATURE_DECLINED,
    NotificationService,
)


class FailingEmailService:
    def render_template(self, name, context):
        return "<p>x</p>", "x"

    async def send_email(self, to_email, subject, html_content, text_content=None):
        return {"success": False, "error": "mailbox full"}


@pytest.fixture
def user(org, make_user):
    return make_user(org, email="nora@example.com", first_name="Nora", last_name="Notified")


def test_preferences_default_to_enabled(db, user):
    prefs = NotificationService(db).get_user_preferences(user.id)
    assert set(prefs) == {EVENT_SIGNATURE_COMPLETED, EVENT_SIGNATURE_DECLINED}
    assert all(p == {"email_enabled": True, "in_app_enabled": True} for p in prefs.values())


def test_set_preference_updates_single_channel(db, user):
    service = NotificationService(db)
    service.set_user_preference(user.id, EVENT_SIGNATURE_DECLINED, email_enabled=False)
    prefs = service.get_user_preferences(user.id)
    assert prefs[EVENT_SIGNATURE_DECLINED] == {"email_enabled": False, "in_app_enabled": True}
    assert prefs[EVENT_SIGNATURE_COMPLETED]["email_enabled"] is True


def test_unknown_preference_event_rejected(db, user):
    with pytest.raises(ValueError):
        NotificationService(db).set_user_preference(user.id, "document.uploaded", email_enabled=False)


def test_read_state_and_counts(db, user):
    service = NotificationService(db)
    first = service.create_notification(user.id, EVENT_SIGNATURE_COMPLETED, "Done", "All signed")
    service.create_notification(user.id, EVENT_SIGNATURE_DECLINED, "Declined", "Nope")
    assert service.get_unread_count(user.id) == 2

    assert service.mark_notification_read(first.id, user.id) is True
    assert service.get_unread_count(user.id) == 1
    unread = service.get_user_notifications(user.id, unread_only=True)
    assert [n.title for n in unread] == ["Declined"]

    assert service.mark_all_read(user.id) == 1
    assert service.get_unread_count(user.id) == 0
    assert service.count_notifications(user.id) == 2


def test_mark_read_rejects_other_users(db, org, make_user, user):
    other = make_user(org)
    service = NotificationService(db)
    note = service.create_notification(user.id, EVENT_SIGNATURE_COMPLETED, "Done", "All signed")
    assert service.mark_notification_read(note.id, other.id) is False


def test_cleanup_removes_only_expired(db, user):
    service = NotificationService(db)
    service.create_notification(user.id, EVENT_SIGNATURE_COMPLETED, "Fresh", "still here")
    stale = service.create_notification(user.id, EVENT_SIGNATURE_COMPLETED, "Stale", "old")
    stale.expires_at = now_utc() - timedelta(days=1)
    db.commit()

    assert service.cleanup_expired_notifications() == 1
    remaining = db.query(models.Notification).all()
    assert [n.title for n in remaining] == ["Fresh"]


def test_password_reset_email_is_logged_as_sent(db, user, email_outbox):
    result = NotificationService(db).send_password_reset(user, "raw-token")
    assert result["success"] is True

    [message] = email_outbox.to("nora@example.com")
    assert message["subject"] == "Reset your Insign password"
    assert "raw-token" in message["text"]

    log = db.get(models.EmailNotificationLog, result["email_log_id"])
    assert log.status == "sent"
    assert log.sent_at is not None
    assert log.recipient_email == "nora@example.com"
    assert log.template_name == "password_reset"


def test_failed_delivery_is_recorded(db, user):
    service = NotificationService(db, email_service=FailingEmailService())
    result = service.send_email_verification(user, "verify-token")
    assert result["success"] is False

    log = db.get(models.EmailNotificationLog, result["email_log_id"])
    assert log.status == "failed"
    assert log.error_message == "mailbox full"
