"""
Notification service: in-app notifications, preferences, and email dispatch.

Every outbound email is recorded in `email_notification_logs` before it is
handed to the transactional provider; the log row is then flipped to
`sent` or `failed`. Delivery problems never propagate to the caller.
"""

import asyncio
import logging
import uuid
from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, desc
from sqlalchemy.orm import Session

from insign.db import models
from insign.db.models import now_utc
from insign.utils.urls import (
    build_email_verification_link,
    build_password_reset_link,
    build_request_link,
    build_signing_link,
)

logger = logging.getLogger(__name__)

EVENT_SIGNATURE_REQUEST = 'signature_request'
EVENT_SIGNATURE_COMPLETED = 'signature_request_completed'
EVENT_SIGNATURE_DECLINED = 'signature_request_declined'
EVENT_PASSWORD_RESET = 'password_reset'
EVENT_EMAIL_VERIFICATION = 'email_verification'

# Events a user can switch on or off; the others are always delivered.
PREFERENCE_EVENTS = (EVENT_SIGNATURE_COMPLETED, EVENT_SIGNATURE_DECLINED)

TEMPLATE_SIGNATURE_REQUEST = 'signature_request'
TEMPLATE_SIGNATURE_COMPLETED = 'signature_completed'
TEMPLATE_SIGNATURE_DECLINED = 'signature_declined'
TEMPLATE_PASSWORD_RESET = 'password_reset'
TEMPLATE_EMAIL_VERIFICATION = 'email_verification'


class NotificationService:
    """Service class for handling all notification operations."""

    def __init__(self, db: Session, email_service: Optional[Any] = None):
        self.db = db
        if email_service is None:
            # Resolved at call time so tests can swap the module-level singleton.
            from insign.services import transactional_email_service
            email_service = transactional_email_service.get_transactional_email_service()
        self.email_service = email_service

    # === Preferences ===

    def get_user_preferences(self, user_id: uuid.UUID) -> Dict[str, Dict[str, bool]]:
        """Return preferences for every configurable event, defaults filled in."""
        preferences = {
            event: {'email_enabled': True, 'in_app_enabled': True}
            for event in PREFERENCE_EVENTS
        }
        rows = self.db.query(models.UserNotificationPreference).filter(
            models.UserNotificationPreference.user_id == user_id
        ).all()
        for row in rows:
            if row.event_type in preferences:
                preferences[row.event_type] = {
                    'email_enabled': row.email_enabled,
                    'in_app_enabled': row.in_app_enabled,
                }
        return preferences

    def set_user_preference(
        self,
        user_id: uuid.UUID,
        event_type: str,
        email_enabled: Optional[bool] = None,
        in_app_enabled: Optional[bool] = None,
    ) -> models.UserNotificationPreference:
        if event_type not in PREFERENCE_EVENTS:
            raise ValueError(f"Unknown notification event: {event_type}")

        pref = self.db.query(models.UserNotificationPreference).filter(
            and_(
                models.UserNotificationPreference.user_id == user_id,
                models.UserNotificationPreference.event_type == event_type,
            )
        ).first()
        if pref is None:
            pref = models.UserNotificationPreference(
                user_id=user_id,
                event_type=event_type,
                email_enabled=True,
                in_app_enabled=True,
            )
            self.db.add(pref)
        if email_enabled is not None:
            pref.email_enabled = email_enabled
        if in_app_enabled is not None:
            pref.in_app_enabled = in_app_enabled
        pref.updated_at = now_utc()
        self.db.commit()
        self.db.refresh(pref)
        return pref

    def _wants(self, user_id: Optional[uuid.UUID], event_type: str, channel: str) -> bool:
        if user_id is None or event_type not in PREFERENCE_EVENTS:
            return True
        return self.get_user_preferences(user_id)[event_type][channel]

    # === In-app notifications ===

    def create_notification(
        self,
        user_id: uuid.UUID,
        event_type: str,
        title: str,
        message: str,
        action_url: Optional[str] = None,
        action_text: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        expires_days: int = 30,
    ) -> models.Notification:
        notification = models.Notification(
            user_id=user_id,
            event_type=event_type,
            title=title,
            message=message,
            action_url=action_url,
            action_text=action_text,
            metadata_json=metadata or None,
            expires_at=now_utc() + timedelta(days=expires_days),
        )
        self.db.add(notification)
        self.db.commit()
        self.db.refresh(notification)
        return notification

    def _active_filter(self, user_id: uuid.UUID):
        return and_(
            models.Notification.user_id == user_id,
            models.Notification.expires_at > now_utc(),
        )

    def get_user_notifications(
        self,
        user_id: uuid.UUID,
        unread_only: bool = False,
        limit: int = 50,
    ) -> List[models.Notification]:
        query = self.db.query(models.Notification).filter(self._active_filter(user_id))
        if unread_only:
            query = query.filter(models.Notification.is_read.is_(False))
        return query.order_by(desc(models.Notification.created_at)).limit(limit).all()

    def count_notifications(self, user_id: uuid.UUID) -> int:
        return self.db.query(models.Notification).filter(self._active_filter(user_id)).count()

    def mark_notification_read(self, notification_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        """Returns False when the notification does not exist or belongs to someone else."""
        notification = self.db.query(models.Notification).filter(
            and_(
                models.Notification.id == notification_id,
                models.Notification.user_id == user_id,
            )
        ).first()
        if not notification:
            return False
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = now_utc()
            self.db.commit()
        return True

    def mark_all_read(self, user_id: uuid.UUID) -> int:
        updated = self.db.query(models.Notification).filter(
            and_(
                models.Notification.user_id == user_id,
                models.Notification.is_read.is_(False),
            )
        ).update({'is_read': True, 'read_at': now_utc()}, synchronize_session=False)
        self.db.commit()
        return updated

    def get_unread_count(self, user_id: uuid.UUID) -> int:
        return self.db.query(models.Notification).filter(
            self._active_filter(user_id),
            models.Notification.is_read.is_(False),
        ).count()

    # === Email ===

    def create_email_notification_log(
        self,
        recipient_email: str,
        event_type: str,
        subject: str,
        user_id: Optional[uuid.UUID] = None,
        template_name: Optional[str] = None,
    ) -> models.EmailNotificationLog:
        email_log = models.EmailNotificationLog(
            user_id=user_id,
            recipient_email=recipient_email,
            event_type=event_type,
            template_name=template_name,
            subject=subject,
            status='pending',
        )
        self.db.add(email_log)
        self.db.commit()
        self.db.refresh(email_log)
        return email_log

    def update_email_status(
        self,
        email_log_id: uuid.UUID,
        status: str,
        provider_message_id: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> bool:
        email_log = self.db.get(models.EmailNotificationLog, email_log_id)
        if not email_log:
            return False
        email_log.status = status
        if provider_message_id:
            email_log.provider_message_id = provider_message_id
        if error_message:
            email_log.error_message = error_message
        if status == 'sent':
            email_log.sent_at = now_utc()
        self.db.commit()
        return True

    async def send_email_notification(
        self,
        email_log: models.EmailNotificationLog,
        template_name: str,
        template_context: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Render and deliver one logged email, recording the outcome on the log row."""
        try:
            html_content, text_content = self.email_service.render_template(template_name, template_context)
            result = await self.email_service.send_email(
                to_email=email_log.recipient_email,
                subject=email_log.subject,
                html_content=html_content,
                text_content=text_content,
            )
        except Exception as exc:
            logger.warning("Email %s to %s failed: %s", template_name, email_log.recipient_email, exc)
            result = {'success': False, 'error': f"Failed to send email: {exc}"}

        if result.get('success'):
            self.update_email_status(email_log.id, 'sent', provider_message_id=result.get('message_id'))
        else:
            self.update_email_status(email_log.id, 'failed', error_message=result.get('error') or 'Unknown error')
        return {'email_log_id': email_log.id, **result}

    def send_templated_email(
        self,
        to_email: str,
        event_type: str,
        subject: str,
        template_name: str,
        context: Dict[str, Any],
        user_id: Optional[uuid.UUID] = None,
    ) -> Dict[str, Any]:
        """Synchronous entry point used by request handlers."""
        if self.email_service is None:
            return {'success': False, 'error': 'Email service unavailable'}
        email_log = self.create_email_notification_log(
            recipient_email=to_email,
            event_type=event_type,
            subject=subject,
            user_id=user_id,
            template_name=template_name,
        )
        return asyncio.run(self.send_email_notification(email_log, template_name, context))

    # === Domain notifications ===

    def notify_signature_request(
        self,
        participant: models.SignatureParticipant,
        request: models.SignatureRequest,
        sender_name: str,
        reminder: bool = False,
    ) -> Dict[str, Any]:
        subject = f"Signature Request: {request.title}"
        if reminder:
            subject = f"Reminder: {subject}"
        context = {
            'participant_name': participant.full_name or participant.email,
            'sender_name': sender_name,
            'request_title': request.title,
            'request_message': request.message,
            'document_name': request.document.name if request.document else '',
            'signing_url': build_signing_link(participant.access_token),
            'expires_at': request.expires_at,
            'is_reminder': reminder,
        }
        return self.send_templated_email(
            to_email=participant.email,
            event_type=EVENT_SIGNATURE_REQUEST,
            subject=subject,
            template_name=TEMPLATE_SIGNATURE_REQUEST,
            context=context,
            user_id=participant.user_id,
        )

    def notify_request_completed(self, request: models.SignatureRequest) -> List[Dict[str, Any]]:
        """Email the creator and every participant; drop an in-app notice for the creator."""
        results: List[Dict[str, Any]] = []
        creator = request.creator
        request_url = build_request_link(request.id)
        base_context = {
            'request_title': request.title,
            'document_name': request.document.name if request.document else '',
            'completed_at': request.completed_at,
            'request_url': request_url,
            'participants': [
                {'name': p.full_name or p.email, 'email': p.email, 'signed_at': p.signed_at}
                for p in request.participants
            ],
        }
        subject = f"Completed: {request.title}"

        recipients: Dict[str, Optional[uuid.UUID]] = {}
        if creator is not None and self._wants(creator.id, EVENT_SIGNATURE_COMPLETED, 'email_enabled'):
            recipients[creator.email] = creator.id
        for participant in request.participants:
            recipients.setdefault(participant.email, participant.user_id)

        for email, user_id in recipients.items():
            context = dict(base_context, recipient_email=email)
            results.append(self.send_templated_email(
                to_email=email,
                event_type=EVENT_SIGNATURE_COMPLETED,
                subject=subject,
                template_name=TEMPLATE_SIGNATURE_COMPLETED,
                context=context,
                user_id=user_id,
            ))

        if creator is not None and self._wants(creator.id, EVENT_SIGNATURE_COMPLETED, 'in_app_enabled'):
            self.create_notification(
                user_id=creator.id,
                event_type=EVENT_SIGNATURE_COMPLETED,
                title="Signature request completed",
                message=f"All participants have signed '{request.title}'.",
                action_url=request_url,
                action_text="View request",
                metadata={'request_id': str(request.id)},
            )
        return results

    def notify_request_declined(
        self,
        request: models.SignatureRequest,
        participant: models.SignatureParticipant,
        reason: str,
    ) -> Optional[Dict[str, Any]]:
        creator = request.creator
        if creator is None:
            return None
        request_url = build_request_link(request.id)
        participant_name = participant.full_name or participant.email
        result = None
        if self._wants(creator.id, EVENT_SIGNATURE_DECLINED, 'email_enabled'):
            result = self.send_templated_email(
                to_email=creator.email,
                event_type=EVENT_SIGNATURE_DECLINED,
                subject=f"Declined: {request.title}",
                template_name=TEMPLATE_SIGNATURE_DECLINED,
                context={
                    'creator_name': creator.full_name,
                    'participant_name': participant_name,
                    'participant_email': participant.email,
                    'request_title': request.title,
                    'reason': reason,
                    'request_url': request_url,
                },
                user_id=creator.id,
            )
        if self._wants(creator.id, EVENT_SIGNATURE_DECLINED, 'in_app_enabled'):
            self.create_notification(
                user_id=creator.id,
                event_type=EVENT_SIGNATURE_DECLINED,
                title="Signature request declined",
                message=f"{participant_name} declined '{request.title}': {reason}",
                action_url=request_url,
                action_text="View request",
                metadata={'request_id': str(request.id), 'participant_id': str(participant.id)},
            )
        return result

    def send_password_reset(self, user: models.User, token: str) -> Dict[str, Any]:
        return self.send_templated_email(
            to_email=user.email,
            event_type=EVENT_PASSWORD_RESET,
            subject="Reset your Insign password",
            template_name=TEMPLATE_PASSWORD_RESET,
            context={'user_name': user.full_name, 'reset_url': build_password_reset_link(token)},
            user_id=user.id,
        )

    def send_email_verification(self, user: models.User, token: str) -> Dict[str, Any]:
        return self.send_templated_email(
            to_email=user.email,
            event_type=EVENT_EMAIL_VERIFICATION,
            subject="Verify your email address",
            template_name=TEMPLATE_EMAIL_VERIFICATION,
            context={'user_name': user.full_name, 'verification_url': build_email_verification_link(token)},
            user_id=user.id,
        )

    # === Cleanup ===

    def cleanup_expired_notifications(self) -> int:
        expired = self.db.query(models.Notification).filter(
            models.Notification.expires_at <= now_utc()
        )
        count = expired.count()
        expired.delete(synchronize_session=False)
        self.db.commit()
        return count
