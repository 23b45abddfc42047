import uuid
from sqlalchemy import Column, String, Text, DateTime, Boolean, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from .base import Base, now_utc


class UserNotificationPreference(Base):
    """Per-user switch for one configurable event; a missing row means both channels on."""
    __tablename__ = 'user_notification_preferences'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    event_type = Column(String(50), nullable=False)
    email_enabled = Column(Boolean, nullable=False, default=True)
    in_app_enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)

    __table_args__ = (
        Index('uq_notification_pref_user_event', 'user_id', 'event_type', unique=True),
    )


class Notification(Base):
    """In-app notice shown to an organization user (request completed, declined...)."""
    __tablename__ = 'notifications'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    event_type = Column(String(50), nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    action_url = Column(String(500), nullable=True)
    action_text = Column(String(100), nullable=True)
    metadata_json = Column('metadata', JSONB, nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index('idx_notifications_user_created', 'user_id', 'created_at'),
        Index('idx_notifications_user_unread', 'user_id', 'is_read'),
    )


class EmailNotificationLog(Base):
    """One outgoing email and its delivery outcome."""
    __tablename__ = 'email_notification_logs'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # NULL for external signers who have no account
    user_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    recipient_email = Column(String(320), nullable=False)
    event_type = Column(String(50), nullable=False)
    template_name = Column(String(100), nullable=True)
    subject = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False, default='pending')
    provider_message_id = Column(String(255), nullable=True)
    error_message = Column(Text, nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    __table_args__ = (
        Index('idx_email_logs_status_created', 'status', 'created_at'),
        Index('idx_email_logs_recipient', 'recipient_email'),
    )
