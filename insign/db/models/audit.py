import uuid
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from .base import Base, now_utc


class AuditLog(Base):
    """Organization-level trail of management actions (users, documents, webhooks...)."""
    __tablename__ = 'audit_logs'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=True)
    actor_user_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    action_type = Column(String(64), nullable=False)
    target_type = Column(String(50), nullable=True)
    target_id = Column(UUID(as_uuid=True), nullable=True)
    status = Column(String(20), nullable=False, default='success')
    reason = Column(Text, nullable=True)
    # attribute renamed; 'metadata' is reserved on declarative models
    metadata_json = Column('metadata', JSONB, nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    __table_args__ = (
        Index('idx_audit_logs_org_created', 'organization_id', 'created_at'),
        Index('idx_audit_logs_actor_created', 'actor_user_id', 'created_at'),
        Index('idx_audit_logs_target', 'target_type', 'target_id'),
    )
