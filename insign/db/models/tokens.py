import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, Text, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from .base import Base, now_utc


class ApiKey(Base):
    """API keys and login session tokens share one table, split by `kind`."""
    __tablename__ = 'api_keys'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)

    # Token identity and secret hash (never store raw secret)
    token_id = Column(String(64), nullable=False, unique=True)
    token_hash = Column(Text, nullable=False)

    # Display metadata
    name = Column(String(100), nullable=False)
    prefix = Column(String(12), nullable=True)
    last_four = Column(String(4), nullable=True)

    scopes = Column(JSONB, nullable=False)
    kind = Column(String(20), nullable=False, default='api_key')  # api_key|session
    status = Column(String(20), nullable=False, default='active')  # active|revoked|expired

    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    last_used_at = Column(DateTime(timezone=True), nullable=True)
    last_used_ip = Column(String(45), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    revoked_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index('idx_api_keys_user_created', 'user_id', 'created_at'),
        Index('idx_api_keys_status', 'status'),
    )


class AuthToken(Base):
    """Single-use tokens for password reset and email verification."""
    __tablename__ = 'auth_tokens'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    purpose = Column(String(30), nullable=False)
    # sha256 hex digest; the raw token only travels by email
    token_hash = Column(String(64), nullable=False, unique=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    used_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    __table_args__ = (
        Index('idx_auth_tokens_user_purpose', 'user_id', 'purpose'),
    )
