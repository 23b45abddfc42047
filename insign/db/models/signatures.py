import uuid
from sqlalchemy import Column, String, Text, DateTime, Integer, Float, Boolean, ForeignKey, UniqueConstraint, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship
from .base import Base, now_utc


class SignatureRequest(Base):
    __tablename__ = 'signature_requests'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    document_id = Column(UUID(as_uuid=True), ForeignKey('documents.id', ondelete='CASCADE'), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default='draft')
    workflow_type = Column(String(20), nullable=False, default='sequential')
    expires_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    certificate_path = Column(Text, nullable=True)
    # Human-readable audit id printed in the sealed PDF footer
    seal_hash = Column(String(64), nullable=True)
    sealed_sha256 = Column(String(64), nullable=True)
    created_by = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)

    document = relationship("Document")
    creator = relationship("User", foreign_keys=[created_by])
    participants = relationship("SignatureParticipant", back_populates="request", cascade="all, delete-orphan",
                                order_by="SignatureParticipant.order_index")
    fields = relationship("SignatureField", back_populates="request", cascade="all, delete-orphan",
                          order_by="SignatureField.page_number")

    __table_args__ = (
        Index('idx_signature_requests_organization_created', 'organization_id', 'created_at'),
        Index('idx_signature_requests_status', 'status'),
    )


class SignatureParticipant(Base):
    __tablename__ = 'signature_participants'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    request_id = Column(UUID(as_uuid=True), ForeignKey('signature_requests.id', ondelete='CASCADE'), nullable=False)
    user_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    email = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default='signer')
    order_index = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default='pending')
    access_token = Column(String(64), nullable=False, unique=True, index=True)
    notified_at = Column(DateTime(timezone=True), nullable=True)
    viewed_at = Column(DateTime(timezone=True), nullable=True)
    signed_at = Column(DateTime(timezone=True), nullable=True)
    declined_at = Column(DateTime(timezone=True), nullable=True)
    decline_reason = Column(Text, nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    request = relationship("SignatureRequest", back_populates="participants")
    fields = relationship("SignatureField", back_populates="participant", cascade="all, delete-orphan")
    signatures = relationship("Signature", back_populates="participant", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_signature_participants_request_order', 'request_id', 'order_index'),
    )


class SignatureField(Base):
    __tablename__ = 'signature_fields'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    request_id = Column(UUID(as_uuid=True), ForeignKey('signature_requests.id', ondelete='CASCADE'), nullable=False)
    participant_id = Column(UUID(as_uuid=True), ForeignKey('signature_participants.id', ondelete='CASCADE'), nullable=False)
    type = Column(String(20), nullable=False)
    page_number = Column(Integer, nullable=False)
    # Top-left origin, PDF points
    x = Column(Float, nullable=False)
    y = Column(Float, nullable=False)
    width = Column(Float, nullable=False)
    height = Column(Float, nullable=False)
    required = Column(Boolean, nullable=False, default=True)
    label = Column(String(255), nullable=True)
    options = Column(JSONB, nullable=True)
    value = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    request = relationship("SignatureRequest", back_populates="fields")
    participant = relationship("SignatureParticipant", back_populates="fields")


class Signature(Base):
    __tablename__ = 'signatures'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    participant_id = Column(UUID(as_uuid=True), ForeignKey('signature_participants.id', ondelete='CASCADE'), nullable=False)
    field_id = Column(UUID(as_uuid=True), ForeignKey('signature_fields.id', ondelete='CASCADE'), nullable=False)
    signature_data = Column(Text, nullable=False)
    signature_type = Column(String(20), nullable=False)
    timestamp = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)

    participant = relationship("SignatureParticipant", back_populates="signatures")
    field = relationship("SignatureField")

    __table_args__ = (
        UniqueConstraint('participant_id', 'field_id', name='uq_signatures_participant_field'),
    )


class SignatureAuditLog(Base):
    __tablename__ = 'signature_audit_logs'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    request_id = Column(UUID(as_uuid=True), ForeignKey('signature_requests.id', ondelete='CASCADE'), nullable=False)
    participant_id = Column(UUID(as_uuid=True), ForeignKey('signature_participants.id', ondelete='SET NULL'), nullable=True)
    actor_user_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    action = Column(String(50), nullable=False)
    metadata_json = Column('metadata', JSONB, nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)
    timestamp = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    request = relationship("SignatureRequest")

    __table_args__ = (
        Index('idx_signature_audit_logs_request_timestamp', 'request_id', 'timestamp'),
    )
