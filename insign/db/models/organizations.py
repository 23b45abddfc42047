import uuid
from sqlalchemy import Column, String, Text, DateTime, Integer, BigInteger, ForeignKey
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship
from .base import Base, now_utc

DEFAULT_STORAGE_BYTES = 10 * 1024 * 1024 * 1024  # 10 GiB


class Organization(Base):
    __tablename__ = 'organizations'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    domain = Column(String(63), nullable=False, unique=True, index=True)
    logo_url = Column(Text, nullable=True)
    timezone = Column(String(50), nullable=False, default='UTC')
    settings = Column(JSONB, nullable=False, default=dict)
    subscription_tier = Column(String(20), nullable=False, default='trial')
    max_users = Column(Integer, nullable=False, default=50)
    max_storage_bytes = Column(BigInteger, nullable=False, default=DEFAULT_STORAGE_BYTES)
    status = Column(String(20), nullable=False, default='active')
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)

    users = relationship("User", back_populates="organization", cascade="all, delete-orphan")
    storage_quota = relationship("StorageQuota", uselist=False, back_populates="organization", cascade="all, delete-orphan")


class StorageQuota(Base):
    __tablename__ = 'storage_quotas'
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), primary_key=True)
    total_bytes = Column(BigInteger, nullable=False, default=DEFAULT_STORAGE_BYTES)
    used_bytes = Column(BigInteger, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)

    organization = relationship("Organization", back_populates="storage_quota")
