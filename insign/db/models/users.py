import uuid
from sqlalchemy import Column, String, Text, DateTime, Boolean, ForeignKey, Table, UniqueConstraint, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship
from .base import Base, now_utc


role_permissions = Table(
    'role_permissions',
    Base.metadata,
    Column('role_id', UUID(as_uuid=True), ForeignKey('roles.id', ondelete='CASCADE'), primary_key=True),
    Column('permission_id', UUID(as_uuid=True), ForeignKey('permissions.id', ondelete='CASCADE'), primary_key=True),
)


class Permission(Base):
    __tablename__ = 'permissions'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    resource = Column(String(50), nullable=False)
    action = Column(String(50), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    __table_args__ = (
        UniqueConstraint('resource', 'action', name='uq_permissions_resource_action'),
    )

    @property
    def name(self) -> str:
        return f"{self.resource}:{self.action}"


class Role(Base):
    __tablename__ = 'roles'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # NULL for global system roles
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    is_system = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)

    permissions = relationship("Permission", secondary=role_permissions, lazy="selectin", order_by="Permission.resource")

    __table_args__ = (
        UniqueConstraint('organization_id', 'name', name='uq_roles_organization_name'),
    )


class User(Base):
    __tablename__ = 'users'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    email_verified_at = Column(DateTime(timezone=True), nullable=True)
    password_hash = Column(Text, nullable=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    avatar_url = Column(Text, nullable=True)
    role_id = Column(UUID(as_uuid=True), ForeignKey('roles.id', ondelete='SET NULL'), nullable=True)
    mfa_enabled = Column(Boolean, nullable=False, default=False)
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    preferences = Column(JSONB, nullable=False, default=dict)
    status = Column(String(20), nullable=False, default='active')
    is_superadmin = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)

    organization = relationship("Organization", back_populates="users")
    role = relationship("Role", lazy="joined")
    mfa_methods = relationship("MfaMethod", back_populates="user", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint('organization_id', 'email', name='uq_users_organization_email'),
        Index('idx_users_organization_created', 'organization_id', 'created_at'),
    )

    @property
    def full_name(self) -> str:
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) if parts else self.email


class MfaMethod(Base):
    __tablename__ = 'mfa_methods'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    type = Column(String(20), nullable=False)
    secret = Column(Text, nullable=True)
    # Argon2 hashes of unused backup codes
    backup_codes = Column(JSONB, nullable=False, default=list)
    enabled = Column(Boolean, nullable=False, default=False)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    last_used_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    user = relationship("User", back_populates="mfa_methods")

    __table_args__ = (
        UniqueConstraint('user_id', 'type', name='uq_mfa_methods_user_type'),
    )
