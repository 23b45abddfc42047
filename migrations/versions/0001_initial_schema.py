"""initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2025-10-01 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid(name, *args, **kwargs):
    return sa.Column(name, postgresql.UUID(as_uuid=True), *args, **kwargs)


def _pk():
    return _uuid('id', primary_key=True, server_default=sa.text('gen_random_uuid()'))


def _ts(name, nullable=True, default_now=False):
    kwargs = {'nullable': nullable}
    if default_now:
        kwargs['server_default'] = sa.text('now()')
    return sa.Column(name, sa.TIMESTAMP(timezone=True), **kwargs)


def _jsonb(name, nullable=True, default=None):
    kwargs = {'nullable': nullable}
    if default is not None:
        kwargs['server_default'] = sa.text(default)
    return sa.Column(name, postgresql.JSONB(astext_type=sa.Text()), **kwargs)


def upgrade() -> None:
    """Upgrade schema."""
    op.execute('CREATE EXTENSION IF NOT EXISTS pgcrypto')

    # Tenancy
    op.create_table(
        'organizations',
        _pk(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('domain', sa.String(63), nullable=False),
        sa.Column('logo_url', sa.Text(), nullable=True),
        sa.Column('timezone', sa.String(50), nullable=False, server_default='UTC'),
        _jsonb('settings', nullable=False, default="'{}'::jsonb"),
        sa.Column('subscription_tier', sa.String(20), nullable=False, server_default='trial'),
        sa.Column('max_users', sa.Integer(), nullable=False, server_default='50'),
        sa.Column('max_storage_bytes', sa.BigInteger(), nullable=False, server_default=str(10 * 1024 ** 3)),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        _ts('created_at', nullable=False, default_now=True),
        _ts('updated_at', nullable=False, default_now=True),
    )
    op.create_index('ix_organizations_domain', 'organizations', ['domain'], unique=True)

    op.create_table(
        'storage_quotas',
        _uuid('organization_id', sa.ForeignKey('organizations.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('total_bytes', sa.BigInteger(), nullable=False, server_default=str(10 * 1024 ** 3)),
        sa.Column('used_bytes', sa.BigInteger(), nullable=False, server_default='0'),
        _ts('updated_at', nullable=False, default_now=True),
    )

    # Identity and RBAC
    op.create_table(
        'permissions',
        _pk(),
        sa.Column('resource', sa.String(50), nullable=False),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        _ts('created_at', nullable=False, default_now=True),
        sa.UniqueConstraint('resource', 'action', name='uq_permissions_resource_action'),
    )
    op.create_table(
        'roles',
        _pk(),
        _uuid('organization_id', sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_system', sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts('created_at', nullable=False, default_now=True),
        _ts('updated_at', nullable=False, default_now=True),
        sa.UniqueConstraint('organization_id', 'name', name='uq_roles_organization_name'),
    )
    op.create_table(
        'role_permissions',
        _uuid('role_id', sa.ForeignKey('roles.id', ondelete='CASCADE'), primary_key=True),
        _uuid('permission_id', sa.ForeignKey('permissions.id', ondelete='CASCADE'), primary_key=True),
    )
    op.create_table(
        'users',
        _pk(),
        _uuid('organization_id', sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        _ts('email_verified_at'),
        sa.Column('password_hash', sa.Text(), nullable=True),
        sa.Column('first_name', sa.String(100), nullable=True),
        sa.Column('last_name', sa.String(100), nullable=True),
        sa.Column('avatar_url', sa.Text(), nullable=True),
        _uuid('role_id', sa.ForeignKey('roles.id', ondelete='SET NULL'), nullable=True),
        sa.Column('mfa_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts('last_login_at'),
        _jsonb('preferences', nullable=False, default="'{}'::jsonb"),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('is_superadmin', sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts('created_at', nullable=False, default_now=True),
        _ts('updated_at', nullable=False, default_now=True),
        sa.UniqueConstraint('organization_id', 'email', name='uq_users_organization_email'),
    )
    op.create_index('ix_users_email', 'users', ['email'])
    op.create_index('idx_users_organization_created', 'users', ['organization_id', 'created_at'])

    op.create_table(
        'mfa_methods',
        _pk(),
        _uuid('user_id', sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('secret', sa.Text(), nullable=True),
        _jsonb('backup_codes', nullable=False, default="'[]'::jsonb"),
        sa.Column('enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts('verified_at'),
        _ts('last_used_at'),
        _ts('created_at', nullable=False, default_now=True),
        sa.UniqueConstraint('user_id', 'type', name='uq_mfa_methods_user_type'),
    )

    op.create_table(
        'api_keys',
        _pk(),
        _uuid('user_id', sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        _uuid('organization_id', sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('token_id', sa.String(64), nullable=False, unique=True),
        sa.Column('token_hash', sa.Text(), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('prefix', sa.String(12), nullable=True),
        sa.Column('last_four', sa.String(4), nullable=True),
        _jsonb('scopes', nullable=False),
        sa.Column('kind', sa.String(20), nullable=False, server_default='api_key'),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        _ts('created_at', nullable=False, default_now=True),
        _ts('last_used_at'),
        sa.Column('last_used_ip', sa.String(45), nullable=True),
        _ts('expires_at'),
        _ts('revoked_at'),
    )
    op.create_index('idx_api_keys_user_created', 'api_keys', ['user_id', 'created_at'])
    op.create_index('idx_api_keys_status', 'api_keys', ['status'])

    op.create_table(
        'auth_tokens',
        _pk(),
        _uuid('user_id', sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('purpose', sa.String(30), nullable=False),
        sa.Column('token_hash', sa.String(64), nullable=False, unique=True),
        _ts('expires_at', nullable=False),
        _ts('used_at'),
        _ts('created_at', nullable=False, default_now=True),
    )
    op.create_index('idx_auth_tokens_user_purpose', 'auth_tokens', ['user_id', 'purpose'])

    # Documents
    op.create_table(
        'folders',
        _pk(),
        _uuid('organization_id', sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        _uuid('parent_id', sa.ForeignKey('folders.id', ondelete='CASCADE'), nullable=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('path', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('permissions_inherited', sa.Boolean(), nullable=False, server_default=sa.true()),
        _uuid('created_by', sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        _ts('created_at', nullable=False, default_now=True),
        _ts('updated_at', nullable=False, default_now=True),
        _ts('deleted_at'),
    )
    op.create_index('idx_folders_organization_parent', 'folders', ['organization_id', 'parent_id'])

    op.create_table(
        'documents',
        _pk(),
        _uuid('organization_id', sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        _uuid('folder_id', sa.ForeignKey('folders.id', ondelete='SET NULL'), nullable=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('file_path', sa.Text(), nullable=False),
        sa.Column('mime_type', sa.String(100), nullable=False),
        sa.Column('size_bytes', sa.BigInteger(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        _jsonb('metadata', nullable=False, default="'{}'::jsonb"),
        sa.Column('content_text', sa.Text(), nullable=True),
        _uuid('created_by', sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        _uuid('updated_by', sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        _ts('created_at', nullable=False, default_now=True),
        _ts('updated_at', nullable=False, default_now=True),
        _ts('deleted_at'),
    )
    op.create_index('idx_documents_organization_folder', 'documents', ['organization_id', 'folder_id'])
    op.create_index('idx_documents_organization_created', 'documents', ['organization_id', 'created_at'])

    op.create_table(
        'document_versions',
        _pk(),
        _uuid('document_id', sa.ForeignKey('documents.id', ondelete='CASCADE'), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('file_path', sa.Text(), nullable=False),
        sa.Column('size_bytes', sa.BigInteger(), nullable=False),
        sa.Column('mime_type', sa.String(100), nullable=False),
        sa.Column('changes_description', sa.Text(), nullable=True),
        _uuid('created_by', sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        _ts('created_at', nullable=False, default_now=True),
        sa.UniqueConstraint('document_id', 'version', name='uq_document_versions_document_version'),
    )

    op.create_table(
        'document_permissions',
        _pk(),
        _uuid('document_id', sa.ForeignKey('documents.id', ondelete='CASCADE'), nullable=False),
        _uuid('user_id', sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=True),
        _uuid('role_id', sa.ForeignKey('roles.id', ondelete='CASCADE'), nullable=True),
        sa.Column('permission_level', sa.String(20), nullable=False),
        _uuid('granted_by', sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        _ts('created_at', nullable=False, default_now=True),
        _ts('expires_at'),
        sa.CheckConstraint(
            "permission_level IN ('read', 'write', 'delete', 'admin')",
            name='ck_document_permissions_level',
        ),
        sa.CheckConstraint(
            '(user_id IS NOT NULL) <> (role_id IS NOT NULL)',
            name='ck_document_permissions_single_target',
        ),
    )
    op.create_index('idx_document_permissions_document', 'document_permissions', ['document_id'])

    op.create_table(
        'document_shares',
        _pk(),
        _uuid('document_id', sa.ForeignKey('documents.id', ondelete='CASCADE'), nullable=False),
        sa.Column('share_token', sa.String(64), nullable=False),
        sa.Column('password_hash', sa.Text(), nullable=True),
        _ts('expires_at'),
        sa.Column('access_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('max_access_count', sa.Integer(), nullable=True),
        _ts('last_accessed_at'),
        _uuid('created_by', sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        _ts('created_at', nullable=False, default_now=True),
        _ts('revoked_at'),
    )
    op.create_index('ix_document_shares_share_token', 'document_shares', ['share_token'], unique=True)

    op.create_table(
        'document_tags',
        _pk(),
        _uuid('organization_id', sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(50), nullable=False),
        sa.Column('color', sa.String(7), nullable=False, server_default='#6b7280'),
        _uuid('created_by', sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        _ts('created_at', nullable=False, default_now=True),
        sa.UniqueConstraint('organization_id', 'name', name='uq_document_tags_organization_name'),
    )
    op.create_table(
        'document_tag_assignments',
        _uuid('document_id', sa.ForeignKey('documents.id', ondelete='CASCADE'), primary_key=True),
        _uuid('tag_id', sa.ForeignKey('document_tags.id', ondelete='CASCADE'), primary_key=True),
        _uuid('assigned_by', sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        _ts('assigned_at', nullable=False, default_now=True),
    )

    # Signatures
    op.create_table(
        'signature_requests',
        _pk(),
        _uuid('organization_id', sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        _uuid('document_id', sa.ForeignKey('documents.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='draft'),
        sa.Column('workflow_type', sa.String(20), nullable=False, server_default='sequential'),
        _ts('expires_at'),
        _ts('completed_at'),
        sa.Column('certificate_path', sa.Text(), nullable=True),
        sa.Column('seal_hash', sa.String(64), nullable=True),
        sa.Column('sealed_sha256', sa.String(64), nullable=True),
        _uuid('created_by', sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        _ts('created_at', nullable=False, default_now=True),
        _ts('updated_at', nullable=False, default_now=True),
        sa.CheckConstraint(
            "status IN ('draft', 'sent', 'in_progress', 'completed', 'declined', 'expired', 'cancelled')",
            name='ck_signature_requests_status',
        ),
        sa.CheckConstraint(
            "workflow_type IN ('sequential', 'parallel')",
            name='ck_signature_requests_workflow_type',
        ),
    )
    op.create_index('idx_signature_requests_organization_created', 'signature_requests', ['organization_id', 'created_at'])
    op.create_index('idx_signature_requests_status', 'signature_requests', ['status'])

    op.create_table(
        'signature_participants',
        _pk(),
        _uuid('request_id', sa.ForeignKey('signature_requests.id', ondelete='CASCADE'), nullable=False),
        _uuid('user_id', sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('role', sa.String(20), nullable=False, server_default='signer'),
        sa.Column('order_index', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('access_token', sa.String(64), nullable=False),
        _ts('notified_at'),
        _ts('viewed_at'),
        _ts('signed_at'),
        _ts('declined_at'),
        sa.Column('decline_reason', sa.Text(), nullable=True),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        _ts('created_at', nullable=False, default_now=True),
        sa.CheckConstraint('order_index >= 0', name='ck_signature_participants_order_index'),
    )
    op.create_index('ix_signature_participants_access_token', 'signature_participants', ['access_token'], unique=True)
    op.create_index('idx_signature_participants_request_order', 'signature_participants', ['request_id', 'order_index'])

    op.create_table(
        'signature_fields',
        _pk(),
        _uuid('request_id', sa.ForeignKey('signature_requests.id', ondelete='CASCADE'), nullable=False),
        _uuid('participant_id', sa.ForeignKey('signature_participants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('page_number', sa.Integer(), nullable=False),
        sa.Column('x', sa.Float(), nullable=False),
        sa.Column('y', sa.Float(), nullable=False),
        sa.Column('width', sa.Float(), nullable=False),
        sa.Column('height', sa.Float(), nullable=False),
        sa.Column('required', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('label', sa.String(255), nullable=True),
        _jsonb('options'),
        sa.Column('value', sa.Text(), nullable=True),
        _ts('created_at', nullable=False, default_now=True),
        sa.CheckConstraint('page_number >= 1', name='ck_signature_fields_page_number'),
    )

    op.create_table(
        'signatures',
        _pk(),
        _uuid('participant_id', sa.ForeignKey('signature_participants.id', ondelete='CASCADE'), nullable=False),
        _uuid('field_id', sa.ForeignKey('signature_fields.id', ondelete='CASCADE'), nullable=False),
        sa.Column('signature_data', sa.Text(), nullable=False),
        sa.Column('signature_type', sa.String(20), nullable=False),
        _ts('timestamp', nullable=False, default_now=True),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.UniqueConstraint('participant_id', 'field_id', name='uq_signatures_participant_field'),
    )

    op.create_table(
        'signature_audit_logs',
        _pk(),
        _uuid('request_id', sa.ForeignKey('signature_requests.id', ondelete='CASCADE'), nullable=False),
        _uuid('participant_id', sa.ForeignKey('signature_participants.id', ondelete='SET NULL'), nullable=True),
        _uuid('actor_user_id', sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('action', sa.String(50), nullable=False),
        _jsonb('metadata'),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        _ts('timestamp', nullable=False, default_now=True),
    )
    op.create_index('idx_signature_audit_logs_request_timestamp', 'signature_audit_logs', ['request_id', 'timestamp'])

    # Organization-level
    op.create_table(
        'webhooks',
        _pk(),
        _uuid('organization_id', sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('url', sa.Text(), nullable=False),
        _jsonb('events', nullable=False, default="'[]'::jsonb"),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('secret', sa.String(64), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _ts('last_triggered_at'),
        _uuid('created_by', sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        _ts('created_at', nullable=False, default_now=True),
        _ts('updated_at', nullable=False, default_now=True),
    )
    op.create_index('idx_webhooks_organization', 'webhooks', ['organization_id'])

    op.create_table(
        'audit_logs',
        _pk(),
        _uuid('organization_id', sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=True),
        _uuid('actor_user_id', sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('action_type', sa.String(64), nullable=False),
        sa.Column('target_type', sa.String(50), nullable=True),
        _uuid('target_id', nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='success'),
        sa.Column('reason', sa.Text(), nullable=True),
        _jsonb('metadata'),
        _ts('created_at', nullable=False, default_now=True),
    )
    op.create_index('idx_audit_logs_org_created', 'audit_logs', ['organization_id', 'created_at'])
    op.create_index('idx_audit_logs_actor_created', 'audit_logs', ['actor_user_id', 'created_at'])
    op.create_index('idx_audit_logs_target', 'audit_logs', ['target_type', 'target_id'])

    # Notifications
    op.create_table(
        'user_notification_preferences',
        _pk(),
        _uuid('user_id', sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('event_type', sa.String(50), nullable=False),
        sa.Column('email_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('in_app_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        _ts('created_at', nullable=False, default_now=True),
        _ts('updated_at', nullable=False, default_now=True),
    )
    op.create_index('uq_notification_pref_user_event', 'user_notification_preferences',
                    ['user_id', 'event_type'], unique=True)

    op.create_table(
        'notifications',
        _pk(),
        _uuid('user_id', sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('event_type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('action_url', sa.String(500), nullable=True),
        sa.Column('action_text', sa.String(100), nullable=True),
        _jsonb('metadata'),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts('read_at'),
        _ts('created_at', nullable=False, default_now=True),
        _ts('expires_at'),
    )
    op.create_index('idx_notifications_user_created', 'notifications', ['user_id', 'created_at'])
    op.create_index('idx_notifications_user_unread', 'notifications', ['user_id', 'is_read'])

    op.create_table(
        'email_notification_logs',
        _pk(),
        _uuid('user_id', sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('recipient_email', sa.String(320), nullable=False),
        sa.Column('event_type', sa.String(50), nullable=False),
        sa.Column('template_name', sa.String(100), nullable=True),
        sa.Column('subject', sa.String(255), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('provider_message_id', sa.String(255), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        _ts('sent_at'),
        _ts('created_at', nullable=False, default_now=True),
    )
    op.create_index('idx_email_logs_status_created', 'email_notification_logs', ['status', 'created_at'])
    op.create_index('idx_email_logs_recipient', 'email_notification_logs', ['recipient_email'])


def downgrade() -> None:
    """Downgrade schema."""
    for table in (
        'email_notification_logs',
        'notifications',
        'user_notification_preferences',
        'audit_logs',
        'webhooks',
        'signature_audit_logs',
        'signatures',
        'signature_fields',
        'signature_participants',
        'signature_requests',
        'document_tag_assignments',
        'document_tags',
        'document_shares',
        'document_permissions',
        'document_versions',
        'documents',
        'folders',
        'auth_tokens',
        'api_keys',
        'mfa_methods',
        'users',
        'role_permissions',
        'roles',
        'permissions',
        'storage_quotas',
        'organizations',
    ):
        op.drop_table(table)
