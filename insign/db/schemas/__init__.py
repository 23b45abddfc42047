"""
Domain-split Pydantic schemas with a single aggregator.
"""

from .organizations import (
    SignupRequest,
    SignupResponse,
    DomainAvailability,
    Organization,
    OrganizationUpdate,
    StorageUsage,
)
from .users import (
    Permission,
    RoleSummary,
    Role,
    RoleCreate,
    RoleUpdate,
    RolePermissionsUpdate,
    User,
    UserCreate,
    UserUpdate,
    ProfileUpdate,
    PasswordChange,
    PasswordStrengthRequest,
    PasswordStrength,
)
from .tokens import (
    ApiKeyCreateRequest,
    ApiKeyResponse,
    ApiKeyCreateResponse,
    LoginRequest,
    LoginResponse,
    PasswordResetRequest,
    PasswordResetConfirm,
    EmailVerificationConfirm,
    MessageResponse,
    MfaSetupRequest,
    MfaSetupResponse,
    MfaVerifyRequest,
    MfaMethod,
)
from .documents import (
    Tag,
    TagCreate,
    TagUpdate,
    TagAssignment,
    Folder,
    FolderCreate,
    FolderUpdate,
    Document,
    DocumentUpdate,
    DocumentPermission,
    DocumentPermissionCreate,
    DocumentPermissionUpdate,
    PermissionCheck,
    DocumentVersion,
    VersionComparison,
    Share,
    ShareCreate,
    ShareAccessRequest,
    SharedDocument,
)
from .signatures import (
    ParticipantCreate,
    Participant,
    FieldCreate,
    FieldUpdate,
    SignatureField,
    SignatureRequestCreate,
    SignatureRequestUpdate,
    SignatureRequest,
    SignatureRequestDetail,
    SendResponse,
    SignatureAuditEntry,
    SignFieldRequest,
    DeclineRequest,
    Signature,
    SigningDocument,
    SigningSession,
    CompleteResponse,
    DeclineResponse,
)
from .webhooks import (
    WEBHOOK_EVENTS,
    WebhookCreate,
    WebhookUpdate,
    Webhook,
    WebhookCreateResponse,
    WebhookTestResponse,
)
from .audits import AuditLogBase, AuditLogCreate, AuditLog
from .notifications import (
    UserNotificationPreferenceUpdate,
    UserNotificationPreference,
    Notification,
    NotificationListResponse,
    NotificationPreferencesResponse,
    UnreadCount,
)
