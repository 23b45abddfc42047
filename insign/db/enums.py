"""
String enums for persisted status and type columns.

Values are stored as plain strings; the enums give routers and schemas one
vocabulary.
"""
from enum import Enum


class OrganizationStatus(str, Enum):
    active = "active"
    suspended = "suspended"
    trial = "trial"
    cancelled = "cancelled"


class SubscriptionTier(str, Enum):
    trial = "trial"
    starter = "starter"
    business = "business"
    enterprise = "enterprise"


class UserStatus(str, Enum):
    active = "active"
    inactive = "inactive"
    suspended = "suspended"


class PermissionLevel(str, Enum):
    read = "read"
    write = "write"
    delete = "delete"
    admin = "admin"


class RequestStatus(str, Enum):
    draft = "draft"
    sent = "sent"
    in_progress = "in_progress"
    completed = "completed"
    declined = "declined"
    expired = "expired"
    cancelled = "cancelled"


class WorkflowType(str, Enum):
    sequential = "sequential"
    parallel = "parallel"


class ParticipantRole(str, Enum):
    signer = "signer"
    approver = "approver"
    cc = "cc"


class ParticipantStatus(str, Enum):
    pending = "pending"
    notified = "notified"
    viewed = "viewed"
    signed = "signed"
    declined = "declined"
    expired = "expired"


class FieldType(str, Enum):
    signature = "signature"
    initials = "initials"
    date = "date"
    text = "text"
    checkbox = "checkbox"
    dropdown = "dropdown"


class SignatureType(str, Enum):
    drawn = "drawn"
    typed = "typed"
    uploaded = "uploaded"
    certificate = "certificate"


class MfaType(str, Enum):
    totp = "totp"


class ApiKeyKind(str, Enum):
    api_key = "api_key"
    session = "session"


class AuthTokenPurpose(str, Enum):
    password_reset = "password_reset"
    email_verification = "email_verification"


# Request states a participant may still act on.
ACTIVE_REQUEST_STATUSES = frozenset({RequestStatus.sent.value, RequestStatus.in_progress.value})

REQUEST_TRANSITIONS = {
    RequestStatus.draft.value: frozenset({RequestStatus.sent.value, RequestStatus.cancelled.value}),
    RequestStatus.sent.value: frozenset({
        RequestStatus.in_progress.value,
        RequestStatus.completed.value,
        RequestStatus.declined.value,
        RequestStatus.expired.value,
        RequestStatus.cancelled.value,
    }),
    RequestStatus.in_progress.value: frozenset({
        RequestStatus.completed.value,
        RequestStatus.declined.value,
        RequestStatus.expired.value,
        RequestStatus.cancelled.value,
    }),
}

# Participants whose signature gates completion; cc recipients only observe.
SIGNING_ROLES = frozenset({ParticipantRole.signer.value, ParticipantRole.approver.value})

PERMISSION_LEVEL_RANK = {
    PermissionLevel.read.value: 1,
    PermissionLevel.write.value: 2,
    PermissionLevel.delete.value: 3,
    PermissionLevel.admin.value: 4,
}


def can_transition(current: str, target: str) -> bool:
    return target in REQUEST_TRANSITIONS.get(current, frozenset())
