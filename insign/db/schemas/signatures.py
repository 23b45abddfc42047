import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, model_validator

from insign.db.enums import FieldType, ParticipantRole, SignatureType, WorkflowType


# Participants

class ParticipantCreate(BaseModel):
    email: EmailStr
    full_name: str = Field(min_length=1, max_length=255)
    role: ParticipantRole = ParticipantRole.signer
    order_index: int = Field(default=0, ge=0)


class Participant(BaseModel):
    id: uuid.UUID
    request_id: uuid.UUID
    user_id: Optional[uuid.UUID] = None
    email: str
    full_name: str
    role: str
    order_index: int
    status: str
    notified_at: Optional[datetime] = None
    viewed_at: Optional[datetime] = None
    signed_at: Optional[datetime] = None
    declined_at: Optional[datetime] = None
    decline_reason: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


# Fields

class FieldCreate(BaseModel):
    participant_id: uuid.UUID
    type: FieldType
    page_number: int = Field(ge=1)
    x: float = Field(ge=0)
    y: float = Field(ge=0)
    width: float = Field(ge=10)
    height: float = Field(ge=10)
    required: bool = True
    label: Optional[str] = Field(default=None, max_length=255)
    options: Optional[List[str]] = None

    @model_validator(mode="after")
    def _dropdown_options(self):
        if self.type == FieldType.dropdown and not self.options:
            raise ValueError("Dropdown fields require at least one option")
        return self


class FieldUpdate(BaseModel):
    page_number: Optional[int] = Field(default=None, ge=1)
    x: Optional[float] = Field(default=None, ge=0)
    y: Optional[float] = Field(default=None, ge=0)
    width: Optional[float] = Field(default=None, ge=10)
    height: Optional[float] = Field(default=None, ge=10)
    required: Optional[bool] = None
    label: Optional[str] = Field(default=None, max_length=255)
    options: Optional[List[str]] = None


class SignatureField(BaseModel):
    id: uuid.UUID
    request_id: uuid.UUID
    participant_id: uuid.UUID
    type: str
    page_number: int
    x: float
    y: float
    width: float
    height: float
    required: bool
    label: Optional[str] = None
    options: Optional[List[str]] = None
    value: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


# Requests

class SignatureRequestCreate(BaseModel):
    document_id: uuid.UUID
    title: str = Field(min_length=1, max_length=255)
    message: Optional[str] = None
    workflow_type: WorkflowType = WorkflowType.sequential
    expires_at: Optional[datetime] = None
    participants: List[ParticipantCreate] = Field(min_length=1)

    @model_validator(mode="after")
    def _unique_emails(self):
        emails = [p.email.lower() for p in self.participants]
        if len(emails) != len(set(emails)):
            raise ValueError("Participant emails must be unique")
        return self


class SignatureRequestUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    message: Optional[str] = None
    workflow_type: Optional[WorkflowType] = None
    expires_at: Optional[datetime] = None


class SignatureRequest(BaseModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    document_id: uuid.UUID
    title: str
    message: Optional[str] = None
    status: str
    workflow_type: str
    expires_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    seal_hash: Optional[str] = None
    has_certificate: bool = False
    created_by: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: datetime
    participant_count: int = 0
    signed_count: int = 0


class SignatureRequestDetail(SignatureRequest):
    document_name: Optional[str] = None
    participants: List[Participant] = []
    fields: List[SignatureField] = []


class SendResponse(BaseModel):
    request_id: uuid.UUID
    notified_participants: int


class SignatureAuditEntry(BaseModel):
    id: uuid.UUID
    request_id: uuid.UUID
    participant_id: Optional[uuid.UUID] = None
    actor_user_id: Optional[uuid.UUID] = None
    action: str
    metadata: Optional[Dict[str, Any]] = Field(default=None, validation_alias=AliasChoices("metadata_json", "metadata"))
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    timestamp: datetime
    request_title: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


# Signing sessions

class SignFieldRequest(BaseModel):
    field_id: uuid.UUID
    signature_data: str = Field(min_length=1)
    signature_type: SignatureType


class DeclineRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=2000)


class Signature(BaseModel):
    id: uuid.UUID
    participant_id: uuid.UUID
    field_id: uuid.UUID
    signature_type: str
    timestamp: datetime
    model_config = ConfigDict(from_attributes=True)


class SigningDocument(BaseModel):
    id: uuid.UUID
    name: str
    mime_type: str
    size_bytes: int


class SigningSession(BaseModel):
    participant: Participant
    request_id: uuid.UUID
    request_title: str
    request_message: Optional[str] = None
    request_status: str
    workflow_type: str
    expires_at: Optional[datetime] = None
    sender_name: Optional[str] = None
    document: SigningDocument
    fields: List[SignatureField]
    signatures: List[Signature]


class CompleteResponse(BaseModel):
    participant_status: str
    request_status: str
    request_completed: bool
    notified_participants: int = 0


class DeclineResponse(BaseModel):
    participant_status: str
    request_status: str
