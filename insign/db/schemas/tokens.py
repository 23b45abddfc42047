import uuid
from datetime import datetime
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from typing import List, Optional

from insign.utils.passwords import validate_password
from insign.utils.role_permissions import validate_api_key_scopes


class ApiKeyCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    scopes: List[str]
    expires_at: Optional[datetime] = None

    @field_validator("scopes")
    @classmethod
    def _validate_scopes(cls, v: List[str]):
        return validate_api_key_scopes(v)


class ApiKeyResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    organization_id: uuid.UUID
    name: str
    scopes: List[str]
    kind: str
    status: str
    created_at: datetime
    last_used_at: Optional[datetime] = None
    last_used_ip: Optional[str] = None
    expires_at: Optional[datetime] = None
    revoked_at: Optional[datetime] = None
    prefix: Optional[str] = None
    last_four: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ApiKeyCreateResponse(ApiKeyResponse):
    key: str  # one-time secret string


class LoginRequest(BaseModel):
    email: str
    password: str
    mfa_code: Optional[str] = None


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    user_id: uuid.UUID
    organization_id: uuid.UUID


class PasswordResetRequest(BaseModel):
    email: EmailStr


class PasswordResetConfirm(BaseModel):
    token: str = Field(min_length=1)
    password: str
    confirm_password: str

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        return validate_password(v)

    @model_validator(mode="after")
    def _passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords don't match")
        return self


class EmailVerificationConfirm(BaseModel):
    token: str = Field(min_length=1)


class MessageResponse(BaseModel):
    message: str


class MfaSetupRequest(BaseModel):
    type: str = "totp"


class MfaSetupResponse(BaseModel):
    method_id: uuid.UUID
    secret: str
    otpauth_url: str
    backup_codes: List[str]


class MfaVerifyRequest(BaseModel):
    code: str = Field(min_length=6, max_length=6)


class MfaMethod(BaseModel):
    id: uuid.UUID
    type: str
    enabled: bool
    verified_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)
