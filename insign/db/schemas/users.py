import uuid
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from insign.db.enums import UserStatus
from insign.utils.passwords import validate_password


class Permission(BaseModel):
    id: uuid.UUID
    resource: str
    action: str
    name: str
    description: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class RoleSummary(BaseModel):
    id: uuid.UUID
    name: str
    is_system: bool
    model_config = ConfigDict(from_attributes=True)


class Role(RoleSummary):
    organization_id: Optional[uuid.UUID] = None
    description: Optional[str] = None
    created_at: datetime
    permissions: List[Permission] = []


class RoleCreate(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    description: Optional[str] = None
    permission_ids: List[uuid.UUID] = []


class RoleUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    description: Optional[str] = None


class RolePermissionsUpdate(BaseModel):
    permission_ids: List[uuid.UUID]


class User(BaseModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar_url: Optional[str] = None
    role_id: Optional[uuid.UUID] = None
    role: Optional[RoleSummary] = None
    status: str
    mfa_enabled: bool
    email_verified_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class UserCreate(BaseModel):
    email: EmailStr
    password: str
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    role_id: Optional[uuid.UUID] = None

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        return validate_password(v)


class UserUpdate(BaseModel):
    email: Optional[EmailStr] = None
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    avatar_url: Optional[str] = None
    role_id: Optional[uuid.UUID] = None
    status: Optional[UserStatus] = None


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    last_name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    avatar_url: Optional[str] = None


class PasswordChange(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str
    confirm_password: str

    @field_validator("new_password")
    @classmethod
    def _password(cls, v: str) -> str:
        return validate_password(v)

    @model_validator(mode="after")
    def _check(self):
        if self.new_password != self.confirm_password:
            raise ValueError("Passwords don't match")
        if self.new_password == self.current_password:
            raise ValueError("New password must be different from current password")
        return self


class PasswordStrengthRequest(BaseModel):
    password: str


class PasswordStrength(BaseModel):
    score: int
    label: str
    suggestions: List[str]
