import re
import uuid
from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from insign.utils.passwords import validate_password

_DOMAIN_RE = re.compile(r"^[a-z0-9-]+$")


def normalize_domain(value: str) -> str:
    v = (value or "").strip().lower()
    if len(v) < 3:
        raise ValueError("Domain must be at least 3 characters")
    if len(v) > 63:
        raise ValueError("Domain must be less than 63 characters")
    if not _DOMAIN_RE.match(v):
        raise ValueError("Domain can only contain lowercase letters, numbers, and hyphens")
    if v.startswith("-") or v.endswith("-"):
        raise ValueError("Domain cannot start or end with a hyphen")
    return v


class SignupRequest(BaseModel):
    organization_name: str = Field(min_length=2, max_length=100)
    organization_domain: str
    email: EmailStr
    password: str
    confirm_password: str
    first_name: str = Field(min_length=2, max_length=50)
    last_name: str = Field(min_length=2, max_length=50)
    agree_to_terms: bool

    @field_validator("organization_domain")
    @classmethod
    def _domain(cls, v: str) -> str:
        return normalize_domain(v)

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        return validate_password(v)

    @field_validator("agree_to_terms")
    @classmethod
    def _terms(cls, v: bool) -> bool:
        if not v:
            raise ValueError("You must agree to the terms and conditions")
        return v

    @model_validator(mode="after")
    def _passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords don't match")
        return self


class SignupResponse(BaseModel):
    organization_id: uuid.UUID
    user_id: uuid.UUID
    message: str


class DomainAvailability(BaseModel):
    domain: str
    available: bool


class Organization(BaseModel):
    id: uuid.UUID
    name: str
    domain: str
    logo_url: Optional[str] = None
    timezone: str
    settings: Dict[str, Any] = {}
    subscription_tier: str
    max_users: int
    max_storage_bytes: int
    status: str
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class OrganizationUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    logo_url: Optional[str] = None
    timezone: Optional[str] = Field(default=None, max_length=50)
    settings: Optional[Dict[str, Any]] = None


class StorageUsage(BaseModel):
    used_bytes: int
    total_bytes: int
    percentage: float
