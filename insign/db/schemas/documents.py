import re
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from insign.db.enums import PermissionLevel

_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")


def _validate_color(v: Optional[str]) -> Optional[str]:
    if v is not None and not _COLOR_RE.match(v):
        raise ValueError("Color must be a hex value like #1a2b3c")
    return v


# Tags

class Tag(BaseModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    name: str
    color: str
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class TagCreate(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    color: str = "#6b7280"

    @field_validator("color")
    @classmethod
    def _color(cls, v):
        return _validate_color(v)


class TagUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    color: Optional[str] = None

    @field_validator("color")
    @classmethod
    def _color(cls, v):
        return _validate_color(v)


class TagAssignment(BaseModel):
    tag_id: uuid.UUID


# Folders

class Folder(BaseModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    parent_id: Optional[uuid.UUID] = None
    name: str
    path: str
    description: Optional[str] = None
    permissions_inherited: bool
    created_by: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class FolderCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    parent_id: Optional[uuid.UUID] = None
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        v = v.strip()
        if not v or "/" in v:
            raise ValueError("Folder name cannot be empty or contain '/'")
        return v


class FolderUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v or "/" in v:
            raise ValueError("Folder name cannot be empty or contain '/'")
        return v


# Documents

class Document(BaseModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    folder_id: Optional[uuid.UUID] = None
    name: str
    mime_type: str
    size_bytes: int
    version: int
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias=AliasChoices("metadata_json", "metadata"))
    created_by: Optional[uuid.UUID] = None
    updated_by: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: datetime
    tags: List[Tag] = []
    model_config = ConfigDict(from_attributes=True)


class DocumentUpdate(BaseModel):
    """Partial update; send ``folder_id: null`` explicitly to move to the root."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    folder_id: Optional[uuid.UUID] = None
    metadata: Optional[Dict[str, Any]] = None


# Document permissions

class DocumentPermission(BaseModel):
    id: uuid.UUID
    document_id: uuid.UUID
    user_id: Optional[uuid.UUID] = None
    role_id: Optional[uuid.UUID] = None
    permission_level: str
    granted_by: Optional[uuid.UUID] = None
    created_at: datetime
    expires_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class DocumentPermissionCreate(BaseModel):
    user_id: Optional[uuid.UUID] = None
    role_id: Optional[uuid.UUID] = None
    permission_level: PermissionLevel
    expires_at: Optional[datetime] = None


class DocumentPermissionUpdate(BaseModel):
    permission_level: Optional[PermissionLevel] = None
    expires_at: Optional[datetime] = None


class PermissionCheck(BaseModel):
    has_permission: bool
    permission_level: Optional[str] = None
    message: Optional[str] = None


# Versions

class DocumentVersion(BaseModel):
    id: uuid.UUID
    document_id: uuid.UUID
    version: int
    size_bytes: int
    mime_type: str
    changes_description: Optional[str] = None
    created_by: Optional[uuid.UUID] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class VersionComparison(BaseModel):
    version1: DocumentVersion
    version2: DocumentVersion
    size_diff: int
    version_diff: int


# Shares

class Share(BaseModel):
    id: uuid.UUID
    document_id: uuid.UUID
    share_url: str
    has_password: bool
    expires_at: Optional[datetime] = None
    access_count: int
    max_access_count: Optional[int] = None
    last_accessed_at: Optional[datetime] = None
    created_by: Optional[uuid.UUID] = None
    created_at: datetime


class ShareCreate(BaseModel):
    password: Optional[str] = Field(default=None, min_length=4, max_length=128)
    expires_at: Optional[datetime] = None
    max_access_count: Optional[int] = Field(default=None, ge=1)


class ShareAccessRequest(BaseModel):
    password: Optional[str] = None


class SharedDocument(BaseModel):
    id: uuid.UUID
    name: str
    mime_type: str
    size_bytes: int
    version: int
    access_count: int
    expires_at: Optional[datetime] = None
