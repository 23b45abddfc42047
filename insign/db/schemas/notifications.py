import uuid
from datetime import datetime
from typing import Optional, Dict, Any, List
from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class UserNotificationPreferenceUpdate(BaseModel):
    email_enabled: Optional[bool] = None
    in_app_enabled: Optional[bool] = None


class UserNotificationPreference(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    event_type: str
    email_enabled: bool
    in_app_enabled: bool
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class Notification(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    event_type: str
    title: str
    message: str
    action_url: Optional[str] = None
    action_text: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(default=None, validation_alias=AliasChoices("metadata_json", "metadata"))
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime
    expires_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class NotificationListResponse(BaseModel):
    notifications: List[Notification]
    unread_count: int
    total_count: int


class NotificationPreferencesResponse(BaseModel):
    preferences: Dict[str, Dict[str, bool]]


class UnreadCount(BaseModel):
    unread_count: int
