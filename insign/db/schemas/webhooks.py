import uuid
from datetime import datetime
from typing import List, Optional
from urllib.parse import urlparse
from pydantic import BaseModel, ConfigDict, Field, field_validator

# Events an organization can subscribe to; "*" matches everything.
WEBHOOK_EVENTS = (
    "signature_request.sent",
    "signature_request.completed",
    "signature_request.declined",
    "signature_request.cancelled",
    "participant.signed",
    "document.uploaded",
    "document.deleted",
)


def _validate_url(v: str) -> str:
    parsed = urlparse((v or "").strip())
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError("Invalid URL")
    return v.strip()


def _validate_events(v: List[str]) -> List[str]:
    cleaned = [e.strip() for e in (v or []) if e and e.strip()]
    if not cleaned:
        raise ValueError("Select at least one event")
    for e in cleaned:
        if e != "*" and e not in WEBHOOK_EVENTS:
            raise ValueError(f"Unknown event: {e}")
    return list(dict.fromkeys(cleaned))


class WebhookCreate(BaseModel):
    url: str
    events: List[str]
    description: Optional[str] = Field(default=None, max_length=500)
    is_active: bool = True

    @field_validator("url")
    @classmethod
    def _url(cls, v: str) -> str:
        return _validate_url(v)

    @field_validator("events")
    @classmethod
    def _events(cls, v: List[str]) -> List[str]:
        return _validate_events(v)


class WebhookUpdate(BaseModel):
    url: Optional[str] = None
    events: Optional[List[str]] = None
    description: Optional[str] = Field(default=None, max_length=500)
    is_active: Optional[bool] = None

    @field_validator("url")
    @classmethod
    def _url(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _validate_url(v)

    @field_validator("events")
    @classmethod
    def _events(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return None if v is None else _validate_events(v)


class Webhook(BaseModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    url: str
    events: List[str]
    description: Optional[str] = None
    is_active: bool
    last_triggered_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class WebhookCreateResponse(Webhook):
    secret: str


class WebhookTestResponse(BaseModel):
    success: bool
    status_code: Optional[int] = None
    error: Optional[str] = None
