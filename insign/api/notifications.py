"""
In-app notifications and per-event delivery preferences for the current
user.
"""
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from insign.api.deps import get_current_user_context
from insign.db import schemas
from insign.db.database import get_db
from insign.services.notification_service import PREFERENCE_EVENTS, NotificationService

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=schemas.NotificationListResponse)
def get_notifications(
    unread_only: bool = False,
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    """
    Notifications for the current user, newest first.

    - **unread_only**: only return unread notifications
    - **limit**: maximum number of notifications to return (default 50)
    """
    user, _ctx = user_context
    service = NotificationService(db)
    notifications = service.get_user_notifications(user_id=user.id, unread_only=unread_only, limit=limit)
    return schemas.NotificationListResponse(
        notifications=notifications,
        unread_count=service.get_unread_count(user.id),
        total_count=service.count_notifications(user.id),
    )


@router.get("/unread-count", response_model=schemas.UnreadCount)
def get_unread_count(
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, _ctx = user_context
    return schemas.UnreadCount(unread_count=NotificationService(db).get_unread_count(user.id))


@router.post("/read-all", response_model=schemas.UnreadCount)
def mark_all_read(
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, _ctx = user_context
    service = NotificationService(db)
    service.mark_all_read(user.id)
    return schemas.UnreadCount(unread_count=service.get_unread_count(user.id))


@router.post("/{notification_id}/read", status_code=status.HTTP_204_NO_CONTENT)
def mark_notification_read(
    notification_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, _ctx = user_context
    if not NotificationService(db).mark_notification_read(notification_id, user.id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    return None


@router.get("/preferences", response_model=schemas.NotificationPreferencesResponse)
def get_notification_preferences(
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, _ctx = user_context
    return schemas.NotificationPreferencesResponse(preferences=NotificationService(db).get_user_preferences(user.id))


@router.put("/preferences/{event_type}", response_model=schemas.UserNotificationPreference)
def update_notification_preference(
    event_type: str,
    preference_update: schemas.UserNotificationPreferenceUpdate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, _ctx = user_context
    if event_type not in PREFERENCE_EVENTS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid event type. Must be one of: {', '.join(PREFERENCE_EVENTS)}",
        )
    return NotificationService(db).set_user_preference(
        user_id=user.id,
        event_type=event_type,
        email_enabled=preference_update.email_enabled,
        in_app_enabled=preference_update.in_app_enabled,
    )
