"""
Notifications Router - each user only ever sees their own notifications
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from sqlalchemy import desc
from typing import Optional

from ..database import get_db
from ..models import Notification
from ..schemas.common import envelope
from ..schemas.identity import Identity
from ..schemas.notification import NotificationListResponse, NotificationResponse
from ..utils.dependencies import get_current_user
from ..utils.errors import NotFound

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


@router.get("")
@router.get("/")
def get_notifications(
    is_read: Optional[bool] = Query(None, alias="isRead"),
    type: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    current_user: Identity = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    query = db.query(Notification).filter(Notification.recipient_id == current_user.id)

    if is_read is not None:
        query = query.filter(Notification.is_read == is_read)
    if type:
        query = query.filter(Notification.type == type)

    notifications = query.order_by(desc(Notification.created_at)).limit(limit).all()

    unread_count = db.query(Notification).filter(
        Notification.recipient_id == current_user.id,
        Notification.is_read == False  # noqa: E712
    ).count()

    data = NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
        unread_count=unread_count,
    ).model_dump(mode="json", by_alias=True)
    return envelope("Notifications retrieved successfully", data)


@router.post("/{notification_id}/read")
def mark_notification_read(
    notification_id: str,
    current_user: Identity = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    notification = db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.recipient_id == current_user.id
    ).first()

    if not notification:
        raise NotFound("Notification not found", ["Notification does not exist"])

    notification.mark_as_read()
    db.commit()
    db.refresh(notification)

    data = NotificationResponse.model_validate(notification).model_dump(mode="json", by_alias=True)
    return envelope("Notification marked as read", data)
