"""
Notification Schemas
"""
from pydantic import BaseModel
from pydantic.alias_generators import to_camel
from typing import List, Optional
from datetime import datetime


class NotificationResponse(BaseModel):
    id: str
    type: str
    title: str
    message: str
    related_task_id: Optional[str] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class NotificationListResponse(BaseModel):
    notifications: List[NotificationResponse]
    unread_count: int

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class OutboxEventResponse(BaseModel):
    id: str
    recipient_id: str
    notification_type: str
    title: str
    related_task_id: Optional[str] = None
    status: str
    attempts: int
    max_attempts: int
    next_attempt_at: Optional[datetime] = None
    last_error: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True
