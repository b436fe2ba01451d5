"""
Notification Model + notification outbox
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Text, Integer, Index
from sqlalchemy.orm import relationship
import enum

from ..database import Base


class NotificationType(str, enum.Enum):
    TASK_ASSIGNED = "TASK_ASSIGNED"
    TASK_UPDATED = "TASK_UPDATED"
    TASK_COMPLETED = "TASK_COMPLETED"
    APPROVAL_REQUEST = "APPROVAL_REQUEST"
    APPROVAL_RESPONSE = "APPROVAL_RESPONSE"
    SYSTEM = "SYSTEM"
    OTHER = "OTHER"


class OutboxStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    RETRYING = "RETRYING"
    DELIVERED = "DELIVERED"
    FAILED = "FAILED"


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    recipient_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(30), nullable=False, default=NotificationType.OTHER.value, index=True)

    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)

    # Weak reference, the task may be hard-deleted later
    related_task_id = Column(String(36), nullable=True)

    # Outbox row this notification was delivered from (retries never duplicate)
    outbox_id = Column(String(36), nullable=True, unique=True)

    is_read = Column(Boolean, default=False, index=True)
    read_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    recipient = relationship("User", foreign_keys=[recipient_id])

    __table_args__ = (
        Index("ix_notifications_recipient_read_created", "recipient_id", "is_read", "created_at"),
    )

    def __repr__(self):
        return f"<Notification {self.type} - {self.title}>"

    def mark_as_read(self):
        if not self.is_read:
            self.is_read = True
            self.read_at = datetime.utcnow()


class NotificationOutbox(Base):
    """
    Outbox for notification side effects.
    Rows are written in the same transaction as the task mutation that
    caused them and delivered afterwards, inline or by the worker.
    """
    __tablename__ = "notification_outbox"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    recipient_id = Column(String(36), nullable=False)
    notification_type = Column(String(30), nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    related_task_id = Column(String(36), nullable=True)

    # Processing status
    status = Column(String(20), default=OutboxStatus.PENDING.value)
    attempts = Column(Integer, default=0)
    max_attempts = Column(Integer, default=5)
    next_attempt_at = Column(DateTime, default=datetime.utcnow)

    last_error = Column(Text, nullable=True)
    delivered_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_notification_outbox_status_next", "status", "next_attempt_at"),
    )

    def __repr__(self):
        return f"<NotificationOutbox {self.notification_type} status={self.status}>"
