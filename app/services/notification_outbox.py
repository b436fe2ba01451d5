"""
Notification Outbox

Lifecycle side effects are recorded as NotificationOutbox rows inside the
same transaction as the task change. Delivery (creating the Notification a
user reads) happens after commit:

- inline, right after the request's commit (`deliver_now`)
- or later by OutboxProcessor, run periodically by the background worker

Delivery failures never reach the request that caused them. The row stays
RETRYING with exponential backoff until it is delivered or runs out of
attempts. A Notification records its outbox id, so re-running a delivery
never creates a second copy.
"""

from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import and_
from sqlalchemy.orm import Session

from ..config import settings
from ..models.notification import Notification, NotificationOutbox, NotificationType, OutboxStatus
from ..models.user import User, UserRole
from ..utils.db_helpers import is_postgres
from ..utils.logging_config import get_logger

logger = get_logger(__name__)


def enqueue_notification(
    db: Session,
    notification_type: NotificationType,
    recipient_id: str,
    title: str,
    message: str,
    related_task_id: Optional[str] = None,
) -> NotificationOutbox:
    """Stage a notification in the caller's transaction (no commit here)"""
    event = NotificationOutbox(
        recipient_id=recipient_id,
        notification_type=notification_type.value,
        title=title,
        message=message,
        related_task_id=related_task_id,
        status=OutboxStatus.PENDING.value,
        attempts=0,
        max_attempts=settings.outbox_max_attempts,
        next_attempt_at=datetime.utcnow(),
    )
    db.add(event)
    return event


def find_department_hod(db: Session, department: str) -> Optional[User]:
    """Active head of `department`, if there is one"""
    return db.query(User).filter(
        User.role == UserRole.HOD.value,
        User.department == department,
        User.is_active == True,  # noqa: E712
    ).first()


class OutboxProcessor:
    """
    Delivers NotificationOutbox rows.

    Used inline after a request commits and by the background worker.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_pending_events(self, limit: int = 50) -> List[NotificationOutbox]:
        """
        Events ready for delivery: PENDING or RETRYING, due, attempts left.

        Uses skip_locked on PostgreSQL so several workers never pick the same row.
        """
        now = datetime.utcnow()

        query = self.db.query(NotificationOutbox).filter(
            and_(
                NotificationOutbox.status.in_([
                    OutboxStatus.PENDING.value,
                    OutboxStatus.RETRYING.value
                ]),
                NotificationOutbox.next_attempt_at <= now,
                NotificationOutbox.attempts < NotificationOutbox.max_attempts
            )
        ).order_by(NotificationOutbox.next_attempt_at)

        if is_postgres(self.db):
            query = query.with_for_update(skip_locked=True)

        return query.limit(limit).all()

    def get_failed_events(self, limit: int = 100) -> List[NotificationOutbox]:
        return self.db.query(NotificationOutbox).filter(
            NotificationOutbox.status == OutboxStatus.FAILED.value
        ).order_by(NotificationOutbox.created_at.desc()).limit(limit).all()

    def retry_failed_event(self, event_id: str) -> bool:
        """Manually retry a failed event"""
        event = self.db.query(NotificationOutbox).filter(
            NotificationOutbox.id == event_id
        ).first()

        if not event:
            return False

        event.status = OutboxStatus.PENDING.value
        event.attempts = 0
        event.next_attempt_at = datetime.utcnow()
        event.last_error = None
        self.db.commit()
        return True

    def process_event(self, event: NotificationOutbox) -> bool:
        """
        Deliver a single outbox event.

        Returns True if delivered (or already delivered), False on failure.
        """
        if event.status == OutboxStatus.DELIVERED.value:
            return True

        event.status = OutboxStatus.PROCESSING.value
        event.attempts = (event.attempts or 0) + 1
        self.db.commit()

        try:
            existing = self.db.query(Notification).filter(
                Notification.outbox_id == event.id
            ).first()
            if not existing:
                self.db.add(Notification(
                    recipient_id=event.recipient_id,
                    type=event.notification_type,
                    title=event.title,
                    message=event.message,
                    related_task_id=event.related_task_id,
                    outbox_id=event.id,
                    is_read=False,
                ))

            event.status = OutboxStatus.DELIVERED.value
            event.delivered_at = datetime.utcnow()
            event.last_error = None
            self.db.commit()
            return True

        except Exception as e:
            self.db.rollback()
            logger.notification_failed(event.id, str(e), task_id=event.related_task_id)
            self._handle_failure(event, str(e))
            self.db.commit()
            return False

    def process_batch(self, limit: int = 50):
        """Deliver due events; returns (delivered, failed)"""
        delivered = 0
        failed = 0
        for event in self.get_pending_events(limit=limit):
            if self.process_event(event):
                delivered += 1
            else:
                failed += 1
        return delivered, failed

    def deliver_now(self, events: List[NotificationOutbox]) -> None:
        """
        Best-effort delivery right after the triggering request committed.

        Never raises: whatever is not delivered stays in the outbox for the worker.
        """
        for event in events:
            event_id, task_id = event.id, event.related_task_id
            try:
                self.process_event(event)
            except Exception as e:
                logger.notification_failed(event_id, str(e), task_id=task_id)
                try:
                    self.db.rollback()
                except Exception:
                    logger.exception("Rollback after failed notification delivery also failed")

    def _handle_failure(self, event: NotificationOutbox, error: str):
        """Exponential backoff, FAILED once attempts run out"""
        event.last_error = error[:1000]

        if event.attempts >= event.max_attempts:
            event.status = OutboxStatus.FAILED.value
            logger.error(f"Notification {event.id} permanently failed after {event.attempts} attempts")
        else:
            event.status = OutboxStatus.RETRYING.value
            # 1, 2, 4, 8... minutes
            delay_minutes = min(2 ** (event.attempts - 1), 60)
            event.next_attempt_at = datetime.utcnow() + timedelta(minutes=delay_minutes)
            logger.warning(f"Notification {event.id} will retry in {delay_minutes} minutes")
