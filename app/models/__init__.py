# Models package
from .user import User, UserRole
from .task import Task, TaskUpdate, TaskReply, TaskStatus, TaskPriority, TERMINAL_STATUSES
from .notification import Notification, NotificationOutbox, NotificationType, OutboxStatus

__all__ = [
    "User", "UserRole",
    "Task", "TaskUpdate", "TaskReply", "TaskStatus", "TaskPriority", "TERMINAL_STATUSES",
    "Notification", "NotificationOutbox", "NotificationType", "OutboxStatus",
]
