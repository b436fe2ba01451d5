# Services package
from .scope import Capability, OperationKind, scoped_tasks, require_capability
from .overdue import is_overdue, days_overdue
from .notification_outbox import OutboxProcessor, enqueue_notification, find_department_hod

__all__ = [
    "Capability", "OperationKind", "scoped_tasks", "require_capability",
    "is_overdue", "days_overdue",
    "OutboxProcessor", "enqueue_notification", "find_department_hod",
]
