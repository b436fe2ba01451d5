"""
Overdue calculation (read side only, never persisted)
"""
import math
from datetime import datetime, timedelta
from typing import Optional

from ..models.task import TERMINAL_STATUSES

ONE_DAY = timedelta(days=1)


def is_overdue(task, now: Optional[datetime] = None) -> bool:
    if task.due_date is None or task.status in TERMINAL_STATUSES:
        return False
    now = now or datetime.utcnow()
    return now > task.due_date


def days_overdue(task, now: Optional[datetime] = None) -> int:
    """Whole days past the due date, rounded up; 0 when not overdue"""
    now = now or datetime.utcnow()
    if not is_overdue(task, now):
        return 0
    return math.ceil((now - task.due_date) / ONE_DAY)
