"""
Daily plan: HIGH priority tasks pinned to a single calendar day.

Any principal may file one, for themselves or for someone in their own
department. The day view groups the plan by department and status.
"""
from collections import OrderedDict
from datetime import date, datetime
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from ..models.notification import NotificationOutbox, NotificationType
from ..models.task import Task, TaskPriority, TaskStatus
from ..schemas.identity import Identity
from ..schemas.task import DailyPlanCreate, serialize_task
from ..utils.dates import get_day_bounds_utc, get_today, to_naive_utc
from ..utils.errors import Forbidden, ValidationFailure
from ..utils.logging_config import get_logger
from .assignment import load_active_assignee
from .notification_outbox import enqueue_notification
from .scope import Capability, OperationKind, require_capability, scoped_tasks

logger = get_logger(__name__)


def create_daily_plan(
    db: Session,
    actor: Identity,
    data: DailyPlanCreate,
) -> Tuple[Task, List[NotificationOutbox]]:
    require_capability(actor, Capability.CREATE_DAILY_PLAN)

    errors = []
    if data.title is None or not data.title.strip():
        errors.append("Title is required")
    if data.start_date is None:
        errors.append("Start date is required")
    if errors:
        raise ValidationFailure(errors)

    if data.assigned_to and data.assigned_to != actor.id:
        assignee = load_active_assignee(db, data.assigned_to)
        if not actor.is_director and assignee.department != actor.department:
            raise Forbidden(
                "You can only assign daily plan tasks within your department",
                ["Department scope violation"],
            )
        assignee_id = assignee.id
        department = assignee.department
    else:
        assignee_id = actor.id
        department = data.department or actor.department
        if not actor.is_director and department != actor.department:
            raise Forbidden(
                "You can only create daily plan tasks for your own department",
                ["Department scope violation"],
            )

    if not department:
        raise ValidationFailure(["Department is required"])

    task = Task(
        title=data.title.strip(),
        description=data.description,
        assigned_to_id=assignee_id,
        assigned_by_id=actor.id,
        department=department,
        status=TaskStatus.PENDING.value,
        priority=TaskPriority.HIGH.value,
        start_date=to_naive_utc(data.start_date),
        due_date=None,
        is_daily_plan=True,
    )
    db.add(task)
    db.flush()

    events = []
    if assignee_id != actor.id:
        events.append(enqueue_notification(
            db,
            NotificationType.TASK_ASSIGNED,
            assignee_id,
            "Daily plan task assigned",
            f"A daily plan task was added for you: {task.title}",
            related_task_id=task.id,
        ))

    db.commit()
    db.refresh(task)

    logger.task_created(task.id, task.title, task.assigned_to_id, task.department)
    return task, events


def get_daily_plan(db: Session, actor: Identity, day: Optional[date] = None) -> dict:
    """
    Daily plan for `day` (today in the organisation timezone by default),
    grouped as {department: {status: [task, ...]}} with per-status totals.
    """
    day = day or get_today()
    start, end = get_day_bounds_utc(day)

    tasks = scoped_tasks(db, actor, OperationKind.LIST).filter(
        Task.is_daily_plan == True,  # noqa: E712
        Task.priority == TaskPriority.HIGH.value,
        Task.start_date >= start,
        Task.start_date <= end,
    ).order_by(Task.department, Task.created_at.desc()).all()

    now = datetime.utcnow()
    departments = OrderedDict()
    summary = {"total": len(tasks)}
    summary.update({status.value: 0 for status in TaskStatus})

    for task in tasks:
        by_status = departments.setdefault(task.department, OrderedDict())
        by_status.setdefault(task.status, []).append(serialize_task(task, now))
        summary[task.status] = summary.get(task.status, 0) + 1

    return {
        "date": day.isoformat(),
        "departments": departments,
        "summary": summary,
    }
