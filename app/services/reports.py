"""
Approval queue, task statistics and summary reports.

All of these are "my work" views: an employee only sees tasks assigned to
them, never the ones they delegated.
"""
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Query, Session

from ..models.task import Task, TaskPriority, TaskStatus, TERMINAL_STATUSES
from ..models.user import User, UserRole
from ..schemas.identity import Identity
from ..schemas.task import serialize_tasks
from ..utils.errors import DependencyNotFound, ValidationFailure
from .overdue import is_overdue
from .scope import Capability, OperationKind, require_capability, scoped_tasks

# Response keys for the per-status counters
STATUS_KEYS = {
    TaskStatus.PENDING.value: "pending",
    TaskStatus.IN_PROGRESS.value: "inProgress",
    TaskStatus.COMPLETED.value: "completed",
    TaskStatus.CANCELLED.value: "cancelled",
    TaskStatus.BLOCKED.value: "blocked",
}


def list_pending_approvals(db: Session, actor: Identity, status: Optional[str] = None) -> List[Task]:
    """
    Tasks still waiting on the gate the caller cares about:
    HOD -> HOD approval, Director and Employee -> Director approval.
    """
    query = scoped_tasks(db, actor, OperationKind.APPROVALS)
    if actor.is_hod:
        query = query.filter(Task.hod_approved == False)  # noqa: E712
    else:
        query = query.filter(Task.director_approved == False)  # noqa: E712
    if status:
        query = query.filter(Task.status == status)
    return query.order_by(Task.created_at.desc()).all()


def _parse_day(value: Optional[str], label: str, errors: List[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        errors.append(f"Invalid {label} date: {value}")
        return None


def _count_by_status(query: Query) -> Dict[str, int]:
    counts = {key: 0 for key in STATUS_KEYS.values()}
    rows = query.with_entities(Task.status, func.count(Task.id)).group_by(Task.status).all()
    for status, count in rows:
        if status in STATUS_KEYS:
            counts[STATUS_KEYS[status]] = count
    return counts


def task_stats(
    db: Session,
    actor: Identity,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    employee_id: Optional[str] = None,
    hod_id: Optional[str] = None,
    department: Optional[str] = None,
) -> dict:
    """Counts per status plus overdue, within the caller's report scope"""
    errors = []
    start = _parse_day(date_from, "from", errors)
    end = _parse_day(date_to, "to", errors)
    if errors:
        raise ValidationFailure(errors)

    query = scoped_tasks(db, actor, OperationKind.REPORT)
    if start:
        query = query.filter(Task.created_at >= datetime.combine(start, datetime.min.time()))
    if end:
        query = query.filter(Task.created_at < datetime.combine(end + timedelta(days=1), datetime.min.time()))

    # Narrowing filters are a Director tool; other roles are already narrowed by scope
    if actor.is_director:
        if employee_id:
            query = query.filter(Task.assigned_to_id == employee_id)
        if hod_id:
            hod = db.query(User).filter(User.id == hod_id, User.role == UserRole.HOD.value).first()
            if not hod:
                raise DependencyNotFound("HOD not found", ["User does not exist or is not an HOD"])
            query = query.filter(Task.department == hod.department)
        if department:
            query = query.filter(Task.department == department)

    stats = {"total": query.count()}
    stats.update(_count_by_status(query))
    stats["overdue"] = query.filter(
        Task.due_date.isnot(None),
        Task.due_date < datetime.utcnow(),
        Task.status.notin_(TERMINAL_STATUSES),
    ).count()
    return stats


def department_breakdown(db: Session, actor: Identity) -> List[dict]:
    """Per-department totals by status (Director only)"""
    require_capability(actor, Capability.VIEW_DEPARTMENT_REPORT)

    rows = db.query(Task.department, Task.status, func.count(Task.id)).group_by(
        Task.department, Task.status
    ).order_by(Task.department).all()

    departments: Dict[str, dict] = {}
    for department, status, count in rows:
        entry = departments.setdefault(department, {
            "department": department,
            "total": 0,
            **{key: 0 for key in STATUS_KEYS.values()},
        })
        entry["total"] += count
        if status in STATUS_KEYS:
            entry[STATUS_KEYS[status]] += count
    return list(departments.values())


def _percentage(part: int, whole: int) -> float:
    return round(part * 100.0 / whole, 2) if whole else 0.0


def user_performance(db: Session, actor: Identity) -> List[dict]:
    """Per-assignee totals and completion rate, best performers first (HOD and Director)"""
    require_capability(actor, Capability.VIEW_USER_PERFORMANCE)

    completed = func.sum(case((Task.status == TaskStatus.COMPLETED.value, 1), else_=0))
    pending = func.sum(case((Task.status == TaskStatus.PENDING.value, 1), else_=0))
    rows = scoped_tasks(db, actor, OperationKind.REPORT).join(
        User, User.id == Task.assigned_to_id
    ).with_entities(
        User.id, User.name, User.email, func.count(Task.id), completed, pending
    ).group_by(User.id, User.name, User.email).all()

    performance = [
        {
            "userId": user_id,
            "userName": name,
            "userEmail": email,
            "totalTasks": total,
            "completedTasks": int(done or 0),
            "pendingTasks": int(waiting or 0),
            "completionRate": _percentage(int(done or 0), total),
        }
        for user_id, name, email, total, done, waiting in rows
    ]
    performance.sort(key=lambda row: (-row["completionRate"], row["userName"]))
    return performance


# HIGH first
_PRIORITY_RANK = {TaskPriority.HIGH.value: 0, TaskPriority.MEDIUM.value: 1, TaskPriority.LOW.value: 2}


def _pending_order(task: Task, now: datetime):
    """Priority, then overdue first, then earliest due date"""
    return (
        _PRIORITY_RANK.get(task.priority, len(_PRIORITY_RANK)),
        not is_overdue(task, now),
        task.due_date is None,
        task.due_date or datetime.max,
    )


def summary_report(
    db: Session,
    actor: Identity,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    top_pending_limit: int = 10,
) -> dict:
    """
    Status counts, department completion, overdue count and the most
    pressing pending tasks, all within the caller's report scope.
    """
    errors = []
    start = _parse_day(date_from, "from", errors)
    end = _parse_day(date_to, "to", errors)
    if errors:
        raise ValidationFailure(errors)

    query = scoped_tasks(db, actor, OperationKind.REPORT)
    if start:
        query = query.filter(Task.created_at >= datetime.combine(start, datetime.min.time()))
    if end:
        query = query.filter(Task.created_at < datetime.combine(end + timedelta(days=1), datetime.min.time()))

    counts = {status.value: 0 for status in TaskStatus}
    for status, count in query.with_entities(Task.status, func.count(Task.id)).group_by(Task.status).all():
        counts[status] = count
    counts["total"] = sum(counts.values())

    completed = func.sum(case((Task.status == TaskStatus.COMPLETED.value, 1), else_=0))
    department_rows = query.with_entities(
        Task.department, func.count(Task.id), completed
    ).group_by(Task.department).order_by(Task.department).all()
    department_completion = [
        {
            "department": department,
            "total": total,
            "completed": int(done or 0),
            "completionPercentage": _percentage(int(done or 0), total),
        }
        for department, total, done in department_rows
    ]

    now = datetime.utcnow()
    overdue_count = query.filter(
        Task.due_date.isnot(None),
        Task.due_date < now,
        Task.status.notin_(TERMINAL_STATUSES),
    ).count()

    # Newest first among equals; the sort below is stable
    pending = query.filter(Task.status == TaskStatus.PENDING.value).order_by(Task.created_at.desc()).all()
    pending.sort(key=lambda task: _pending_order(task, now))

    return {
        "dateRange": {
            "from": start.isoformat() if start else None,
            "to": end.isoformat() if end else None,
        },
        "overallTaskCounts": counts,
        "departmentCompletion": department_completion,
        "overdueCount": overdue_count,
        "topPendingTasks": serialize_tasks(pending[:top_pending_limit], now),
    }
