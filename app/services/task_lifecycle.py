"""
Task Lifecycle

Status transitions, approval gates and the update log. Every operation
follows the same order: resolve the task through the caller's scope, check
authority, validate, mutate, stage notifications in the outbox, commit.

Functions that emit notifications return `(task, events)`; the caller
serializes the task first and then hands the events to
`dispatch_notifications`, so a delivery problem can never change the
response.
"""
import logging
from datetime import date, datetime, timedelta
from typing import Dict, FrozenSet, List, Optional, Tuple

from sqlalchemy import and_
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..models.notification import NotificationOutbox, NotificationType
from ..models.task import Task, TaskPriority, TaskReply, TaskStatus, TaskUpdate, TERMINAL_STATUSES
from ..schemas.identity import Identity
from ..schemas.task import ProgressUpdateCreate, ReplyCreate, TaskAdminUpdate, TaskCreate
from ..utils.dates import to_naive_utc
from ..utils.errors import (
    Conflict,
    DependencyNotFound,
    Forbidden,
    InvalidTransition,
    NotFound,
    ValidationFailure,
)
from ..utils.logging_config import get_logger
from .assignment import (
    load_active_assignee,
    validate_assignment,
    validate_parent_link,
    validate_reassignment,
)
from .notification_outbox import OutboxProcessor, enqueue_notification, find_department_hod
from .scope import (
    Capability,
    OperationKind,
    can_delete_task,
    can_edit_task,
    can_reassign_task,
    can_reply_to_task,
    require_capability,
    scoped_tasks,
)

logger = get_logger(__name__)

Events = List[NotificationOutbox]


# Employee progress surface. Administrative edits ignore this graph.
PROGRESS_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    TaskStatus.PENDING.value: frozenset({TaskStatus.IN_PROGRESS.value, TaskStatus.BLOCKED.value}),
    TaskStatus.IN_PROGRESS.value: frozenset({
        TaskStatus.COMPLETED.value, TaskStatus.BLOCKED.value, TaskStatus.PENDING.value,
    }),
    TaskStatus.BLOCKED.value: frozenset({TaskStatus.PENDING.value, TaskStatus.IN_PROGRESS.value}),
    TaskStatus.COMPLETED.value: frozenset(),
    TaskStatus.CANCELLED.value: frozenset(),
}

# Statuses an employee may request
PROGRESS_STATUSES = (
    TaskStatus.PENDING.value,
    TaskStatus.IN_PROGRESS.value,
    TaskStatus.COMPLETED.value,
    TaskStatus.BLOCKED.value,
)

ALL_STATUSES = tuple(s.value for s in TaskStatus)
ALL_PRIORITIES = tuple(p.value for p in TaskPriority)

# Wire names of fields a progress update may not carry
_RESTRICTED_FIELD_NAMES = {
    "title": "title",
    "description": "description",
    "priority": "priority",
    "due_date": "dueDate",
    "assigned_to": "assignedTo",
    "department_id": "departmentId",
    "department": "department",
    "approvals": "approvals",
    "hod_approved": "hodApproved",
    "hod_approved_at": "hodApprovedAt",
    "hod_approved_by": "hodApprovedBy",
    "director_approved": "directorApproved",
    "director_approved_at": "directorApprovedAt",
    "director_approved_by": "directorApprovedBy",
}


def can_progress(from_status: str, to_status: str) -> bool:
    """Whether the employee surface allows `from_status` -> `to_status`"""
    if from_status in TERMINAL_STATUSES:
        return False
    if from_status == to_status:
        return True
    return to_status in PROGRESS_TRANSITIONS.get(from_status, frozenset())


# ======== Helpers ========

def _is_blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def _load_task(db: Session, actor: Identity, task_id: str, kind: OperationKind) -> Task:
    task = scoped_tasks(db, actor, kind).filter(Task.id == task_id).first()
    if not task:
        raise NotFound("Task not found", ["Task does not exist or you do not have access"])
    return task


def _apply_status(task: Task, new_status: str, now: datetime) -> None:
    """Set status and keep completed_at in step with it"""
    if new_status == TaskStatus.COMPLETED.value:
        if task.status != TaskStatus.COMPLETED.value or task.completed_at is None:
            task.completed_at = now
    else:
        task.completed_at = None
    task.status = new_status


def _append_update(
    task: Task,
    actor: Identity,
    comment: str,
    status: str,
    previous_status: str,
    remarks: Optional[str] = None,
) -> TaskUpdate:
    update = TaskUpdate(
        sequence=len(task.updates),
        comment=comment,
        remarks=remarks,
        updated_by_id=actor.id,
        status=status,
        previous_status=previous_status,
    )
    task.updates.append(update)
    return update


def _commit(db: Session) -> None:
    """Commit, turning a lost optimistic-concurrency race into Conflict"""
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        raise Conflict(
            "Task was modified by another request",
            ["Task version has changed; reload the task and try again"],
        )


def dispatch_notifications(db: Session, events: Events) -> None:
    """Deliver staged notifications now; leftovers stay queued for the worker"""
    if events:
        OutboxProcessor(db).deliver_now(events)


# ======== Create / read ========

def create_task(db: Session, actor: Identity, data: TaskCreate) -> Tuple[Task, Events]:
    require_capability(actor, Capability.CREATE_TASK)

    errors = []
    if _is_blank(data.title):
        errors.append("Title is required")
    if _is_blank(data.assigned_to):
        errors.append("Assigned user is required")
    if data.due_date is None:
        errors.append("Due date is required")
    if data.priority is not None and data.priority not in ALL_PRIORITIES:
        errors.append(f"Priority must be one of {', '.join(ALL_PRIORITIES)}")

    if errors:
        raise ValidationFailure(errors)

    assignee = load_active_assignee(db, data.assigned_to)
    department = validate_assignment(actor, assignee, data.department_id)

    # Date ordering only after assignee and department are settled
    start_date = to_naive_utc(data.start_date) or datetime.utcnow()
    due_date = to_naive_utc(data.due_date)
    if due_date < start_date:
        raise ValidationFailure(["Due date must be on or after the start date"])

    if data.parent_task_id:
        validate_parent_link(db, actor, data.parent_task_id)

    task = Task(
        title=data.title.strip(),
        description=data.description,
        assigned_to_id=assignee.id,
        assigned_by_id=actor.id,
        department=department,
        parent_task_id=data.parent_task_id or None,
        status=TaskStatus.PENDING.value,
        priority=data.priority or TaskPriority.MEDIUM.value,
        start_date=start_date,
        due_date=due_date,
        is_daily_plan=False,
    )
    db.add(task)
    db.flush()

    event = enqueue_notification(
        db,
        NotificationType.TASK_ASSIGNED,
        assignee.id,
        "New task assigned",
        f"You have been assigned a new task: {task.title}",
        related_task_id=task.id,
    )
    _commit(db)
    db.refresh(task)

    logger.task_created(task.id, task.title, task.assigned_to_id, task.department)
    return task, [event]


def list_tasks(
    db: Session,
    actor: Identity,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    assigned_to: Optional[str] = None,
    department_id: Optional[str] = None,
    parent_task_id: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    due_date_start: Optional[date] = None,
    due_date_end: Optional[date] = None,
    my_tasks_only: bool = False,
    overdue_only: bool = False,
) -> List[Task]:
    """Tasks inside the caller's scope matching every supplied filter, newest first"""
    if department_id and not actor.is_director and department_id != actor.department:
        raise Forbidden(
            "You can only view tasks in your department",
            ["Department scope violation"],
        )

    query = scoped_tasks(db, actor, OperationKind.LIST)

    if status:
        query = query.filter(Task.status == status)
    if priority:
        query = query.filter(Task.priority == priority)
    if assigned_to:
        query = query.filter(Task.assigned_to_id == assigned_to)
    if department_id:
        query = query.filter(Task.department == department_id)
    if parent_task_id:
        query = query.filter(Task.parent_task_id == parent_task_id)

    # Date ranges cover whole days
    if start_date:
        query = query.filter(Task.created_at >= datetime.combine(start_date, datetime.min.time()))
    if end_date:
        query = query.filter(Task.created_at < datetime.combine(end_date + timedelta(days=1), datetime.min.time()))
    if due_date_start:
        query = query.filter(Task.due_date >= datetime.combine(due_date_start, datetime.min.time()))
    if due_date_end:
        query = query.filter(Task.due_date < datetime.combine(due_date_end + timedelta(days=1), datetime.min.time()))

    if my_tasks_only:
        query = query.filter(Task.assigned_to_id == actor.id)
    if overdue_only:
        query = query.filter(and_(
            Task.due_date.isnot(None),
            Task.due_date < datetime.utcnow(),
            Task.status.notin_(TERMINAL_STATUSES),
        ))

    return query.order_by(Task.created_at.desc()).all()


def get_task(db: Session, actor: Identity, task_id: str) -> Task:
    return _load_task(db, actor, task_id, OperationKind.READ)


# ======== Administrative edit ========

def update_task(db: Session, actor: Identity, task_id: str, data: TaskAdminUpdate) -> Tuple[Task, Events]:
    """
    Administrative edit: only the supplied fields change.

    Any status may be set directly; assignment and parent changes go through
    the assignment rules.
    """
    task = _load_task(db, actor, task_id, OperationKind.WRITE)
    if not can_edit_task(actor, task):
        raise Forbidden(
            "You do not have permission to update this task",
            ["Only the assignee, the assigner, the department HOD or a Director can edit this task"],
        )

    supplied = data.model_fields_set

    if "version" in supplied and data.version is not None and data.version != task.version:
        raise Conflict(
            "Task was modified by another request",
            [f"Expected version {data.version}, current version is {task.version}"],
        )

    errors = []
    if "title" in supplied and _is_blank(data.title):
        errors.append("Title cannot be empty")
    if "priority" in supplied and data.priority not in ALL_PRIORITIES:
        errors.append(f"Priority must be one of {', '.join(ALL_PRIORITIES)}")
    if "status" in supplied and data.status not in ALL_STATUSES:
        errors.append(f"Status must be one of {', '.join(ALL_STATUSES)}")
    if "assigned_to" in supplied and _is_blank(data.assigned_to):
        errors.append("Assigned user cannot be empty")
    if errors:
        raise ValidationFailure(errors)

    events: Events = []
    now = datetime.utcnow()

    if "assigned_to" in supplied and data.assigned_to != task.assigned_to_id:
        if not can_reassign_task(actor, task):
            raise Forbidden(
                "You do not have permission to reassign this task",
                ["Only the assigner, an HOD or a Director can reassign"],
            )
        assignee = load_active_assignee(db, data.assigned_to)
        task.department = validate_reassignment(actor, task, assignee, data.department_id)
        task.assigned_to_id = assignee.id
        events.append(enqueue_notification(
            db,
            NotificationType.TASK_ASSIGNED,
            assignee.id,
            "Task assigned to you",
            f"You have been assigned the task: {task.title}",
            related_task_id=task.id,
        ))
    elif "department_id" in supplied and data.department_id and data.department_id != task.department:
        if not actor.is_director:
            raise Forbidden(
                "Only a Director can move a task to another department",
                ["Department scope violation"],
            )
        task.department = validate_assignment(actor, task.assigned_to, data.department_id)

    if "parent_task_id" in supplied:
        if data.parent_task_id:
            validate_parent_link(db, actor, data.parent_task_id, task)
            task.parent_task_id = data.parent_task_id
        else:
            task.parent_task_id = None

    if "title" in supplied:
        task.title = data.title.strip()
    if "description" in supplied:
        task.description = data.description
    if "priority" in supplied:
        task.priority = data.priority
    if "due_date" in supplied:
        task.due_date = to_naive_utc(data.due_date)

    old_status = task.status
    if "status" in supplied and data.status != old_status:
        _apply_status(task, data.status, now)
        _append_update(
            task, actor,
            f"Status changed from {old_status} to {data.status}",
            status=data.status,
            previous_status=old_status,
        )

    _commit(db)
    db.refresh(task)

    if task.status != old_status:
        logger.task_status_changed(task.id, old_status, task.status, actor.id)
    return task, events


# ======== Employee progress ========

def add_progress_update(
    db: Session,
    actor: Identity,
    task_id: str,
    data: ProgressUpdateCreate,
) -> Tuple[Task, Events]:
    """
    Assignee reports progress: a status on the transition graph plus remarks.

    Locked once the Director has approved the task.
    """
    require_capability(actor, Capability.PROGRESS_UPDATE)
    task = _load_task(db, actor, task_id, OperationKind.WRITE)

    if task.assigned_to_id != actor.id:
        raise Forbidden(
            "You can only update tasks assigned to you",
            ["Task is not assigned to you"],
        )
    if task.department != actor.department:
        raise Forbidden(
            "You can only update tasks in your department",
            ["Department scope violation"],
        )
    if task.director_approved:
        raise Conflict(
            "Cannot update task that has been approved by Director",
            ["Task is director-approved"],
        )

    errors = []
    if _is_blank(data.status):
        errors.append("Status is required")
    elif data.status not in PROGRESS_STATUSES:
        errors.append(f"Status must be one of {', '.join(PROGRESS_STATUSES)}")
    if _is_blank(data.remarks):
        errors.append("Remarks are required")
    restricted = data.restricted_fields_present
    if restricted:
        names = ", ".join(_RESTRICTED_FIELD_NAMES[name] for name in restricted)
        errors.append(f"Employees can only update status and remarks; not allowed: {names}")
    if errors:
        raise ValidationFailure(errors)

    old_status = task.status
    new_status = data.status
    if not can_progress(old_status, new_status):
        raise InvalidTransition(old_status, new_status)

    now = datetime.utcnow()
    remarks = data.remarks.strip()
    if new_status != old_status:
        _apply_status(task, new_status, now)
    _append_update(task, actor, remarks, status=new_status, previous_status=old_status, remarks=remarks)

    events: Events = []
    if new_status == TaskStatus.COMPLETED.value and old_status != TaskStatus.COMPLETED.value:
        hod = find_department_hod(db, task.department)
        if hod:
            events.append(enqueue_notification(
                db,
                NotificationType.TASK_COMPLETED,
                hod.id,
                "Task completed",
                f"{actor.name or 'An employee'} completed the task: {task.title}",
                related_task_id=task.id,
            ))
        else:
            logger.info(f"No active HOD for department {task.department}; completion not notified")

    _commit(db)
    db.refresh(task)

    if new_status != old_status:
        logger.task_status_changed(task.id, old_status, new_status, actor.id)
    return task, events


def reply_to_update(
    db: Session,
    actor: Identity,
    task_id: str,
    update_id: str,
    data: ReplyCreate,
) -> Task:
    require_capability(actor, Capability.REPLY)
    if _is_blank(data.message):
        raise ValidationFailure(["Message is required"])

    task = _load_task(db, actor, task_id, OperationKind.WRITE)
    update = next((u for u in task.updates if u.id == update_id), None)
    if update is None:
        raise DependencyNotFound("Update not found", ["Task update does not exist"])

    if not can_reply_to_task(actor, task):
        raise Forbidden(
            "You can only reply to updates on tasks assigned to you",
            ["Reply not permitted for this task"],
        )

    update.replies.append(TaskReply(
        sequence=len(update.replies),
        message=data.message.strip(),
        replied_by_id=actor.id,
    ))
    _commit(db)
    db.refresh(task)
    return task


# ======== Approval gates ========

def approve_hod(db: Session, actor: Identity, task_id: str) -> Tuple[Task, Events]:
    require_capability(actor, Capability.APPROVE_HOD)
    # HOD scope is the own department, so other departments read as not found
    task = _load_task(db, actor, task_id, OperationKind.WRITE)

    if task.hod_approved:
        raise Conflict("Task already approved by HOD", ["HOD approval already granted"])

    task.hod_approved = True
    task.hod_approved_at = datetime.utcnow()
    task.hod_approved_by_id = actor.id
    _append_update(task, actor, "Approved by HOD", status=task.status, previous_status=task.status)

    event = enqueue_notification(
        db,
        NotificationType.APPROVAL_RESPONSE,
        task.assigned_to_id,
        "Task approved by HOD",
        f"Your task has been approved by the HOD: {task.title}",
        related_task_id=task.id,
    )
    _commit(db)
    db.refresh(task)

    logger.task_approved(task.id, "hod", actor.id)
    return task, [event]


def approve_director(db: Session, actor: Identity, task_id: str) -> Tuple[Task, Events]:
    require_capability(actor, Capability.APPROVE_DIRECTOR)
    task = _load_task(db, actor, task_id, OperationKind.WRITE)

    if task.director_approved:
        raise Conflict("Task already approved by Director", ["Director approval already granted"])

    task.director_approved = True
    task.director_approved_at = datetime.utcnow()
    task.director_approved_by_id = actor.id
    _append_update(task, actor, "Approved by Director", status=task.status, previous_status=task.status)

    event = enqueue_notification(
        db,
        NotificationType.APPROVAL_RESPONSE,
        task.assigned_to_id,
        "Task approved by Director",
        f"Your task has been approved by the Director: {task.title}",
        related_task_id=task.id,
    )
    _commit(db)
    db.refresh(task)

    logger.task_approved(task.id, "director", actor.id)
    return task, [event]


# ======== Reopen / delete ========

def reopen_task(db: Session, actor: Identity, task_id: str) -> Task:
    """Move a COMPLETED or CANCELLED task back to IN_PROGRESS"""
    task = _load_task(db, actor, task_id, OperationKind.WRITE)
    if not can_edit_task(actor, task):
        raise Forbidden(
            "You do not have permission to reopen this task",
            ["Only the assignee, the assigner, the department HOD or a Director can reopen this task"],
        )

    old_status = task.status
    if old_status not in TERMINAL_STATUSES:
        raise InvalidTransition(
            old_status,
            TaskStatus.IN_PROGRESS.value,
            "Only completed or cancelled tasks can be reopened",
        )

    _apply_status(task, TaskStatus.IN_PROGRESS.value, datetime.utcnow())
    _append_update(
        task, actor,
        f"Task reopened from {old_status}",
        status=TaskStatus.IN_PROGRESS.value,
        previous_status=old_status,
    )
    _commit(db)
    db.refresh(task)

    logger.task_status_changed(task.id, old_status, task.status, actor.id)
    return task


def delete_task(db: Session, actor: Identity, task_id: str) -> None:
    task = _load_task(db, actor, task_id, OperationKind.DELETE)
    if not can_delete_task(actor, task):
        raise Forbidden(
            "Only the task creator or a Director can delete this task",
            ["Delete not permitted"],
        )

    # Children keep existing without a parent
    db.query(Task).filter(Task.parent_task_id == task.id).update(
        {Task.parent_task_id: None}, synchronize_session=False
    )
    db.delete(task)
    _commit(db)

    logger.log_with_context(logging.INFO, f"Task deleted by {actor.id}", entity_type="task", entity_id=task_id)
