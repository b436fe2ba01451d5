"""
Scope resolution and capability checks

Every task read or write goes through `scoped_tasks`, so the visibility rule
for a role lives in exactly one place. Role-gated operations are looked up
once in CAPABILITIES; per-task relationship checks (assignee, assigner,
department head) are the `can_*` helpers below.
"""
import enum
from typing import Dict, FrozenSet

from sqlalchemy import and_, or_, true
from sqlalchemy.orm import Query, Session

from ..models.task import Task
from ..models.user import UserRole
from ..schemas.identity import Identity
from ..utils.errors import Forbidden


class OperationKind(str, enum.Enum):
    LIST = "list"
    READ = "read"
    WRITE = "write"
    DELETE = "delete"
    APPROVALS = "approvals"
    REPORT = "report"


# "My work" views: employees only see what is assigned to them
MY_WORK_KINDS = frozenset({OperationKind.APPROVALS, OperationKind.REPORT})


def resolve_scope(identity: Identity, kind: OperationKind):
    """Filter clause restricting Task rows to what `identity` may reach"""
    if identity.is_director:
        return true()

    if identity.is_hod:
        return Task.department == identity.department

    if kind in MY_WORK_KINDS:
        return Task.assigned_to_id == identity.id

    # Assigned to me, or filed by me inside my own department
    return or_(
        Task.assigned_to_id == identity.id,
        and_(
            Task.department == identity.department,
            Task.assigned_by_id == identity.id,
        ),
    )


def scoped_tasks(db: Session, identity: Identity, kind: OperationKind) -> Query:
    return db.query(Task).filter(resolve_scope(identity, kind))


# ======== Capabilities ========

class Capability(str, enum.Enum):
    CREATE_TASK = "create_task"
    CREATE_DAILY_PLAN = "create_daily_plan"
    PROGRESS_UPDATE = "progress_update"
    APPROVE_HOD = "approve_hod"
    APPROVE_DIRECTOR = "approve_director"
    REPLY = "reply"
    VIEW_DEPARTMENT_REPORT = "view_department_report"
    VIEW_USER_PERFORMANCE = "view_user_performance"
    MANAGE_OUTBOX = "manage_outbox"


ALL_ROLES = frozenset(UserRole)

CAPABILITIES: Dict[Capability, FrozenSet[UserRole]] = {
    Capability.CREATE_TASK: frozenset({UserRole.DIRECTOR}),
    Capability.CREATE_DAILY_PLAN: ALL_ROLES,
    Capability.PROGRESS_UPDATE: frozenset({UserRole.EMPLOYEE}),
    Capability.APPROVE_HOD: frozenset({UserRole.HOD, UserRole.DIRECTOR}),
    Capability.APPROVE_DIRECTOR: frozenset({UserRole.DIRECTOR}),
    Capability.REPLY: ALL_ROLES,
    Capability.VIEW_DEPARTMENT_REPORT: frozenset({UserRole.DIRECTOR}),
    Capability.VIEW_USER_PERFORMANCE: frozenset({UserRole.HOD, UserRole.DIRECTOR}),
    Capability.MANAGE_OUTBOX: frozenset({UserRole.DIRECTOR}),
}


def is_allowed(identity: Identity, capability: Capability) -> bool:
    return identity.role in CAPABILITIES[capability]


def require_capability(identity: Identity, capability: Capability) -> None:
    """Raise Forbidden when the caller's role lacks `capability`"""
    allowed = CAPABILITIES[capability]
    if identity.role in allowed:
        return
    required = " or ".join(sorted(role.value for role in allowed))
    raise Forbidden(
        f"Access denied. Required role: {required}",
        [f"Current role: {identity.role.value}, Required: {required}"],
    )


# ======== Per-task relationship checks ========

def is_department_head_of(identity: Identity, task: Task) -> bool:
    return identity.is_hod and task.department == identity.department


def can_edit_task(identity: Identity, task: Task) -> bool:
    """Administrative edit and reopen"""
    return (
        task.assigned_to_id == identity.id
        or task.assigned_by_id == identity.id
        or is_department_head_of(identity, task)
        or identity.is_director
    )


def can_reassign_task(identity: Identity, task: Task) -> bool:
    return (
        task.assigned_by_id == identity.id
        or identity.is_hod
        or identity.is_director
    )


def can_delete_task(identity: Identity, task: Task) -> bool:
    return task.assigned_by_id == identity.id or identity.is_director


def can_reply_to_task(identity: Identity, task: Task) -> bool:
    if identity.is_director:
        return True
    if identity.is_hod:
        return task.department == identity.department
    return task.assigned_to_id == identity.id
