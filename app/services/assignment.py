"""
Assignment rules

Decides who a task may be assigned to and which department it is filed
under. Used by task creation, reassignment and the daily plan.
"""
from typing import Optional, Set

from sqlalchemy.orm import Session

from ..models.task import Task
from ..models.user import User, UserRole
from ..schemas.identity import Identity
from ..utils.errors import (
    DependencyNotFound,
    DepartmentMismatch,
    Forbidden,
    InvalidAssigneeRole,
    ValidationFailure,
)

# Upper bound for the parent-chain walk
MAX_PARENT_DEPTH = 1000


def load_active_assignee(db: Session, user_id: str) -> User:
    """Assignee must exist and be active; anything else reads as not found"""
    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_active:
        raise DependencyNotFound(
            "Assigned user not found or inactive",
            ["User does not exist or is inactive"],
        )
    return user


def validate_assignment(
    actor: Identity,
    assignee: User,
    requested_department: Optional[str],
) -> str:
    """
    Resolve the department a task assigned to `assignee` is filed under.

    HOD assignees bring their own department. Employee assignees need the
    caller to name their department explicitly. Directors are never valid
    assignment targets.
    """
    if assignee.role == UserRole.HOD.value:
        return assignee.department

    if assignee.role == UserRole.EMPLOYEE.value:
        if not requested_department:
            raise ValidationFailure(
                ["Department is required for Employee assignment"],
                "Department is required when assigning to Employee",
            )
        if assignee.department != requested_department:
            raise DepartmentMismatch(
                errors=["Department mismatch - employee belongs to different department"]
            )
        return requested_department

    raise InvalidAssigneeRole(errors=["Invalid assignee role"])


def validate_reassignment(
    actor: Identity,
    task: Task,
    assignee: User,
    requested_department: Optional[str] = None,
) -> str:
    """
    Rules for changing `assignedTo` on an existing task.

    Only a Director may move a task out of its current department.
    """
    if not actor.is_director and assignee.department != task.department:
        raise Forbidden(
            "You can only assign tasks to users in the same department",
            ["Department scope violation"],
        )
    department = requested_department or task.department
    if not actor.is_director:
        department = task.department
    return validate_assignment(actor, assignee, department)


def validate_parent_link(
    db: Session,
    actor: Identity,
    parent_task_id: str,
    task: Optional[Task] = None,
) -> Task:
    """
    Check a parent reference before it is written.

    The parent must exist. For an existing task a non-Director may only link
    inside the task's department, and the link must not make the task its
    own ancestor.
    """
    parent = db.query(Task).filter(Task.id == parent_task_id).first()
    if not parent:
        raise DependencyNotFound("Parent task not found", ["Parent task does not exist"])

    if task is None:
        return parent

    if not actor.is_director and parent.department != task.department:
        raise Forbidden("Parent task must be in the same department", ["Department mismatch"])

    if creates_cycle(db, task.id, parent):
        raise ValidationFailure(["Parent task would create a cycle"])

    return parent


def creates_cycle(db: Session, task_id: str, parent: Task) -> bool:
    """Walk up from `parent`; reaching `task_id` means the link would loop"""
    visited: Set[str] = set()
    current = parent
    while current is not None and len(visited) < MAX_PARENT_DEPTH:
        if current.id == task_id:
            return True
        if current.id in visited:
            # Existing loop above us that does not involve this task
            return False
        visited.add(current.id)
        if not current.parent_task_id:
            return False
        current = db.query(Task).filter(Task.id == current.parent_task_id).first()
    return False
