"""
Task Schemas

Request bodies are lenient on purpose: required-field and enum checks happen
in the service so that every violated rule is reported together. Field names
are camelCase on the wire.
"""
from pydantic import BaseModel
from pydantic.alias_generators import to_camel
from typing import Any, List, Optional
from datetime import datetime

from ..services.overdue import days_overdue, is_overdue


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# ======== Requests ========

class TaskCreate(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    assigned_to: Optional[str] = None
    department_id: Optional[str] = None
    priority: Optional[str] = None
    start_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    parent_task_id: Optional[str] = None


class TaskAdminUpdate(CamelModel):
    """Administrative edit; only supplied fields are applied"""
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[str] = None
    due_date: Optional[datetime] = None
    status: Optional[str] = None
    assigned_to: Optional[str] = None
    department_id: Optional[str] = None
    parent_task_id: Optional[str] = None
    # Optimistic concurrency: version the client last read
    version: Optional[int] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        extra = "forbid"


# Fields an employee progress update may not carry, under any value
RESTRICTED_PROGRESS_FIELDS = (
    "title", "description", "priority", "due_date", "assigned_to",
    "department_id", "department", "approvals", "hod_approved", "hod_approved_at", "hod_approved_by",
    "director_approved", "director_approved_at", "director_approved_by",
)


class ProgressUpdateCreate(CamelModel):
    status: Optional[str] = None
    remarks: Optional[str] = None

    # Declared only to detect their presence
    title: Optional[Any] = None
    description: Optional[Any] = None
    priority: Optional[Any] = None
    due_date: Optional[Any] = None
    assigned_to: Optional[Any] = None
    department_id: Optional[Any] = None
    department: Optional[Any] = None
    approvals: Optional[Any] = None
    hod_approved: Optional[Any] = None
    hod_approved_at: Optional[Any] = None
    hod_approved_by: Optional[Any] = None
    director_approved: Optional[Any] = None
    director_approved_at: Optional[Any] = None
    director_approved_by: Optional[Any] = None

    @property
    def restricted_fields_present(self) -> List[str]:
        return [name for name in RESTRICTED_PROGRESS_FIELDS if name in self.model_fields_set]


class ReplyCreate(CamelModel):
    message: Optional[str] = None


class DailyPlanCreate(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    assigned_to: Optional[str] = None
    department: Optional[str] = None
    start_date: Optional[datetime] = None


# ======== Responses ========

class UserSummary(CamelModel):
    id: str
    name: str
    email: str
    role: str
    department: Optional[str] = None


class TaskSummary(CamelModel):
    id: str
    title: str
    status: str
    description: Optional[str] = None


class ReplyResponse(CamelModel):
    id: str
    message: str
    replied_by: Optional[UserSummary] = None
    created_at: Optional[datetime] = None


class TaskUpdateResponse(CamelModel):
    id: str
    comment: str
    remarks: Optional[str] = None
    updated_by: Optional[UserSummary] = None
    status: Optional[str] = None
    previous_status: Optional[str] = None
    created_at: Optional[datetime] = None
    replies: List[ReplyResponse] = []


class TaskResponse(CamelModel):
    id: str
    title: str
    description: Optional[str] = None
    assigned_to: Optional[UserSummary] = None
    assigned_by: Optional[UserSummary] = None
    department: str
    parent_task_id: Optional[str] = None
    parent_task: Optional[TaskSummary] = None
    status: str
    priority: str
    start_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    is_daily_plan: bool = False
    completed_at: Optional[datetime] = None
    hod_approved: bool = False
    hod_approved_at: Optional[datetime] = None
    hod_approved_by: Optional[UserSummary] = None
    director_approved: bool = False
    director_approved_at: Optional[datetime] = None
    director_approved_by: Optional[UserSummary] = None
    updates: List[TaskUpdateResponse] = []
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Derived on every read
    is_overdue: bool = False
    days_overdue: int = 0


def serialize_task(task, now: Optional[datetime] = None) -> dict:
    """Task row -> camelCase dict with overdue annotations"""
    now = now or datetime.utcnow()
    response = TaskResponse.model_validate(task).model_copy(update={
        "is_overdue": is_overdue(task, now),
        "days_overdue": days_overdue(task, now),
    })
    return response.model_dump(mode="json", by_alias=True)


def serialize_tasks(tasks, now: Optional[datetime] = None) -> List[dict]:
    now = now or datetime.utcnow()
    return [serialize_task(task, now) for task in tasks]


def task_payload(task, now: Optional[datetime] = None) -> dict:
    """`data` for single-task responses: {"task": {...}}"""
    return {"task": serialize_task(task, now)}


def task_list_payload(tasks, now: Optional[datetime] = None) -> dict:
    """`data` for task lists: {"tasks": [...], "count": n}"""
    items = serialize_tasks(tasks, now)
    return {"tasks": items, "count": len(items)}
