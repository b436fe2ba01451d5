"""
Tasks API: creation, scoped listing, administrative edits, progress
updates, replies, approval gates, reopen and delete.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date

from ..database import get_db
from ..schemas.common import envelope
from ..schemas.identity import Identity
from ..schemas.task import (
    ProgressUpdateCreate,
    ReplyCreate,
    TaskAdminUpdate,
    TaskCreate,
    task_list_payload,
    task_payload,
)
from ..services import task_lifecycle
from ..utils.dependencies import get_current_user

router = APIRouter(prefix="/api/tasks", tags=["Tasks"])


@router.post("", status_code=201)
@router.post("/", status_code=201)
def create_task(
    body: TaskCreate,
    current_user: Identity = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Assign a new task (Director only)"""
    task, events = task_lifecycle.create_task(db, current_user, body)
    data = task_payload(task)
    task_lifecycle.dispatch_notifications(db, events)
    return envelope("Task created successfully", data)


@router.get("")
@router.get("/")
def list_tasks(
    status: Optional[str] = Query(None),
    priority: Optional[str] = Query(None),
    assigned_to: Optional[str] = Query(None, alias="assignedTo"),
    department_id: Optional[str] = Query(None, alias="departmentId"),
    parent_task_id: Optional[str] = Query(None, alias="parentTaskId"),
    start_date: Optional[date] = Query(None, alias="startDate", description="Created on or after"),
    end_date: Optional[date] = Query(None, alias="endDate", description="Created on or before"),
    due_date_start: Optional[date] = Query(None, alias="dueDateStart"),
    due_date_end: Optional[date] = Query(None, alias="dueDateEnd"),
    my_tasks_only: bool = Query(False, alias="myTasksOnly"),
    overdue_only: bool = Query(False, alias="overdueOnly"),
    current_user: Identity = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    tasks = task_lifecycle.list_tasks(
        db,
        current_user,
        status=status,
        priority=priority,
        assigned_to=assigned_to,
        department_id=department_id,
        parent_task_id=parent_task_id,
        start_date=start_date,
        end_date=end_date,
        due_date_start=due_date_start,
        due_date_end=due_date_end,
        my_tasks_only=my_tasks_only,
        overdue_only=overdue_only,
    )
    return envelope("Tasks retrieved successfully", task_list_payload(tasks))


@router.get("/{task_id}")
def get_task(
    task_id: str,
    current_user: Identity = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    task = task_lifecycle.get_task(db, current_user, task_id)
    return envelope("Task retrieved successfully", task_payload(task))


@router.patch("/{task_id}")
def update_task(
    task_id: str,
    body: TaskAdminUpdate,
    current_user: Identity = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Administrative edit (assignee, assigner, department HOD or Director)"""
    task, events = task_lifecycle.update_task(db, current_user, task_id, body)
    data = task_payload(task)
    task_lifecycle.dispatch_notifications(db, events)
    return envelope("Task updated successfully", data)


@router.post("/{task_id}/updates")
def add_progress_update(
    task_id: str,
    body: ProgressUpdateCreate,
    current_user: Identity = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Employee progress update: status on the transition graph plus remarks"""
    task, events = task_lifecycle.add_progress_update(db, current_user, task_id, body)
    data = task_payload(task)
    task_lifecycle.dispatch_notifications(db, events)
    return envelope("Task progress updated successfully", data)


@router.post("/{task_id}/updates/{update_id}/reply")
def reply_to_update(
    task_id: str,
    update_id: str,
    body: ReplyCreate,
    current_user: Identity = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    task = task_lifecycle.reply_to_update(db, current_user, task_id, update_id, body)
    return envelope("Reply added successfully", task_payload(task))


@router.post("/{task_id}/approve-hod")
def approve_hod(
    task_id: str,
    current_user: Identity = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    task, events = task_lifecycle.approve_hod(db, current_user, task_id)
    data = task_payload(task)
    task_lifecycle.dispatch_notifications(db, events)
    return envelope("Task approved by HOD", data)


@router.post("/{task_id}/approve-director")
def approve_director(
    task_id: str,
    current_user: Identity = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    task, events = task_lifecycle.approve_director(db, current_user, task_id)
    data = task_payload(task)
    task_lifecycle.dispatch_notifications(db, events)
    return envelope("Task approved by Director", data)


@router.post("/{task_id}/reopen")
def reopen_task(
    task_id: str,
    current_user: Identity = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    task = task_lifecycle.reopen_task(db, current_user, task_id)
    return envelope("Task reopened successfully", task_payload(task))


@router.delete("/{task_id}")
def delete_task(
    task_id: str,
    current_user: Identity = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    task_lifecycle.delete_task(db, current_user, task_id)
    return envelope("Task deleted successfully")
