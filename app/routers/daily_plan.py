"""
Daily Plan API
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date

from ..database import get_db
from ..schemas.common import envelope
from ..schemas.identity import Identity
from ..schemas.task import DailyPlanCreate, task_payload
from ..services import daily_plan
from ..services.task_lifecycle import dispatch_notifications
from ..utils.dependencies import get_current_user

router = APIRouter(prefix="/api/daily-plan", tags=["Daily Plan"])


@router.post("", status_code=201)
@router.post("/", status_code=201)
def create_daily_plan(
    body: DailyPlanCreate,
    current_user: Identity = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    task, events = daily_plan.create_daily_plan(db, current_user, body)
    data = task_payload(task)
    dispatch_notifications(db, events)
    return envelope("Daily plan task created successfully", data)


@router.get("")
@router.get("/")
def get_daily_plan(
    day: Optional[date] = Query(None, alias="date", description="YYYY-MM-DD, defaults to today"),
    current_user: Identity = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Daily plan grouped by department, then status"""
    return envelope("Daily plan retrieved successfully", daily_plan.get_daily_plan(db, current_user, day))
