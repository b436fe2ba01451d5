"""
Reports API: task counts within the caller's report scope
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from ..database import get_db
from ..schemas.common import envelope
from ..schemas.identity import Identity
from ..services import reports
from ..utils.dependencies import get_current_user

router = APIRouter(prefix="/api/reports", tags=["Reports"])


@router.get("/stats")
def get_task_stats(
    date_from: Optional[str] = Query(None, alias="from", description="YYYY-MM-DD, on createdAt"),
    date_to: Optional[str] = Query(None, alias="to", description="YYYY-MM-DD, on createdAt"),
    employee_id: Optional[str] = Query(None, alias="employeeId"),
    hod_id: Optional[str] = Query(None, alias="hodId"),
    department: Optional[str] = Query(None),
    current_user: Identity = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    stats = reports.task_stats(
        db,
        current_user,
        date_from=date_from,
        date_to=date_to,
        employee_id=employee_id,
        hod_id=hod_id,
        department=department,
    )
    return envelope("Statistics retrieved successfully", stats)


@router.get("/by-department")
def get_department_breakdown(
    current_user: Identity = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return envelope("Department report retrieved successfully", reports.department_breakdown(db, current_user))


@router.get("/user-performance")
def get_user_performance(
    current_user: Identity = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Per-assignee completion (HOD and Director)"""
    data = {"userPerformance": reports.user_performance(db, current_user)}
    return envelope("User performance retrieved successfully", data)


@router.get("/summary")
def get_summary(
    date_from: Optional[str] = Query(None, alias="from", description="YYYY-MM-DD, on createdAt"),
    date_to: Optional[str] = Query(None, alias="to", description="YYYY-MM-DD, on createdAt"),
    current_user: Identity = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    summary = reports.summary_report(db, current_user, date_from=date_from, date_to=date_to)
    return envelope("Summary report retrieved successfully", summary)
