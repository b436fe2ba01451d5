"""
Approvals API: tasks still waiting on the caller's approval gate
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from ..database import get_db
from ..schemas.common import envelope
from ..schemas.identity import Identity
from ..schemas.task import task_list_payload
from ..services.reports import list_pending_approvals
from ..utils.dependencies import get_current_user

router = APIRouter(prefix="/api/approvals", tags=["Approvals"])


@router.get("/pending")
def get_pending_approvals(
    status: Optional[str] = Query(None),
    current_user: Identity = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    tasks = list_pending_approvals(db, current_user, status=status)
    return envelope("Pending approvals retrieved successfully", task_list_payload(tasks))
