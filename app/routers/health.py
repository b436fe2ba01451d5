"""
Health Check Endpoints

- /health/live  - process is running
- /health/ready - database reachable, outbox backlog
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from sqlalchemy import text
from datetime import datetime
import time

from ..database import get_db
from ..config import settings
from ..models.notification import NotificationOutbox, OutboxStatus

router = APIRouter(prefix="/health", tags=["Health"])


def get_db_health(db: Session) -> dict:
    """Check database connectivity and latency"""
    try:
        start = time.time()
        db.execute(text("SELECT 1"))
        latency_ms = (time.time() - start) * 1000
        return {
            "status": "up",
            "latency_ms": round(latency_ms, 2),
            "type": "postgresql" if "postgresql" in str(db.bind.url) else "sqlite"
        }
    except Exception as e:
        return {
            "status": "down",
            "error": str(e)[:100]
        }


def get_outbox_health(db: Session) -> dict:
    """Pending and failed notification counts"""
    pending = db.query(NotificationOutbox).filter(
        NotificationOutbox.status.in_([OutboxStatus.PENDING.value, OutboxStatus.RETRYING.value])
    ).count()
    failed = db.query(NotificationOutbox).filter(
        NotificationOutbox.status == OutboxStatus.FAILED.value
    ).count()
    return {
        "enabled": settings.outbox_enabled,
        "pending": pending,
        "failed": failed,
    }


@router.get("")
@router.get("/")
@router.get("/live")
def liveness():
    return {"status": "healthy", "timestamp": datetime.utcnow().isoformat()}


@router.get("/ready")
def readiness(db: Session = Depends(get_db)):
    database = get_db_health(db)
    if database["status"] != "up":
        return JSONResponse(status_code=503, content={"status": "unavailable", "database": database})
    return {
        "status": "ready",
        "database": database,
        "outbox": get_outbox_health(db),
    }
