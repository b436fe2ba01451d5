"""
Notification outbox management (Director only)
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..schemas.common import envelope
from ..schemas.identity import Identity
from ..schemas.notification import OutboxEventResponse
from ..services.notification_outbox import OutboxProcessor
from ..services.scope import Capability, require_capability
from ..utils.dependencies import get_current_user
from ..utils.errors import NotFound

router = APIRouter(prefix="/api/outbox", tags=["Outbox"])


@router.get("/failures")
def list_outbox_failures(
    limit: int = Query(50, ge=1, le=200),
    current_user: Identity = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Notifications that ran out of delivery attempts"""
    require_capability(current_user, Capability.MANAGE_OUTBOX)
    events = OutboxProcessor(db).get_failed_events(limit=limit)
    data = {
        "events": [
            OutboxEventResponse.model_validate(e).model_dump(mode="json", by_alias=True) for e in events
        ],
        "count": len(events),
    }
    return envelope("Failed notifications retrieved successfully", data)


@router.post("/{event_id}/retry")
def retry_outbox_event(
    event_id: str,
    current_user: Identity = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Reschedule a failed notification for immediate delivery"""
    require_capability(current_user, Capability.MANAGE_OUTBOX)
    if not OutboxProcessor(db).retry_failed_event(event_id):
        raise NotFound("Outbox event not found", ["Outbox event does not exist"])
    return envelope("Notification rescheduled for delivery")
