"""Sync routes for reconciling the shared validation ledger."""
from fastapi import APIRouter, Depends

from doorcheck.core import scheduler
from doorcheck.core.config import settings
from doorcheck.core.database import get_desk
from doorcheck.errors import DoorcheckError
from doorcheck.routes.errors import http_error
from doorcheck.services.desk import TicketDesk

router = APIRouter(prefix="/events/{event_id}/sync", tags=["sync"])


@router.post("/now")
async def sync_now(event_id: str, desk: TicketDesk = Depends(get_desk)):
    """
    Reconcile the event with the shared ledger immediately.

    Returns the number of validations and attendees in the ledger, or
    ``has_ledger: false`` when no device has validated anything yet.
    """
    try:
        desk.get_event(event_id)
        snapshot = desk.reconcile(event_id)
    except DoorcheckError as e:
        raise http_error(e) from e
    if snapshot is None:
        return {"event_id": event_id, "has_ledger": False}
    return {
        "event_id": event_id,
        "has_ledger": True,
        "validations": len(snapshot.validations),
        "attendees": len(snapshot.attendees),
        "last_sync": snapshot.last_sync.isoformat() if snapshot.last_sync else None,
    }


@router.post("/start")
async def start_sync(event_id: str, desk: TicketDesk = Depends(get_desk)):
    """Start scanning the event: reconcile now and then on every interval."""
    try:
        desk.start_scanning(event_id)
    except DoorcheckError as e:
        raise http_error(e) from e
    return {"event_id": event_id, "auto_sync": True, "interval_seconds": settings.sync_interval_seconds}


@router.post("/stop")
async def stop_sync(event_id: str, desk: TicketDesk = Depends(get_desk)):
    """Stop automatic reconciliation."""
    stopped = desk.stop_scanning()
    return {"event_id": event_id, "auto_sync": False, "was_running": stopped}


@router.get("/status")
async def sync_status(event_id: str, desk: TicketDesk = Depends(get_desk)):
    """
    Get current sync status.

    Returns whether this event is being auto-synced, the interval, the
    device id and when the event was last reconciled on this device.
    """
    last = desk.coordinator.last_reconciled.get(event_id)
    return {
        "event_id": event_id,
        "auto_sync": scheduler.auto_sync_event() == event_id,
        "interval_seconds": settings.sync_interval_seconds,
        "device_id": desk.device_id,
        "last_reconciled": last.isoformat() if last else None,
    }
