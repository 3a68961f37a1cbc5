"""Event routes for managing the installation's events."""
from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError

from doorcheck.core.database import get_desk
from doorcheck.errors import DoorcheckError
from doorcheck.models import Event, EventDetails, EventUpdate
from doorcheck.routes.errors import http_error
from doorcheck.services.desk import EventExport, TicketDesk

router = APIRouter(prefix="/events", tags=["events"])


@router.get("")
async def list_events(desk: TicketDesk = Depends(get_desk)):
    """
    List all events.

    Returns the events in creation order together with the id of the
    current event (None when there are no events).
    """
    current = desk.current_event()
    return {
        "current_event_id": current.id if current else None,
        "events": desk.list_events(),
    }


@router.post("", status_code=201)
async def create_event(details: EventDetails, desk: TicketDesk = Depends(get_desk)) -> Event:
    """Create an event. The new event becomes the current one."""
    return desk.create_event(details)


@router.get("/{event_id}")
async def get_event(event_id: str, desk: TicketDesk = Depends(get_desk)) -> Event:
    try:
        return desk.get_event(event_id)
    except DoorcheckError as e:
        raise http_error(e) from e


@router.patch("/{event_id}")
async def update_event(
    event_id: str, changes: EventUpdate, desk: TicketDesk = Depends(get_desk)
) -> Event:
    """
    Update event details.

    Only the fields present in the body change. The merged event is
    validated again, so a bad date or time returns 422.
    """
    try:
        return desk.update_event(event_id, changes)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False)) from e
    except DoorcheckError as e:
        raise http_error(e) from e


@router.post("/{event_id}/select")
async def select_event(event_id: str, desk: TicketDesk = Depends(get_desk)) -> Event:
    """Make the event the current one."""
    try:
        return desk.select_event(event_id)
    except DoorcheckError as e:
        raise http_error(e) from e


@router.delete("/{event_id}", status_code=204)
async def delete_event(event_id: str, desk: TicketDesk = Depends(get_desk)):
    """
    Delete an event and its roster.

    If the deleted event was current, the first remaining event becomes
    current.
    """
    try:
        desk.delete_event(event_id)
    except DoorcheckError as e:
        raise http_error(e) from e


@router.get("/{event_id}/export")
async def export_event(event_id: str, desk: TicketDesk = Depends(get_desk)) -> EventExport:
    """Export the event, its ticketed attendees and every recorded validation."""
    try:
        return desk.export_event_data(event_id)
    except DoorcheckError as e:
        raise http_error(e) from e
