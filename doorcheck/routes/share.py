"""Share routes: publish an event under a code and load it elsewhere."""
from fastapi import APIRouter, Depends, Request

from doorcheck.core.database import get_desk
from doorcheck.errors import DoorcheckError
from doorcheck.routes.errors import http_error
from doorcheck.services.desk import LoadSummary, TicketDesk
from doorcheck.services.exchange import share_link

router = APIRouter(tags=["share"])


@router.post("/events/{event_id}/share", status_code=201)
async def share_event(event_id: str, request: Request, desk: TicketDesk = Depends(get_desk)):
    """
    Share an event with other devices.

    Stores a snapshot of the event and its ticketed attendees and returns
    the share code plus a link to it. Later changes are not part of the
    snapshot; share again to publish them.
    """
    try:
        code = desk.share_event(event_id)
    except DoorcheckError as e:
        raise http_error(e) from e
    return {"code": code, "link": share_link(str(request.base_url), code)}


@router.post("/share/{code}/load")
async def load_shared_event(code: str, desk: TicketDesk = Depends(get_desk)) -> LoadSummary:
    """Load a shared event by code (case-insensitive)."""
    try:
        return desk.load_shared_event(code)
    except DoorcheckError as e:
        raise http_error(e) from e
