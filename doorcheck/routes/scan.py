"""Door scanning routes."""
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from doorcheck.core.database import get_desk
from doorcheck.errors import DoorcheckError
from doorcheck.models import ValidationOutcome
from doorcheck.routes.errors import http_error
from doorcheck.services.desk import TicketDesk

router = APIRouter(prefix="/events/{event_id}/scan", tags=["scan"])


class ScanRequest(BaseModel):
    """Either the raw QR text or an explicit attendee (and ticket)."""
    payload: str | None = None
    attendee_id: str | None = None
    ticket_number: str | None = None
    validator: str | None = None


@router.post("")
async def scan_ticket(
    event_id: str, scan: ScanRequest, desk: TicketDesk = Depends(get_desk)
) -> ValidationOutcome:
    """
    Validate a ticket at the door.

    The outcome is ``admitted`` the first time a ticket is seen,
    ``already_admitted`` (with the original validator) afterwards and
    ``rejected`` for unknown or unissued tickets. A storage failure returns
    503 and the scan can be retried.
    """
    try:
        if scan.payload is not None:
            return desk.scan(event_id, scan.payload, scan.validator)
        if scan.attendee_id:
            return desk.validate(event_id, scan.attendee_id, scan.ticket_number, scan.validator)
    except DoorcheckError as e:
        raise http_error(e) from e
    raise HTTPException(status_code=400, detail="Provide a payload or an attendee_id")
