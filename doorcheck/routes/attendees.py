"""Attendee routes: roster import, ticket issuance and wallet hand-off."""
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from doorcheck.core.database import get_desk
from doorcheck.errors import DoorcheckError
from doorcheck.models import Attendee
from doorcheck.routes.errors import http_error
from doorcheck.services.desk import ImportSummary, TicketDesk
from doorcheck.tickets.payload import WalletTicket

router = APIRouter(prefix="/events/{event_id}/attendees", tags=["attendees"])


class SheetImport(BaseModel):
    sheet_url: str


@router.get("")
async def list_attendees(event_id: str, desk: TicketDesk = Depends(get_desk)) -> list[Attendee]:
    try:
        return desk.attendees(event_id)
    except DoorcheckError as e:
        raise http_error(e) from e


@router.post("/import")
def import_from_sheet(
    event_id: str, body: SheetImport, desk: TicketDesk = Depends(get_desk)
) -> ImportSummary:
    """
    Import attendees from a Google Sheet.

    The sheet must be shared as "Anyone with the link". Rows whose email is
    already on the roster are counted as duplicates and left alone. Errors
    carry a ``kind`` and a ``hint`` telling the organizer what to fix.

    Runs in the threadpool since the download blocks for up to the fetch
    timeout.
    """
    try:
        return desk.import_roster_from_sheet(event_id, body.sheet_url)
    except DoorcheckError as e:
        raise http_error(e) from e


@router.post("/import/csv")
async def import_csv(
    event_id: str, request: Request, desk: TicketDesk = Depends(get_desk)
) -> ImportSummary:
    """Import attendees from a CSV table posted as the (text/csv) request body."""
    csv_text = (await request.body()).decode("utf-8-sig", errors="replace")
    try:
        return desk.import_roster_csv(event_id, csv_text)
    except DoorcheckError as e:
        raise http_error(e) from e


@router.post("/{attendee_id}/ticket")
async def issue_ticket(
    event_id: str, attendee_id: str, desk: TicketDesk = Depends(get_desk)
) -> Attendee:
    """
    Issue tickets to an attendee.

    Generates ``ticket_count`` ticket numbers. Issuing again replaces the
    previous tickets and clears the validation flag.
    """
    try:
        return desk.issue_ticket(event_id, attendee_id)
    except DoorcheckError as e:
        raise http_error(e) from e


@router.get("/{attendee_id}/wallet")
async def wallet_ticket(
    event_id: str, attendee_id: str, desk: TicketDesk = Depends(get_desk)
) -> WalletTicket:
    """Data an external wallet pass generator needs for this attendee."""
    try:
        return desk.wallet_ticket(event_id, attendee_id)
    except DoorcheckError as e:
        raise http_error(e) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


@router.delete("", status_code=204)
async def reset_roster(event_id: str, desk: TicketDesk = Depends(get_desk)):
    """Remove every attendee of the event."""
    try:
        desk.reset_roster(event_id)
    except DoorcheckError as e:
        raise http_error(e) from e
