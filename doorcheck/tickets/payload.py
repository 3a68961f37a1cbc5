"""QR payloads and the wallet hand-off.

A ticket's QR code encodes a small JSON object:

    {"id": "<attendee id>", "ticketNumber": "TKT...", "name": "...", "studentId": "..."}

The scanner delivers that text back verbatim; ``decode_payload`` turns it
into the (attendee id, ticket number) pair the validation engine needs.
"""
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from doorcheck.models import Attendee, Event


class InvalidPayloadError(ValueError):
    """Scanned text is not a ticket payload."""


class TicketPayload(BaseModel):
    """Content of a ticket QR code."""
    model_config = ConfigDict(populate_by_name=True)

    attendee_id: str = Field(alias="id")
    ticket_number: str | None = Field(default=None, alias="ticketNumber")
    name: str = ""
    student_id: str = Field(default="", alias="studentId")


def encode_payload(attendee: Attendee, ticket_number: str | None = None) -> str:
    """QR text for one of the attendee's tickets (the primary one by default)."""
    payload = TicketPayload(
        attendee_id=attendee.id,
        ticket_number=ticket_number or attendee.primary_ticket,
        name=attendee.name,
        student_id=attendee.student_id,
    )
    return payload.model_dump_json(by_alias=True)


def decode_payload(text: str) -> TicketPayload:
    try:
        return TicketPayload.model_validate_json(text)
    except ValidationError as e:
        raise InvalidPayloadError(f"Not a ticket QR code: {e.error_count()} problem(s)") from e


class WalletTicket(BaseModel):
    """Everything an external pass generator needs for one attendee.

    No wallet format is produced here; Apple/Google pass construction
    happens on the other side of this boundary.
    """
    identifiers: list[str]
    attendee_id: str
    name: str
    email: str
    student_id: str
    ticket_count: int
    guest_name: str | None = None
    guest_school: str | None = None
    event_id: str
    event_name: str
    event_date: str
    event_time: str
    event_location: str | None = None
    qr_payload: str


def build_wallet_ticket(attendee: Attendee, event: Event) -> WalletTicket:
    if not attendee.has_ticket:
        raise ValueError(f"Attendee {attendee.id} has no ticket to export")
    return WalletTicket(
        identifiers=list(attendee.ticket_numbers),
        attendee_id=attendee.id,
        name=attendee.name,
        email=attendee.email,
        student_id=attendee.student_id,
        ticket_count=len(attendee.ticket_numbers),
        guest_name=attendee.guest_name,
        guest_school=attendee.guest_school,
        event_id=event.id,
        event_name=event.name,
        event_date=event.date.isoformat(),
        event_time=event.time,
        event_location=event.location,
        qr_payload=encode_payload(attendee),
    )
