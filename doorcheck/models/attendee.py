"""Attendee model for event rosters.

Attendees come from a roster import (or a share code loaded from another
device), get ticket identifiers from the ticket issuer and are marked
validated when one of their tickets is scanned at the door.
"""

from datetime import datetime
from uuid import uuid4

from pydantic import BaseModel, Field, model_validator

MAX_TICKETS = 10


class Attendee(BaseModel):
    """A person on an event roster.

    Attributes:
        id: Unique identifier, immutable once created. Encoded in the QR
            payload and used as the attendee half of the ledger key.
        name: Display name ("First Last" when imported from two columns).
        email: Contact address. Case-insensitive de-duplication key when
            rosters are merged.
        student_id: School identifier (a grade is accepted as a stand-in).
        has_ticket: True exactly when ``ticket_numbers`` is non-empty.
        ticket_number: Primary ticket, always ``ticket_numbers[0]``.
        ticket_numbers: All ticket identifiers in issue order.
        ticket_count: How many identifiers issuance generates (1-10).
        is_validated: Whether one of the attendee's tickets was admitted.
        validated_at: Time of the canonical admission.
        validated_by: Validator label of the canonical admission.
        guest_name: Name of the guest using an extra ticket, if any.
        guest_school: School of that guest, if given.
    """
    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    email: str
    student_id: str
    has_ticket: bool = False
    ticket_number: str | None = None
    ticket_numbers: list[str] = Field(default_factory=list)
    ticket_count: int = Field(default=1, ge=1, le=MAX_TICKETS)
    is_validated: bool = False
    validated_at: datetime | None = None
    validated_by: str | None = None
    guest_name: str | None = None
    guest_school: str | None = None

    @model_validator(mode="after")
    def check_ticket_fields(self) -> "Attendee":
        if self.has_ticket != bool(self.ticket_numbers):
            raise ValueError("has_ticket must be set exactly when ticket_numbers is non-empty")
        if self.ticket_numbers:
            if self.ticket_number is None:
                self.ticket_number = self.ticket_numbers[0]
            elif self.ticket_number != self.ticket_numbers[0]:
                raise ValueError("ticket_number must be the first of ticket_numbers")
        return self

    @property
    def email_key(self) -> str:
        return self.email.strip().lower()

    @property
    def primary_ticket(self) -> str | None:
        return self.ticket_number or next(iter(self.ticket_numbers), None)
