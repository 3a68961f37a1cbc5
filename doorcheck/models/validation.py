"""Validation ledger models.

Every admission at the door produces one immutable ValidationRecord. The
records of an event live in its shared ledger (SyncData), which all
scanning devices read and append to.

Because appending is a read-modify-write of the whole ledger with no lock,
two devices can both admit the same ticket before either sees the other's
record. Duplicates are kept; ``canonical_record`` picks the one admission
that counts: earliest ``validated_at``, ties broken by ``device_id``.
"""

from collections.abc import Iterable
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from doorcheck.models.attendee import Attendee

TicketKey = tuple[str, str]


class ValidationRecord(BaseModel):
    """An admission of one ticket, never edited or retracted.

    Attributes:
        attendee_id: ``Attendee.id`` of the ticket holder.
        ticket_number: The admitted ticket identifier.
        validated_at: When the scanning device admitted the ticket.
        validated_by: Human-readable validator label shown to operators.
        device_id: Installation that recorded the admission.
        event_id: Event the ticket was admitted to.
    """
    model_config = ConfigDict(frozen=True)

    attendee_id: str
    ticket_number: str
    validated_at: datetime
    validated_by: str
    device_id: str
    event_id: str

    @property
    def key(self) -> TicketKey:
        return (self.attendee_id, self.ticket_number)

    @property
    def precedence(self) -> tuple[datetime, str]:
        return (self.validated_at, self.device_id)


def canonical_record(records: Iterable[ValidationRecord]) -> ValidationRecord | None:
    """Return the admission that counts among records for the same ticket."""
    return min(records, key=lambda r: r.precedence, default=None)


def canonical_records(records: Iterable[ValidationRecord]) -> dict[TicketKey, ValidationRecord]:
    """Map every ticket key to its canonical record."""
    canonical: dict[TicketKey, ValidationRecord] = {}
    for record in records:
        current = canonical.get(record.key)
        if current is None or record.precedence < current.precedence:
            canonical[record.key] = record
    return canonical


class SyncData(BaseModel):
    """Shared per-event ledger snapshot, the unit of reconciliation.

    Attributes:
        event_id: Event this ledger belongs to.
        attendees: Ticketed attendees published by the devices that wrote
            to this ledger (merged by email, first writer wins).
        validations: Every recorded admission, duplicates included.
        last_sync: Time of the last write.
    """
    event_id: str
    attendees: list[Attendee] = Field(default_factory=list)
    validations: list[ValidationRecord] = Field(default_factory=list)
    last_sync: datetime | None = None

    def records_for(self, attendee_id: str, ticket_number: str) -> list[ValidationRecord]:
        key = (attendee_id, ticket_number)
        return [v for v in self.validations if v.key == key]


class ValidationStatus(str, Enum):
    ADMITTED = "admitted"
    ALREADY_ADMITTED = "already_admitted"
    REJECTED = "rejected"


class ValidationOutcome(BaseModel):
    """Result of a scan.

    ``validated_by``/``validated_at`` describe the canonical admission for
    ADMITTED and ALREADY_ADMITTED. ``reason`` explains a rejection.
    """
    status: ValidationStatus
    attendee_id: str
    ticket_number: str | None = None
    validated_by: str | None = None
    validated_at: datetime | None = None
    reason: str | None = None

    @property
    def admitted(self) -> bool:
        return self.status is ValidationStatus.ADMITTED
