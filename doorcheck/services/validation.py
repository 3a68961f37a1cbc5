"""Ticket validation at the door.

Per (attendee, event) a ticket moves NoTicket -> Issued -> Validated, and
Validated is terminal: there is no un-validate operation.

Admission is local-first. A scanner reads the event's shared ledger,
appends its record and writes the ledger back. The check and the append are
not atomic against the shared store, so two devices can both admit the same
ticket. The ledger keeps both records and every reader resolves them the
same way (see ``doorcheck.models.validation.canonical_record``). After the
write, the engine re-reads the ledger once and reports ALREADY_ADMITTED if
another device's record already takes precedence.
"""
import logging
from collections import defaultdict
from collections.abc import Iterable
from datetime import datetime

from doorcheck.core.clock import Clock
from doorcheck.core.storage import DocumentStore, sync_data_key
from doorcheck.errors import StorageError, ValidationCommitError
from doorcheck.models import (
    Attendee,
    SyncData,
    ValidationOutcome,
    ValidationRecord,
    ValidationStatus,
    canonical_record,
    canonical_records,
)
from doorcheck.services.roster import RosterBook, merge_by_email

logger = logging.getLogger(__name__)


class LocalValidations:
    """Validation records this device knows about, per event."""

    def __init__(self):
        self._records: dict[str, set[ValidationRecord]] = defaultdict(set)

    def records(self, event_id: str) -> set[ValidationRecord]:
        return set(self._records[event_id])

    def add(self, event_id: str, records: Iterable[ValidationRecord]) -> list[ValidationRecord]:
        """Add records, returning those that were not known yet."""
        known = self._records[event_id]
        new = [r for r in records if r not in known]
        known.update(new)
        return new


def apply_validations(attendee: Attendee, records: Iterable[ValidationRecord]) -> Attendee:
    """
    Return the attendee as seen through the given validation records.

    The attendee counts as validated by the earliest canonical admission of
    any of their tickets. Attendees without matching records are returned
    unchanged; a validated attendee is never reset.
    """
    tickets = set(attendee.ticket_numbers)
    mine = [r for r in records if r.attendee_id == attendee.id and r.ticket_number in tickets]
    first = canonical_record(canonical_records(mine).values())
    if first is None:
        return attendee
    if (
        attendee.is_validated
        and attendee.validated_at == first.validated_at
        and attendee.validated_by == first.validated_by
    ):
        return attendee
    return attendee.model_copy(
        update={
            "is_validated": True,
            "validated_at": first.validated_at,
            "validated_by": first.validated_by,
        }
    )


def republish(
    shared: DocumentStore,
    ledger: SyncData,
    records: Iterable[ValidationRecord],
    now: datetime,
) -> SyncData:
    """
    Append records missing from the ledger and write it back.

    Whole-ledger writes from two devices can overwrite each other; putting a
    lost record back keeps every admission visible to all readers. Returns
    the ledger as written (or unchanged when nothing was missing).
    """
    present = set(ledger.validations)
    missing = sorted((r for r in set(records) if r not in present), key=lambda r: r.precedence)
    if not missing:
        return ledger
    updated = ledger.model_copy(
        update={"validations": [*ledger.validations, *missing], "last_sync": now}
    )
    shared.save(sync_data_key(ledger.event_id), updated)
    return updated


class ValidationEngine:
    """Decides admission for scanned tickets and appends to the shared ledger."""

    def __init__(
        self,
        shared: DocumentStore,
        rosters: RosterBook,
        local: LocalValidations,
        clock: Clock,
        device_id: str,
    ):
        self.shared = shared
        self.rosters = rosters
        self.local = local
        self.clock = clock
        self.device_id = device_id

    def load_ledger(self, event_id: str) -> SyncData:
        return self.shared.load_or_default(
            sync_data_key(event_id), SyncData, lambda: SyncData(event_id=event_id)
        )

    def validate(
        self,
        attendee_id: str,
        ticket_number: str | None,
        event_id: str,
        validator_label: str,
    ) -> ValidationOutcome:
        """
        Admit a ticket at most once.

        Returns ADMITTED for a first admission, ALREADY_ADMITTED (with the
        original validator label) when the ledger or this device's own
        records already hold the ticket,
        and REJECTED for unknown attendees, attendees without tickets and
        ticket numbers the attendee does not hold.

        Raises ValidationCommitError when the ledger cannot be read or
        written. Nothing is applied locally if the ledger write failed.
        """
        attendee = self.rosters.find(event_id, attendee_id)
        if attendee is None:
            return self._rejected(attendee_id, ticket_number, "Unknown ticket")
        if not attendee.has_ticket:
            return self._rejected(attendee_id, ticket_number, "No ticket issued")

        ticket = ticket_number or attendee.primary_ticket
        if ticket not in attendee.ticket_numbers:
            return self._rejected(attendee_id, ticket_number, "Ticket number does not match attendee")

        try:
            ledger = self.load_ledger(event_id)
        except StorageError as e:
            raise ValidationCommitError(f"Could not read validation ledger: {e}") from e

        # This device's own admissions count even when the ledger lost them
        own = [r for r in self.local.records(event_id) if r.key == (attendee_id, ticket)]
        existing = canonical_record([*ledger.records_for(attendee_id, ticket), *own])
        if existing is not None:
            if any(r not in ledger.validations for r in own):
                logger.warning(f"Ledger for {event_id} lost the admission of {ticket}, publishing it again")
                try:
                    republish(self.shared, ledger, own, self.clock.now())
                except StorageError as e:
                    logger.warning(f"Could not republish admission of {ticket}: {e}")
            logger.info(
                f"Ticket {ticket} already admitted by {existing.validated_by} "
                f"at {existing.validated_at.isoformat()}"
            )
            return self._outcome(ValidationStatus.ALREADY_ADMITTED, existing)

        now = self.clock.now()
        record = ValidationRecord(
            attendee_id=attendee_id,
            ticket_number=ticket,
            validated_at=now,
            validated_by=validator_label,
            device_id=self.device_id,
            event_id=event_id,
        )
        published = merge_by_email(ledger.attendees, [a for a in self.rosters.get(event_id) if a.has_ticket])
        updated = ledger.model_copy(
            update={
                "validations": [*ledger.validations, record],
                "attendees": [*ledger.attendees, *published.added],
                "last_sync": now,
            }
        )
        try:
            self.shared.save(sync_data_key(event_id), updated)
        except StorageError as e:
            raise ValidationCommitError(f"Could not record validation: {e}") from e

        try:
            reread = self.load_ledger(event_id)
        except StorageError as e:
            logger.warning(f"Could not re-read ledger after validating {ticket}: {e}")
            reread = updated
        if record not in reread.validations:
            # Another device overwrote the ledger between our read and write
            logger.warning(f"Validation of {ticket} was overwritten, publishing it again")
            try:
                reread = republish(self.shared, reread, [record], now)
            except StorageError as e:
                raise ValidationCommitError(f"Could not record validation: {e}") from e
        records = reread.records_for(attendee_id, ticket)
        canonical = canonical_record(records)

        self.local.add(event_id, [record, *records])
        validated = apply_validations(attendee, self.local.records(event_id))
        try:
            self.rosters.put(event_id, validated)
        except StorageError as e:
            raise ValidationCommitError(
                f"Validation recorded but local roster could not be saved: {e}",
                ledger_committed=True,
            ) from e

        if canonical != record:
            logger.warning(
                f"Concurrent admission of {ticket}: {canonical.validated_by} on "
                f"{canonical.device_id} takes precedence over this device"
            )
            return self._outcome(ValidationStatus.ALREADY_ADMITTED, canonical)

        logger.info(f"Admitted {attendee.name} with ticket {ticket} ({validator_label})")
        return self._outcome(ValidationStatus.ADMITTED, record)

    def _outcome(self, status: ValidationStatus, record: ValidationRecord) -> ValidationOutcome:
        return ValidationOutcome(
            status=status,
            attendee_id=record.attendee_id,
            ticket_number=record.ticket_number,
            validated_by=record.validated_by,
            validated_at=record.validated_at,
        )

    def _rejected(self, attendee_id: str, ticket_number: str | None, reason: str) -> ValidationOutcome:
        logger.info(f"Rejected scan of {attendee_id}: {reason}")
        return ValidationOutcome(
            status=ValidationStatus.REJECTED,
            attendee_id=attendee_id,
            ticket_number=ticket_number,
            reason=reason,
        )
