"""TicketDesk: one device's ticketing state and the operations on it.

Everything a device knows lives in a TicketDesk instance: its identity,
event catalog, rosters and the validation records seen so far. The HTTP
layer gets the desk through a dependency; tests build as many desks as they
need devices.

Two stores are involved. The local store holds what belongs to this
installation (device id, event settings, rosters). The shared store holds
what every scanning device of an event reads and writes: validation
ledgers and share bundles. A single store can play both roles.
"""
import logging
import threading
from datetime import datetime

import httpx
from pydantic import BaseModel

from doorcheck.core import scheduler
from doorcheck.core.clock import Clock
from doorcheck.core.identity import get_or_create_device_id
from doorcheck.core.storage import DocumentStore, KeyValueStore
from doorcheck.models import (
    Attendee,
    Event,
    EventDetails,
    EventUpdate,
    SyncData,
    ValidationOutcome,
    ValidationRecord,
    ValidationStatus,
)
from doorcheck.roster.parser import parse_roster
from doorcheck.roster.sheets import fetch_roster_csv
from doorcheck.services.events import EventCatalog
from doorcheck.services.exchange import ShareExchange
from doorcheck.services.roster import RosterBook
from doorcheck.services.sync import SyncCoordinator
from doorcheck.services.validation import LocalValidations, ValidationEngine
from doorcheck.tickets.issuer import TicketIssuer
from doorcheck.tickets.payload import InvalidPayloadError, WalletTicket, build_wallet_ticket, decode_payload

logger = logging.getLogger(__name__)


class ImportSummary(BaseModel):
    accepted: int
    added: int
    duplicates: int
    skipped: int
    skipped_rows: list[int] = []


class LoadSummary(BaseModel):
    code: str
    event: Event
    event_added: bool
    attendees_added: int
    duplicates: int
    shared_by: str
    shared_at: datetime


class EventExport(BaseModel):
    event: Event
    attendees: list[Attendee]
    validations: list[ValidationRecord]
    exported_at: datetime
    exported_by: str


class TicketDesk:
    def __init__(
        self,
        local_store: KeyValueStore,
        shared_store: KeyValueStore | None = None,
        clock: Clock | None = None,
        device_id: str | None = None,
    ):
        self.clock = clock or Clock()
        self.local_documents = DocumentStore(local_store)
        self.shared_documents = DocumentStore(shared_store or local_store)
        self.device_id = device_id or get_or_create_device_id(local_store, self.clock)

        self.catalog = EventCatalog(self.local_documents, self.clock)
        self.rosters = RosterBook(self.local_documents)
        self.issuer = TicketIssuer(self.clock)
        self.validations = LocalValidations()
        self.engine = ValidationEngine(
            self.shared_documents, self.rosters, self.validations, self.clock, self.device_id
        )
        self.coordinator = SyncCoordinator(
            self.shared_documents, self.rosters, self.validations, self.clock
        )
        self.exchange = ShareExchange(self.shared_documents, self.clock, self.device_id)
        # Guards the in-memory catalog and rosters shared by scans, sync ticks
        # and threadpool routes
        self.lock = threading.RLock()

    @property
    def scanner_label(self) -> str:
        return f"Scanner ({self.device_id[-8:]})"

    # Events

    def list_events(self) -> list[Event]:
        with self.lock:
            return self.catalog.events

    def current_event(self) -> Event | None:
        with self.lock:
            return self.catalog.current_event

    def get_event(self, event_id: str) -> Event:
        with self.lock:
            return self.catalog.get(event_id)

    def create_event(self, details: EventDetails) -> Event:
        with self.lock:
            return self.catalog.create(details)

    def update_event(self, event_id: str, changes: EventUpdate) -> Event:
        with self.lock:
            return self.catalog.update(event_id, changes)

    def select_event(self, event_id: str) -> Event:
        with self.lock:
            return self.catalog.select(event_id)

    def delete_event(self, event_id: str) -> None:
        with self.lock:
            self.catalog.delete(event_id)
            self.rosters.reset(event_id)

    # Roster

    def attendees(self, event_id: str) -> list[Attendee]:
        with self.lock:
            self.catalog.get(event_id)
            return self.rosters.get(event_id)

    def import_roster_csv(self, event_id: str, raw_table: str) -> ImportSummary:
        """Parse a roster table and merge it into the event roster by email."""
        parsed = parse_roster(raw_table)
        with self.lock:
            self.catalog.get(event_id)
            merged = self.rosters.merge(event_id, parsed.attendees)
        logger.info(
            f"Imported roster into {event_id}: {parsed.accepted} parsed, {len(merged.added)} added, "
            f"{merged.duplicates} duplicate(s), {parsed.skipped} skipped"
        )
        return ImportSummary(
            accepted=parsed.accepted,
            added=len(merged.added),
            duplicates=merged.duplicates,
            skipped=parsed.skipped,
            skipped_rows=parsed.skipped_rows,
        )

    def import_roster_from_sheet(
        self, event_id: str, sheet_url: str, client: httpx.Client | None = None
    ) -> ImportSummary:
        """Fetch a sheet and import it. The fetch runs without holding the desk lock."""
        with self.lock:
            self.catalog.get(event_id)
        return self.import_roster_csv(event_id, fetch_roster_csv(sheet_url, client=client))

    def issue_ticket(self, event_id: str, attendee_id: str) -> Attendee:
        with self.lock:
            self.catalog.get(event_id)
            issued = self.issuer.issue(self.rosters.require(event_id, attendee_id))
            self.rosters.put(event_id, issued)
            return issued

    def reset_roster(self, event_id: str) -> None:
        with self.lock:
            self.catalog.get(event_id)
            self.rosters.reset(event_id)

    def wallet_ticket(self, event_id: str, attendee_id: str) -> WalletTicket:
        with self.lock:
            event = self.catalog.get(event_id)
            attendee = self.rosters.require(event_id, attendee_id)
        return build_wallet_ticket(attendee, event)

    # Scanning

    def validate(
        self,
        event_id: str,
        attendee_id: str,
        ticket_number: str | None = None,
        validator_label: str | None = None,
    ) -> ValidationOutcome:
        with self.lock:
            self.catalog.get(event_id)
            return self.engine.validate(
                attendee_id, ticket_number, event_id, validator_label or self.scanner_label
            )

    def scan(self, event_id: str, payload_text: str, validator_label: str | None = None) -> ValidationOutcome:
        """Validate the text read from a ticket QR code."""
        try:
            payload = decode_payload(payload_text)
        except InvalidPayloadError as e:
            logger.info(f"Rejected scan: {e}")
            return ValidationOutcome(
                status=ValidationStatus.REJECTED, attendee_id="", reason="Invalid QR code"
            )
        return self.validate(event_id, payload.attendee_id, payload.ticket_number, validator_label)

    def reconcile(self, event_id: str) -> SyncData | None:
        with self.lock:
            return self.coordinator.reconcile(event_id)

    def sync_tick(self, event_id: str) -> None:
        """Scheduled reconcile. Failures are logged and retried on the next tick."""
        try:
            self.reconcile(event_id)
        except Exception as e:
            logger.error(f"Background sync of {event_id} failed: {e}")

    def start_scanning(self, event_id: str, interval_seconds: int | None = None) -> None:
        """Enter the scanning context for an event, replacing any previous one."""
        self.catalog.get(event_id)
        self.sync_tick(event_id)
        scheduler.start_auto_sync(event_id, self.sync_tick, interval_seconds)

    def stop_scanning(self) -> bool:
        return scheduler.stop_auto_sync()

    # Sharing

    def share_event(self, event_id: str) -> str:
        with self.lock:
            event = self.catalog.get(event_id)
            attendees = self.rosters.get(event_id)
        return self.exchange.share(event, attendees)

    def load_shared_event(self, code: str) -> LoadSummary:
        """
        Bring a shared event onto this device.

        The event is added when its id is unknown here (a local copy is kept
        as is) and the bundle's attendees are merged into the roster by email.
        """
        shared = self.exchange.load(code)
        with self.lock:
            event_added = self.catalog.adopt(shared.event)
            merged = self.rosters.merge(shared.event.id, shared.attendees)
        return LoadSummary(
            code=shared.code,
            event=self.catalog.get(shared.event.id),
            event_added=event_added,
            attendees_added=len(merged.added),
            duplicates=merged.duplicates,
            shared_by=shared.shared_by,
            shared_at=shared.shared_at,
        )

    def export_event_data(self, event_id: str) -> EventExport:
        with self.lock:
            event = self.catalog.get(event_id)
            attendees = [a for a in self.rosters.get(event_id) if a.has_ticket]
        return EventExport(
            event=event,
            attendees=attendees,
            validations=self.engine.load_ledger(event_id).validations,
            exported_at=self.clock.now(),
            exported_by=self.device_id,
        )
