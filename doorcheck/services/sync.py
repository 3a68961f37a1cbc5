"""Reconciliation of the shared validation ledger into local state."""
import logging
from datetime import datetime

from doorcheck.core.clock import Clock
from doorcheck.core.storage import DocumentStore, sync_data_key
from doorcheck.models import SyncData
from doorcheck.services.roster import RosterBook
from doorcheck.services.validation import LocalValidations, apply_validations, republish

logger = logging.getLogger(__name__)


class SyncCoordinator:
    """Merges the shared ledger of an event into this device's view.

    The merge is a set union of validation records; nothing local is ever
    removed or overwritten by a remote record. Attendee flags are derived
    from the canonical record of their tickets, so applying snapshots in any
    order, any number of times, gives the same result.
    """

    def __init__(
        self,
        shared: DocumentStore,
        rosters: RosterBook,
        local: LocalValidations,
        clock: Clock,
    ):
        self.shared = shared
        self.rosters = rosters
        self.local = local
        self.clock = clock
        self.last_reconciled: dict[str, datetime] = {}

    def reconcile(self, event_id: str) -> SyncData | None:
        """
        Pull the shared ledger of an event and merge it.

        Returns None when the event has no ledger yet. Store failures
        propagate before any local state is touched.
        """
        snapshot = self.shared.load(sync_data_key(event_id), SyncData)
        if snapshot is None:
            logger.debug(f"No shared ledger for {event_id} yet")
            return None

        self.apply_snapshot(event_id, snapshot)

        # Local admissions a concurrent write dropped from the ledger
        snapshot = republish(self.shared, snapshot, self.local.records(event_id), self.clock.now())
        self.last_reconciled[event_id] = self.clock.now()
        return snapshot

    def apply_snapshot(self, event_id: str, snapshot: SyncData) -> int:
        """Merge one ledger snapshot into local state. Returns the number of new records."""
        adopted = self.local.add(event_id, snapshot.validations)

        roster = self.rosters.get(event_id)
        known_emails = {a.email_key for a in roster}
        known_ids = {a.id for a in roster}
        newcomers = [
            a
            for a in snapshot.attendees
            if a.has_ticket and a.email_key not in known_emails and a.id not in known_ids
        ]

        records = self.local.records(event_id)
        merged = [apply_validations(a, records) for a in [*roster, *newcomers]]
        changed = newcomers or any(new is not old for new, old in zip(merged, roster))
        if changed:
            self.rosters.commit(event_id, merged)

        if adopted or newcomers:
            logger.info(
                f"Reconciled {event_id}: {len(adopted)} new validation(s), "
                f"{len(newcomers)} new attendee(s)"
            )
        return len(adopted)
