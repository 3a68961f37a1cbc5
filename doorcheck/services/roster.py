"""Per-event attendee rosters kept on this device."""
import logging
from dataclasses import dataclass

from doorcheck.core.storage import DocumentStore, roster_key
from doorcheck.errors import UnknownAttendeeError
from doorcheck.models import Attendee

logger = logging.getLogger(__name__)


@dataclass
class MergeResult:
    added: list[Attendee]
    duplicates: int


def merge_by_email(existing: list[Attendee], incoming: list[Attendee]) -> MergeResult:
    """
    Append incoming attendees whose email is not on the roster yet.

    Emails compare case-insensitively. Repeated emails inside the incoming
    batch keep their first occurrence.
    """
    seen = {a.email_key for a in existing}
    added = []
    duplicates = 0
    for attendee in incoming:
        if attendee.email_key in seen:
            duplicates += 1
            continue
        seen.add(attendee.email_key)
        added.append(attendee)
    return MergeResult(added=added, duplicates=duplicates)


class RosterBook:
    """In-memory rosters backed by one document per event.

    Changes are written to the store first and only then become visible in
    memory, so a failed write leaves the previous roster in place.
    """

    def __init__(self, documents: DocumentStore):
        self.documents = documents
        self._rosters: dict[str, list[Attendee]] = {}

    def get(self, event_id: str) -> list[Attendee]:
        if event_id not in self._rosters:
            self._rosters[event_id] = self.documents.load_list(roster_key(event_id), Attendee)
        return list(self._rosters[event_id])

    def find(self, event_id: str, attendee_id: str) -> Attendee | None:
        return next((a for a in self.get(event_id) if a.id == attendee_id), None)

    def require(self, event_id: str, attendee_id: str) -> Attendee:
        attendee = self.find(event_id, attendee_id)
        if attendee is None:
            raise UnknownAttendeeError(f"Attendee {attendee_id} not found in event {event_id}")
        return attendee

    def commit(self, event_id: str, attendees: list[Attendee]) -> None:
        self.documents.save_list(roster_key(event_id), attendees)
        self._rosters[event_id] = list(attendees)

    def put(self, event_id: str, attendee: Attendee) -> None:
        """Replace the attendee with the same id and persist the roster."""
        roster = self.get(event_id)
        self.commit(event_id, [attendee if a.id == attendee.id else a for a in roster])

    def merge(self, event_id: str, incoming: list[Attendee]) -> MergeResult:
        roster = self.get(event_id)
        result = merge_by_email(roster, incoming)
        if result.added:
            self.commit(event_id, roster + result.added)
        logger.info(
            f"Merged roster for {event_id}: {len(result.added)} added, "
            f"{result.duplicates} already present"
        )
        return result

    def reset(self, event_id: str) -> None:
        """Remove every attendee of the event."""
        self.documents.remove(roster_key(event_id))
        self._rosters[event_id] = []
        logger.info(f"Cleared roster for {event_id}")
