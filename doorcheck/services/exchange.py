"""Share codes: hand an event and its ticketed attendees to another device."""
import logging

from pydantic import ValidationError

from doorcheck.core.clock import Clock
from doorcheck.core.config import settings
from doorcheck.core.identity import to_base36
from doorcheck.core.storage import DocumentStore, shared_event_key
from doorcheck.errors import LoadError, ShareError, StorageError
from doorcheck.models import Attendee, Event, SharedEvent, ShareBundle
from doorcheck.models.bundle import SHARE_FORMAT, SHARE_VERSION

logger = logging.getLogger(__name__)


def canonical_code(code: str) -> str:
    """Share codes are case-insensitive and ignore surrounding whitespace."""
    return code.strip().upper()


def share_link(base_url: str, code: str) -> str:
    return f"{base_url.rstrip('/')}/shared/{canonical_code(code)}"


class ShareExchange:
    """Stores immutable event bundles under short codes in the shared store."""

    def __init__(self, shared: DocumentStore, clock: Clock, device_id: str, prefix: str | None = None):
        self.shared = shared
        self.clock = clock
        self.device_id = device_id
        self.prefix = (prefix or settings.share_code_prefix).upper()

    def new_code(self) -> str:
        """``<prefix><base-36 epoch millis>``, bumped until no bundle uses it."""
        millis = self.clock.millis()
        while True:
            code = f"{self.prefix}{to_base36(millis).upper()}"
            if self.shared.store.get(shared_event_key(code)) is None:
                return code
            millis += 1

    def share(self, event: Event, attendees: list[Attendee]) -> str:
        """
        Store a snapshot of the event and its ticketed attendees.

        Returns the share code. Validations made after this call are not
        part of the bundle.
        """
        bundle = ShareBundle(
            event=event,
            attendees=[a for a in attendees if a.has_ticket],
            device_id=self.device_id,
            created_at=self.clock.now(),
        )
        try:
            code = self.new_code()
            self.shared.save(shared_event_key(code), bundle)
        except StorageError as e:
            raise ShareError(f"Could not store shared event {event.id}: {e}") from e
        logger.info(f"Shared event {event.id} as {code} with {len(bundle.attendees)} attendee(s)")
        return code

    def load(self, code: str) -> SharedEvent:
        code = canonical_code(code)
        raw = self.shared.store.get(shared_event_key(code))
        if raw is None:
            raise LoadError("not_found", f"No shared event found for code {code}")

        try:
            bundle = ShareBundle.model_validate_json(raw)
        except (ValidationError, ValueError) as e:
            logger.warning(f"Unreadable bundle under {code}: {e}")
            raise LoadError(
                "unsupported",
                f"Shared event {code} was written in a format this version cannot read "
                f"(expected {SHARE_FORMAT} v{SHARE_VERSION})",
            ) from e
        if bundle.version != SHARE_VERSION:
            raise LoadError(
                "unsupported",
                f"Shared event {code} has bundle version {bundle.version}, "
                f"expected {SHARE_VERSION}",
            )

        return SharedEvent(
            code=code,
            event=bundle.event,
            attendees=bundle.attendees,
            shared_by=bundle.device_id,
            shared_at=bundle.created_at,
        )
