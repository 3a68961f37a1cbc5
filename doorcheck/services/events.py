"""Event catalog: the installation's events and its current event."""
import logging
import re

from doorcheck.core.clock import Clock
from doorcheck.core.storage import EVENT_SETTINGS_KEY, DocumentStore
from doorcheck.errors import UnknownEventError
from doorcheck.models import Event, EventDetails, EventSettings, EventUpdate

logger = logging.getLogger(__name__)

DATA_URL_PATTERN = re.compile(r"^data:([^;]+);base64,(.+)$", re.DOTALL)


def _clean_image(event: Event) -> Event:
    """Drop base64 image URLs that are not well-formed data URLs."""
    if event.image_url and event.image_url.startswith("data:"):
        if not DATA_URL_PATTERN.match(event.image_url):
            logger.warning(f"Invalid base64 image on event {event.id}, removing image")
            return event.model_copy(update={"image_url": None})
    return event


class EventCatalog:
    """Owns the persisted EventSettings document.

    Every write goes through ``_save``, which enforces that the current
    event id (when set) names an event in the list.
    """

    def __init__(self, documents: DocumentStore, clock: Clock):
        self.documents = documents
        self.clock = clock
        self._settings: EventSettings | None = None

    @property
    def settings(self) -> EventSettings:
        if self._settings is None:
            self._settings = self._load()
        return self._settings

    def _load(self) -> EventSettings:
        loaded = self.documents.load_or_default(EVENT_SETTINGS_KEY, EventSettings, EventSettings)
        ids = {e.id for e in loaded.events}
        if loaded.current_event_id not in ids:
            fallback = loaded.events[0].id if loaded.events else None
            if loaded.current_event_id is not None:
                logger.warning(
                    f"Current event {loaded.current_event_id} missing from event list, "
                    f"falling back to {fallback}"
                )
            loaded = loaded.model_copy(update={"current_event_id": fallback})
        return loaded

    def _save(self, new_settings: EventSettings) -> None:
        ids = [e.id for e in new_settings.events]
        if len(ids) != len(set(ids)):
            raise ValueError("Duplicate event ids in event list")
        if new_settings.current_event_id is not None and new_settings.current_event_id not in ids:
            raise ValueError(
                f"Current event {new_settings.current_event_id} is not in the event list"
            )
        cleaned = new_settings.model_copy(
            update={"events": [_clean_image(e) for e in new_settings.events]}
        )
        self.documents.save(EVENT_SETTINGS_KEY, cleaned)
        self._settings = cleaned

    @property
    def events(self) -> list[Event]:
        return list(self.settings.events)

    @property
    def current_event(self) -> Event | None:
        return self.settings.current_event

    def get(self, event_id: str) -> Event:
        event = self.settings.get(event_id)
        if event is None:
            raise UnknownEventError(f"Event {event_id} not found")
        return event

    def create(self, details: EventDetails) -> Event:
        """Create an event and make it current."""
        now = self.clock.now()
        event = Event(**details.model_dump(), created_at=now, updated_at=now)
        self._save(
            EventSettings(
                current_event_id=event.id,
                events=[*self.settings.events, event],
            )
        )
        logger.info(f"Created event {event.name!r} ({event.id})")
        return self.get(event.id)

    def update(self, event_id: str, changes: EventUpdate) -> Event:
        event = self.get(event_id)
        updated = event.model_copy(
            update={**changes.model_dump(exclude_unset=True), "updated_at": self.clock.now()}
        )
        # Re-validate the merged fields (model_copy skips validation)
        updated = Event.model_validate(updated.model_dump())
        self._save(
            self.settings.model_copy(
                update={"events": [updated if e.id == event_id else e for e in self.settings.events]}
            )
        )
        return self.get(event_id)

    def select(self, event_id: str) -> Event:
        event = self.get(event_id)
        self._save(self.settings.model_copy(update={"current_event_id": event.id}))
        return event

    def delete(self, event_id: str) -> None:
        """Delete an event. If it was current, the first remaining event becomes current."""
        self.get(event_id)
        remaining = [e for e in self.settings.events if e.id != event_id]
        current = self.settings.current_event_id
        if current == event_id:
            current = remaining[0].id if remaining else None
        self._save(EventSettings(current_event_id=current, events=remaining))
        logger.info(f"Deleted event {event_id}, current event is now {current}")

    def adopt(self, event: Event) -> bool:
        """
        Add an event received from another device.

        Returns False (and keeps the local copy) when the id is already known.
        The adopted event becomes current if there is no current event.
        """
        if self.settings.get(event.id) is not None:
            return False
        current = self.settings.current_event_id or event.id
        self._save(EventSettings(current_event_id=current, events=[*self.settings.events, event]))
        logger.info(f"Adopted shared event {event.name!r} ({event.id})")
        return True
