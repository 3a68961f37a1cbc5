"""Event models.

An installation keeps a list of events and one "current" event, stored
together as a single settings document. The current event is referenced
by id so it can never drift from the copy in the list.
"""

import datetime as dt
from uuid import uuid4

from pydantic import BaseModel, Field

TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


def new_event_id() -> str:
    return f"event_{uuid4().hex}"


class EventDetails(BaseModel):
    """Organizer-editable fields of an event."""
    name: str = Field(min_length=1)
    date: dt.date
    time: str = Field(pattern=TIME_PATTERN)  # 24h HH:MM
    location: str | None = None
    description: str | None = None
    instructions: str | None = None
    directions: str | None = None
    image_url: str | None = None  # http(s) URL or base64 data URL


class EventUpdate(BaseModel):
    """Partial update of an event's details. Unset fields are left alone."""
    name: str | None = Field(default=None, min_length=1)
    date: dt.date | None = None
    time: str | None = Field(default=None, pattern=TIME_PATTERN)
    location: str | None = None
    description: str | None = None
    instructions: str | None = None
    directions: str | None = None
    image_url: str | None = None


class Event(EventDetails):
    """An event tickets are issued and validated for.

    Attributes:
        id: Generated at creation and never reused.
        created_at: When the organizer created the event.
        updated_at: Last settings edit.
    """
    id: str = Field(default_factory=new_event_id)
    created_at: dt.datetime = Field(default_factory=lambda: dt.datetime.now(dt.UTC))
    updated_at: dt.datetime = Field(default_factory=lambda: dt.datetime.now(dt.UTC))


class EventSettings(BaseModel):
    """Persisted event list plus the id of the current event."""
    current_event_id: str | None = None
    events: list[Event] = Field(default_factory=list)

    def get(self, event_id: str) -> Event | None:
        return next((e for e in self.events if e.id == event_id), None)

    @property
    def current_event(self) -> Event | None:
        if self.current_event_id is None:
            return None
        return self.get(self.current_event_id)
