"""Share bundle schema.

A share code resolves to one immutable ShareBundle. The ``format`` tag and
``version`` let ``load`` refuse bundles written by an incompatible build
instead of failing somewhere deep in field access.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from doorcheck.models.attendee import Attendee
from doorcheck.models.event import Event

SHARE_FORMAT = "doorcheck.share"
SHARE_VERSION = 1


class ShareBundle(BaseModel):
    """Snapshot of an event and its ticketed attendees at share time."""
    format: Literal["doorcheck.share"] = SHARE_FORMAT
    version: int = SHARE_VERSION
    event: Event
    attendees: list[Attendee] = Field(default_factory=list)
    device_id: str
    created_at: datetime


class SharedEvent(BaseModel):
    """What a device gets back from loading a share code."""
    code: str
    event: Event
    attendees: list[Attendee]
    shared_by: str
    shared_at: datetime
