from doorcheck.models.attendee import Attendee
from doorcheck.models.bundle import SharedEvent, ShareBundle
from doorcheck.models.event import Event, EventDetails, EventSettings, EventUpdate
from doorcheck.models.store_entry import StoreEntry
from doorcheck.models.validation import (
    SyncData,
    ValidationOutcome,
    ValidationRecord,
    ValidationStatus,
    canonical_record,
    canonical_records,
)

__all__ = [
    "Attendee",
    "Event",
    "EventDetails",
    "EventSettings",
    "EventUpdate",
    "ShareBundle",
    "SharedEvent",
    "StoreEntry",
    "SyncData",
    "ValidationOutcome",
    "ValidationRecord",
    "ValidationStatus",
    "canonical_record",
    "canonical_records",
]
