"""Key/value row backing the durable store.

The core treats persistence as an opaque key/value store with whole-value
get/set/remove. This table is the SQLite rendition of that store: one row
per document, no partial updates.
"""

from datetime import UTC, datetime

from sqlmodel import Field, SQLModel


class StoreEntry(SQLModel, table=True):
    """One stored document.

    Attributes:
        key: Logical document key, e.g. ``roster:<event_id>``.
        value: Serialized document bytes (UTF-8 JSON for every key the app
            writes, but the store itself does not care).
        updated_at: When the value was last written.
    """
    key: str = Field(primary_key=True)
    value: bytes
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
