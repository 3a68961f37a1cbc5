"""Durable key/value store and the JSON document layer on top of it.

The store only supports whole-value get/set/remove; there are no
transactions and no multi-key writes. Every ledger or roster change is a
read-modify-write of one whole document. Known scaling limit: once several
devices write the same key through a real network store, concurrent writers
can lose each other's updates.

Read policy for documents: a value that cannot be decoded is logged and
treated as absent, so callers fall back to a safe default (empty roster,
empty settings). Failures of the store itself are raised as StorageError.
"""
import json
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Protocol, TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from doorcheck.errors import StorageError
from doorcheck.models import StoreEntry

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

DEVICE_ID_KEY = "device_id"
EVENT_SETTINGS_KEY = "event_settings"


def roster_key(event_id: str) -> str:
    return f"roster:{event_id}"


def sync_data_key(event_id: str) -> str:
    return f"sync_data:{event_id}"


def shared_event_key(code: str) -> str:
    return f"shared_event:{code}"


class KeyValueStore(Protocol):
    """Narrow interface the core persists through."""

    def get(self, key: str) -> bytes | None: ...

    def set(self, key: str, value: bytes) -> None: ...

    def remove(self, key: str) -> None: ...


class SqlKeyValueStore:
    """KeyValueStore backed by the StoreEntry table.

    Each call opens its own session, so a failed write never leaves a
    half-finished unit of work behind for the next caller.
    """

    def __init__(self, engine):
        self.engine = engine

    def get(self, key: str) -> bytes | None:
        try:
            with Session(self.engine) as session:
                entry = session.get(StoreEntry, key)
                return entry.value if entry else None
        except SQLAlchemyError as e:
            raise StorageError("read", key, e) from e

    def set(self, key: str, value: bytes) -> None:
        try:
            with Session(self.engine) as session:
                entry = session.get(StoreEntry, key)
                if entry:
                    entry.value = value
                    entry.updated_at = datetime.now(UTC)
                else:
                    entry = StoreEntry(key=key, value=value)
                session.add(entry)
                session.commit()
        except SQLAlchemyError as e:
            raise StorageError("write", key, e) from e

    def remove(self, key: str) -> None:
        try:
            with Session(self.engine) as session:
                entry = session.get(StoreEntry, key)
                if entry:
                    session.delete(entry)
                    session.commit()
        except SQLAlchemyError as e:
            raise StorageError("remove", key, e) from e


class DocumentStore:
    """Typed JSON documents over a KeyValueStore."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    def load(self, key: str, model: type[M]) -> M | None:
        """Load a document, or None if it is absent or unreadable."""
        raw = self.store.get(key)
        if raw is None:
            return None
        try:
            return model.model_validate_json(raw)
        except (ValidationError, ValueError) as e:
            logger.error(f"Discarding corrupt document {key!r}: {e}")
            logger.debug(f"Corrupt content of {key!r}: {raw[:200]!r}")
            return None

    def load_or_default(self, key: str, model: type[M], default: Callable[[], M]) -> M:
        document = self.load(key, model)
        return document if document is not None else default()

    def load_list(self, key: str, model: type[M]) -> list[M]:
        """Load a JSON array of documents; corrupt content yields an empty list."""
        raw = self.store.get(key)
        if raw is None:
            return []
        try:
            items = json.loads(raw)
            if not isinstance(items, list):
                raise ValueError(f"expected a JSON array, got {type(items).__name__}")
            return [model.model_validate(item) for item in items]
        except (ValidationError, ValueError) as e:
            logger.error(f"Discarding corrupt document {key!r}: {e}")
            logger.debug(f"Corrupt content of {key!r}: {raw[:200]!r}")
            return []

    def save(self, key: str, document: BaseModel) -> None:
        self.store.set(key, document.model_dump_json().encode("utf-8"))

    def save_list(self, key: str, documents: list[BaseModel]) -> None:
        payload = json.dumps([d.model_dump(mode="json") for d in documents])
        self.store.set(key, payload.encode("utf-8"))

    def remove(self, key: str) -> None:
        self.store.remove(key)
