"""Database configuration for the SQLite-backed durable store.

The store is a single key/value table (see ``doorcheck.models.StoreEntry``).
Every document the app keeps (device identity, event settings, rosters,
shared ledgers and share bundles) is one row holding a whole JSON blob.

SQLite Configuration Choices:
    - **WAL (Write-Ahead Logging)**: Readers do not block on a writer.

    - **check_same_thread=False**: Routes on the event loop and routes in
      the threadpool share connections.
"""

from functools import lru_cache

from sqlalchemy import event as sa_event
from sqlmodel import SQLModel, create_engine

from doorcheck.core.config import settings
from doorcheck.core.storage import SqlKeyValueStore
from doorcheck.services.desk import TicketDesk

connect_args = {"check_same_thread": False}

engine = create_engine(
    settings.database_url,
    connect_args=connect_args,
    echo=settings.debug,  # Log SQL statements when DEBUG=true
)


@sa_event.listens_for(engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    """Journal mode is set per connection."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


def create_db_and_tables(bind=None):
    """Create all database tables."""
    SQLModel.metadata.create_all(bind or engine)


@lru_cache
def get_desk() -> TicketDesk:
    """Dependency: this installation's TicketDesk, backed by the database."""
    return TicketDesk(SqlKeyValueStore(engine))
