"""Shared test fixtures."""

from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlmodel import SQLModel, create_engine
from sqlmodel.pool import StaticPool

from doorcheck.core.clock import ManualClock
from doorcheck.core.database import get_desk
from doorcheck.core.scheduler import stop_auto_sync
from doorcheck.core.storage import DocumentStore, SqlKeyValueStore
from doorcheck.errors import StorageError
from doorcheck.main import app
from doorcheck.models import Attendee, Event, EventDetails
from doorcheck.services.desk import TicketDesk

ROSTER_CSV = """First Name,Last Name,Email,Grade,How many tickets?,Guest Name,Guest School
Ada,Lovelace,ada@example.com,12,2,Charles Babbage,Cambridge
Alan,Turing,alan@example.com,11,1,,
Grace,Hopper,grace@example.com,12,,,
"""

DEVICE_A = "device_1777658400000_aaaaaaaaa"
DEVICE_B = "device_1777658400000_bbbbbbbbb"


def make_engine():
    """Create an in-memory SQLite database with the store table."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    return engine


@pytest.fixture(name="engine")
def engine_fixture():
    engine = make_engine()
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="store")
def store_fixture(engine) -> SqlKeyValueStore:
    return SqlKeyValueStore(engine)


@pytest.fixture(name="documents")
def documents_fixture(store: SqlKeyValueStore) -> DocumentStore:
    return DocumentStore(store)


@pytest.fixture(name="clock")
def clock_fixture() -> ManualClock:
    return ManualClock()


@pytest.fixture(name="shared_store")
def shared_store_fixture() -> SqlKeyValueStore:
    """The store every scanning device reads and writes ledgers through."""
    return SqlKeyValueStore(make_engine())


@pytest.fixture(name="desk_a")
def desk_a_fixture(shared_store: SqlKeyValueStore, clock: ManualClock) -> TicketDesk:
    """First device, with its own local store."""
    return TicketDesk(SqlKeyValueStore(make_engine()), shared_store, clock, DEVICE_A)


@pytest.fixture(name="desk_b")
def desk_b_fixture(shared_store: SqlKeyValueStore, clock: ManualClock) -> TicketDesk:
    """Second device, sharing only the ledger store with the first."""
    return TicketDesk(SqlKeyValueStore(make_engine()), shared_store, clock, DEVICE_B)


@pytest.fixture(name="sample_event")
def sample_event_fixture(desk_a: TicketDesk) -> Event:
    return desk_a.create_event(
        EventDetails(name="Spring Formal", date=date(2026, 5, 1), time="19:00", location="Gym")
    )


@pytest.fixture(name="ticketed")
def ticketed_fixture(desk_a: TicketDesk, sample_event: Event) -> list[Attendee]:
    """Import the sample roster on device A and issue everyone's tickets."""
    desk_a.import_roster_csv(sample_event.id, ROSTER_CSV)
    return [desk_a.issue_ticket(sample_event.id, a.id) for a in desk_a.attendees(sample_event.id)]


@pytest.fixture(name="two_devices")
def two_devices_fixture(
    desk_a: TicketDesk, desk_b: TicketDesk, sample_event: Event, ticketed: list[Attendee]
) -> tuple[TicketDesk, TicketDesk]:
    """Device B loads the event shared by device A."""
    desk_b.load_shared_event(desk_a.share_event(sample_event.id))
    return desk_a, desk_b


@pytest.fixture(name="client")
def client_fixture(desk_a: TicketDesk):
    """Create a test client backed by device A."""

    def get_desk_override():
        return desk_a

    app.dependency_overrides[get_desk] = get_desk_override
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
    stop_auto_sync()


class FlakyStore:
    """KeyValueStore wrapper that fails on demand."""

    def __init__(self, inner):
        self.inner = inner
        self.fail_reads = False
        self.fail_writes = False

    def get(self, key: str) -> bytes | None:
        if self.fail_reads:
            raise StorageError("read", key, OSError("store unavailable"))
        return self.inner.get(key)

    def set(self, key: str, value: bytes) -> None:
        if self.fail_writes:
            raise StorageError("write", key, OSError("store unavailable"))
        self.inner.set(key, value)

    def remove(self, key: str) -> None:
        if self.fail_writes:
            raise StorageError("remove", key, OSError("store unavailable"))
        self.inner.remove(key)


@pytest.fixture(name="roster_csv")
def roster_csv_fixture() -> str:
    return ROSTER_CSV


@pytest.fixture(name="flaky_desk")
def flaky_desk_fixture(shared_store: SqlKeyValueStore, clock: ManualClock) -> TicketDesk:
    """A device whose local and shared stores are FlakyStores."""
    return TicketDesk(
        FlakyStore(SqlKeyValueStore(make_engine())), FlakyStore(shared_store), clock, DEVICE_A
    )
