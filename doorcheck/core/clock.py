"""Time sources.

Ticket numbers, share codes, device ids and validation timestamps are all
derived from the clock, so it is injected everywhere instead of calling
``datetime.now`` directly. Tests use ManualClock to control time.
"""
from datetime import UTC, datetime, timedelta


class Clock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(UTC)

    def millis(self) -> int:
        return int(self.now().timestamp() * 1000)


class ManualClock(Clock):
    """A clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self._now = start or datetime(2026, 5, 1, 18, 0, tzinfo=UTC)

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: float = 1.0) -> datetime:
        self._now += timedelta(seconds=seconds)
        return self._now

    def set(self, when: datetime) -> None:
        self._now = when
