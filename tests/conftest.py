"""Shared fixtures for notice-keydates tests."""

from datetime import datetime

import pytest

from notice_keydates.storage import CalendarEventStore, MemoryStorage


# Pinned reference time: a Sunday afternoon in mid-October
NOW = datetime(2025, 10, 19, 14, 0)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = NOW):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def set(self, value: datetime) -> None:
        self.now = value


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_storage():
    return MemoryStorage()


@pytest.fixture
def store(memory_storage, clock):
    with CalendarEventStore(memory_storage, clock=clock) as calendar_store:
        yield calendar_store
