"""Shared fixtures: a fresh in-memory store per test."""

from datetime import datetime
from unittest.mock import MagicMock

import pytest

from ekstore.adapters.memory_store import MemoryDatabase, MemoryEventStore
from ekstore.config import Config
from ekstore.store import EventStore

NOW = datetime(2025, 1, 15, 9, 30)


@pytest.fixture
def database():
    return MemoryDatabase.with_defaults()


@pytest.fixture
def backend(database):
    return MemoryEventStore(database)


@pytest.fixture
def config():
    return Config(backend="memory")


@pytest.fixture
def clock():
    return MagicMock(return_value=NOW)


@pytest.fixture
def store(backend, config, clock):
    store = EventStore(backend, config, clock)
    yield store
    store.close()


@pytest.fixture
def event_calendar(database):
    return database.calendars[database.default_event_calendar_id]


@pytest.fixture
def reminder_calendar(database):
    return database.calendars[database.default_reminder_calendar_id]


@pytest.fixture
def reader(database):
    """An independent read path over the same committed state."""
    reader = EventStore(MemoryEventStore(database), Config(backend="memory"))
    yield reader
    reader.close()
