"""End-to-end behaviour of the EventStore surface on the memory backend."""

import sys
from datetime import datetime, timedelta
from unittest.mock import patch

import pytest

from ekstore.adapters.memory_store import MemoryEventStore
from ekstore.config import Config
from ekstore.core.errors import BackendUnavailableError, ValidationError
from ekstore.core.models import CalendarData, EventData, ReminderData
from ekstore.store import EventStore, create_backend, open_store

START = datetime(2025, 1, 15, 9, 0)


class TestOpenStore:
    def test_memory_backend_from_config(self):
        with open_store(Config(backend="memory")) as store:
            assert isinstance(store.session.backend, MemoryEventStore)
            assert not store.closed
        assert store.closed

    def test_explicit_backend_wins(self, backend):
        with open_store(Config(backend="eventkit"), backend=backend) as store:
            assert store.session.backend is backend

    @patch("ekstore.store.load_config")
    def test_loads_config_when_missing(self, mock_load, backend):
        mock_load.return_value = Config(backend="memory", color_precision=2)
        with open_store(backend=backend) as store:
            assert store.config.color_precision == 2
        mock_load.assert_called_once()

    def test_unknown_backend(self):
        with pytest.raises(ValidationError, match="Unknown backend"):
            create_backend("sqlite")

    def test_eventkit_unavailable(self, monkeypatch):
        monkeypatch.setitem(sys.modules, "EventKit", None)
        with pytest.raises(BackendUnavailableError, match="ekstore\\[macos\\]"):
            create_backend("eventkit")


class TestReadStability:
    @pytest.mark.asyncio
    async def test_get_calendar_matches_listing(self, store, database):
        database.add_calendar("Work", entity_types=("event", "reminder"))
        for entity_type in ("event", "reminder"):
            for calendar in await store.get_calendars(entity_type):
                assert await store.get_calendar(calendar.id) == calendar


class TestCalendarRoundTrip:
    @pytest.mark.asyncio
    async def test_save_then_get(self, store):
        data = CalendarData.from_dict({"title": "T", "entityType": "event", "color": {"hex": "#FF0000FF"}})
        calendar_id = await store.save_calendar(data)
        assert calendar_id

        calendar = await store.get_calendar(calendar_id)
        assert calendar.title == "T"
        assert calendar.color.hex == "#FF0000FF"
        assert calendar.color.space.value == "rgb"
        assert calendar.to_dict()["allowedEntityTypes"] == ["event"]

    @pytest.mark.asyncio
    async def test_identifier_is_stable_across_updates(self, store):
        calendar_id = await store.save_calendar(CalendarData(title="T", entity_type="event"))
        updated_id = await store.save_calendar(CalendarData(id=calendar_id, title="T2", entity_type="event"))
        assert updated_id == calendar_id
        assert (await store.get_calendar(calendar_id)).title == "T2"


class TestPredicateFamilies:
    def test_reminder_predicate_with_event_query(self, store, backend):
        with pytest.raises(ValidationError):
            store.get_events_with_predicate(store.create_reminder_predicate())

    def test_event_predicate_with_reminder_query(self, store):
        predicate = store.create_event_predicate(START, START + timedelta(days=1))
        with pytest.raises(ValidationError):
            store.get_reminders_with_predicate(predicate)


class TestCommitBuffering:
    @pytest.mark.asyncio
    async def test_buffered_save_invisible_until_commit(self, store, reader):
        calendar_id = await store.save_calendar(CalendarData(title="Buffered", entity_type="event"), commit=False)
        assert await reader.get_calendar(calendar_id) is None
        assert store.has_pending_changes

        await store.commit()
        assert (await reader.get_calendar(calendar_id)).title == "Buffered"

    @pytest.mark.asyncio
    async def test_reset_discards_buffered_save(self, store, reader):
        calendar_id = await store.save_calendar(CalendarData(title="Buffered", entity_type="event"), commit=False)
        store.reset()
        assert not store.has_pending_changes
        assert await store.get_calendar(calendar_id) is None
        assert await reader.get_calendar(calendar_id) is None

    @pytest.mark.asyncio
    async def test_changes_across_entities_share_one_commit(self, store, reader):
        calendar_id = await store.save_calendar(CalendarData(title="Trip", entity_type="event"), commit=False)
        event_id = await store.save_event(
            EventData(title="Flight", start_date=START, end_date=START + timedelta(hours=3), calendar_id=calendar_id),
            commit=False,
        )
        assert await reader.get_event(event_id) is None

        await store.commit()
        event = await reader.get_event(event_id)
        assert event.calendar_title == "Trip"


class TestNotFound:
    @pytest.mark.asyncio
    async def test_lookups_and_removes(self, store):
        assert await store.get_event("nonexistent-id") is None
        assert await store.remove_calendar("nonexistent-id") is False
        assert await store.remove_event("nonexistent-id") is False
        assert await store.remove_reminder("nonexistent-id") is False
        assert await store.get_source("nonexistent-id") is None


class TestEntityTypeCompatibility:
    def test_reminder_into_event_calendar(self, store, backend, database, event_calendar):
        before = dict(database.reminders)
        with pytest.raises(ValidationError, match="does not allow reminder"):
            store.save_reminder(ReminderData(title="Call", calendar_id=event_calendar.calendar_identifier))
        assert not backend.has_uncommitted_changes
        assert database.reminders == before
        assert not store.has_pending_changes

    def test_calendar_update_with_other_entity_type(self, store, event_calendar):
        with pytest.raises(ValidationError, match="does not allow reminder"):
            store.save_calendar(
                CalendarData(id=event_calendar.calendar_identifier, title="X", entity_type="reminder")
            )


class TestBufferedEventScenario:
    @pytest.mark.asyncio
    async def test_reset_discards_buffered_event(self, store):
        calendar_id = await store.save_calendar(CalendarData(title="Work", entity_type="event"))
        event_id = await store.save_event(
            EventData(title="Review", start_date=START, end_date=START + timedelta(hours=1), calendar_id=calendar_id),
            commit=False,
        )
        assert (await store.get_event(event_id)).title == "Review"

        store.reset()
        assert await store.get_event(event_id) is None
        assert (await store.get_calendar(calendar_id)).title == "Work"
