"""Tests for lookups and predicate queries."""

from datetime import datetime, timedelta

import pytest

from ekstore.adapters.memory_store import MemoryEventStore
from ekstore.config import Config
from ekstore.core.enums import EntityType, SourceType
from ekstore.core.errors import BackendOperationError, ValidationError
from ekstore.ports import DateComponents
from ekstore.store import EventStore

START = datetime(2025, 1, 15)
END = START + timedelta(days=1)


@pytest.fixture
def standup(database, event_calendar):
    return database.add_event(
        event_calendar,
        "Standup",
        START + timedelta(hours=9),
        START + timedelta(hours=9, minutes=15),
        calendar_item_external_identifier="ext-standup",
    )


@pytest.fixture
def errands(database, reminder_calendar):
    database.add_reminder(reminder_calendar, "Buy milk", due_date_components=DateComponents(2025, 1, 16))
    database.add_reminder(reminder_calendar, "Book flights", completed=True, completion_date=START)
    return reminder_calendar


@pytest.fixture
def write_only_store(database, standup):
    database.authorization[0] = 4
    store = EventStore(MemoryEventStore(database), Config(backend="memory"))
    yield store
    store.close()


class TestCalendarQueries:
    @pytest.mark.asyncio
    async def test_get_calendars_by_type(self, store):
        events = await store.get_calendars()
        reminders = await store.get_calendars("reminder")
        assert [c.title for c in events] == ["Calendar"]
        assert [c.title for c in reminders] == ["Reminders"]

    @pytest.mark.asyncio
    async def test_default_entity_type_from_config(self, backend):
        with EventStore(backend, Config(backend="memory", default_entity_type="reminder")) as store:
            assert [c.title for c in await store.get_calendars()] == ["Reminders"]

    def test_invalid_entity_type_raises_immediately(self, store):
        with pytest.raises(ValidationError):
            store.get_calendars("task")

    @pytest.mark.asyncio
    async def test_color_is_mapped(self, store, event_calendar):
        calendar = await store.get_calendar(event_calendar.calendar_identifier)
        assert calendar.color.hex == "#007AFFFF"
        assert calendar.color.components == "0.000000,0.478000,1.000000,1.000000"

    @pytest.mark.asyncio
    async def test_color_precision_from_config(self, backend, event_calendar):
        with EventStore(backend, Config(backend="memory", color_precision=2)) as store:
            calendar = await store.get_calendar(event_calendar.calendar_identifier)
        assert calendar.color.components == "0.00,0.48,1.00,1.00"

    @pytest.mark.asyncio
    async def test_unknown_calendar(self, store):
        assert await store.get_calendar("missing") is None
        assert await store.get_calendar("") is None

    @pytest.mark.asyncio
    async def test_default_calendars(self, store):
        assert (await store.get_default_calendar_for_new_events()).title == "Calendar"
        assert (await store.get_default_calendar_for_new_reminders()).title == "Reminders"

    @pytest.mark.asyncio
    async def test_no_default_calendar(self, store, database):
        database.default_event_calendar_id = None
        assert await store.get_default_calendar_for_new_events() is None


class TestSourceQueries:
    @pytest.mark.asyncio
    async def test_sources(self, store, database):
        sources = await store.get_sources()
        assert [(s.title, s.source_type) for s in sources] == [("On My Mac", SourceType.LOCAL)]
        assert await store.get_source(sources[0].id) == sources[0]
        assert await store.get_source("missing") is None

    @pytest.mark.asyncio
    async def test_delegate_sources(self, store, database):
        database.add_source("Shared by Ana", source_type=1, delegate=True)
        assert [s.title for s in await store.get_delegate_sources()] == ["Shared by Ana"]

    @pytest.mark.asyncio
    async def test_delegate_sources_unsupported(self, database):
        database.add_source("Shared by Ana", delegate=True)
        with EventStore(MemoryEventStore(database, supports_delegate_sources=False)) as store:
            assert await store.get_delegate_sources() == []


class TestEventQueries:
    @pytest.mark.asyncio
    async def test_events_in_range(self, store, standup):
        events = await store.get_events_with_predicate(store.create_event_predicate(START, END))
        assert [e.title for e in events] == ["Standup"]
        assert events[0].id == standup.event_identifier

    @pytest.mark.asyncio
    async def test_stale_calendar_filter_matches_nothing(self, store, standup):
        predicate = store.create_event_predicate(START, END, ["stale-id"])
        assert await store.get_events_with_predicate(predicate) == []

    def test_family_guard(self, store):
        with pytest.raises(ValidationError, match="Invalid predicate type"):
            store.get_events_with_predicate(store.create_incomplete_reminder_predicate())

    @pytest.mark.asyncio
    async def test_get_event(self, store, standup):
        event = await store.get_event(standup.event_identifier)
        assert event.title == "Standup"
        assert await store.get_event("missing") is None

    @pytest.mark.asyncio
    async def test_write_only_access_hides_events(self, write_only_store, standup):
        store = write_only_store
        predicate = store.create_event_predicate(START, END)
        assert await store.get_events_with_predicate(predicate) == []
        assert await store.get_event(standup.event_identifier) is None
        assert await store.get_calendar_item(standup.event_identifier) is None
        assert await store.get_calendar_items_with_external_identifier("ext-standup") is None


class TestReminderQueries:
    @pytest.mark.asyncio
    async def test_all_reminders(self, store, errands):
        reminders = await store.get_reminders_with_predicate(store.create_reminder_predicate())
        assert sorted(r.title for r in reminders) == ["Book flights", "Buy milk"]

    @pytest.mark.asyncio
    async def test_incomplete(self, store, errands):
        predicate = store.create_incomplete_reminder_predicate(calendar_ids=[errands.calendar_identifier])
        reminders = await store.get_reminders_with_predicate(predicate)
        assert [r.title for r in reminders] == ["Buy milk"]
        assert reminders[0].due_date == datetime(2025, 1, 16)

    @pytest.mark.asyncio
    async def test_completed_in_range(self, store, errands):
        predicate = store.create_completed_reminder_predicate(START - timedelta(days=1), END)
        reminders = await store.get_reminders_with_predicate(predicate)
        assert [r.title for r in reminders] == ["Book flights"]
        assert reminders[0].completion_date == START

    @pytest.mark.asyncio
    async def test_event_calendar_filter_matches_nothing(self, store, errands, event_calendar):
        predicate = store.create_reminder_predicate([event_calendar.calendar_identifier])
        assert await store.get_reminders_with_predicate(predicate) == []

    def test_family_guard(self, store):
        with pytest.raises(ValidationError, match="Invalid predicate type: 'event'"):
            store.get_reminders_with_predicate(store.create_event_predicate(START, END))

    @pytest.mark.asyncio
    async def test_failed_fetch(self, database):
        class FailingStore(MemoryEventStore):
            def fetch_reminders_matching(self, predicate, completion):
                self._deliver(completion, None)

        with EventStore(FailingStore(database)) as store:
            with pytest.raises(BackendOperationError, match="fetch reminders"):
                await store.get_reminders_with_predicate(store.create_reminder_predicate())

    @pytest.mark.asyncio
    async def test_write_only_events_leave_reminders_visible(self, write_only_store, errands):
        store = write_only_store
        reminders = await store.get_reminders_with_predicate(store.create_reminder_predicate())
        assert len(reminders) == 2


class TestItemLookups:
    @pytest.mark.asyncio
    async def test_calendar_item_is_tagged(self, store, standup):
        item = await store.get_calendar_item(standup.event_identifier)
        assert item.kind is EntityType.EVENT
        assert item.to_dict()["type"] == "event"
        assert await store.get_calendar_item("missing") is None

    @pytest.mark.asyncio
    async def test_external_identifier(self, store, standup, database, reminder_calendar):
        database.add_reminder(reminder_calendar, "Prep standup", calendar_item_external_identifier="ext-standup")
        items = await store.get_calendar_items_with_external_identifier("ext-standup")
        assert sorted(i.kind.value for i in items) == ["event", "reminder"]

    @pytest.mark.asyncio
    async def test_external_identifier_not_found(self, store):
        assert await store.get_calendar_items_with_external_identifier("nothing") is None
        assert await store.get_calendar_items_with_external_identifier("") is None
