"""EventStore - the public access surface over one store session."""

import logging
from datetime import datetime
from typing import Awaitable, Callable, Iterable

from ekstore.config import Config, load_config
from ekstore.core.enums import AuthorizationStatus, EntityType, Span
from ekstore.core.errors import ValidationError
from ekstore.core.models import (
    Calendar,
    CalendarData,
    CalendarItem,
    Event,
    EventData,
    Reminder,
    ReminderData,
    Source,
)
from ekstore.ports import EventStoreBackend
from ekstore.predicates import Predicate, PredicateBuilder
from ekstore.queries import QueryExecutor
from ekstore.session import AccessLevel, StoreSession

logger = logging.getLogger(__name__)


def create_backend(name: str) -> EventStoreBackend:
    """Instantiate a backend by its configured name."""
    match name:
        case "memory":
            from ekstore.adapters.memory_store import MemoryEventStore

            return MemoryEventStore()
        case "eventkit":
            from ekstore.adapters.eventkit import EventKitBackend

            return EventKitBackend()
        case _:
            raise ValidationError(f"Unknown backend: {name!r}")


def open_store(
    config: Config | None = None,
    backend: EventStoreBackend | None = None,
    clock: Callable[[], datetime] = datetime.now,
) -> "EventStore":
    """Open a store session. Without an explicit backend, the configured one is created."""
    config = config or load_config()
    backend = backend or create_backend(config.backend)
    logger.debug(f"Opening event store on {type(backend).__name__}")
    return EventStore(backend, config, clock)


class EventStore:
    """
    Typed access to a calendar/reminder store.

    Composes a StoreSession (authorization and mutations), a PredicateBuilder
    and a QueryExecutor over a single backend connection. Close it when done,
    or use it as a context manager.
    """

    def __init__(
        self,
        backend: EventStoreBackend,
        config: Config | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.config = config or Config()
        self.session = StoreSession(backend, self.config, clock)
        self.predicates = PredicateBuilder(backend)
        self.queries = QueryExecutor(self.session)

    def __enter__(self) -> "EventStore":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self.session.closed

    def close(self) -> None:
        self.session.close()

    # --- authorization ---

    @property
    def event_access(self) -> AccessLevel:
        return self.session.event_access

    @property
    def reminder_access(self) -> AccessLevel:
        return self.session.reminder_access

    def request_full_access_to_events(self) -> Awaitable[bool]:
        return self.session.request_full_access_to_events()

    def request_write_only_access_to_events(self) -> Awaitable[bool]:
        return self.session.request_write_only_access_to_events()

    def request_full_access_to_reminders(self) -> Awaitable[bool]:
        return self.session.request_full_access_to_reminders()

    def get_authorization_status(self, entity_type: EntityType | str) -> AuthorizationStatus:
        return self.session.get_authorization_status(entity_type)

    # --- calendars and sources ---

    def get_calendars(self, entity_type: EntityType | str | None = None) -> Awaitable[list[Calendar]]:
        return self.queries.get_calendars(entity_type or self.config.default_entity_type)

    def get_calendar(self, calendar_id: str) -> Awaitable[Calendar | None]:
        return self.queries.get_calendar(calendar_id)

    def save_calendar(self, data: CalendarData, commit: bool = True) -> Awaitable[str]:
        return self.session.save_calendar(data, commit)

    def remove_calendar(self, calendar_id: str, commit: bool = True) -> Awaitable[bool]:
        return self.session.remove_calendar(calendar_id, commit)

    def get_sources(self) -> Awaitable[list[Source]]:
        return self.queries.get_sources()

    def get_delegate_sources(self) -> Awaitable[list[Source]]:
        return self.queries.get_delegate_sources()

    def get_source(self, source_id: str) -> Awaitable[Source | None]:
        return self.queries.get_source(source_id)

    def get_default_calendar_for_new_events(self) -> Awaitable[Calendar | None]:
        return self.queries.get_default_calendar_for_new_events()

    def get_default_calendar_for_new_reminders(self) -> Awaitable[Calendar | None]:
        return self.queries.get_default_calendar_for_new_reminders()

    # --- transaction control ---

    @property
    def has_pending_changes(self) -> bool:
        return self.session.has_pending_changes

    def commit(self) -> Awaitable[None]:
        return self.session.commit()

    def reset(self) -> None:
        self.session.reset()

    def refresh_sources_if_necessary(self) -> None:
        self.session.refresh_sources_if_necessary()

    # --- predicates ---

    def create_event_predicate(
        self, start: datetime, end: datetime, calendar_ids: Iterable[str] | None = None
    ) -> Predicate:
        self.session.ensure_open()
        return self.predicates.event_predicate(start, end, calendar_ids)

    def create_reminder_predicate(self, calendar_ids: Iterable[str] | None = None) -> Predicate:
        self.session.ensure_open()
        return self.predicates.reminder_predicate(calendar_ids)

    def create_incomplete_reminder_predicate(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        calendar_ids: Iterable[str] | None = None,
    ) -> Predicate:
        self.session.ensure_open()
        return self.predicates.incomplete_reminder_predicate(start, end, calendar_ids)

    def create_completed_reminder_predicate(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        calendar_ids: Iterable[str] | None = None,
    ) -> Predicate:
        self.session.ensure_open()
        return self.predicates.completed_reminder_predicate(start, end, calendar_ids)

    # --- events and reminders ---

    def get_events_with_predicate(self, predicate: Predicate) -> Awaitable[list[Event]]:
        return self.queries.get_events_with_predicate(predicate)

    def get_reminders_with_predicate(self, predicate: Predicate) -> Awaitable[list[Reminder]]:
        return self.queries.get_reminders_with_predicate(predicate)

    def get_event(self, event_id: str) -> Awaitable[Event | None]:
        return self.queries.get_event(event_id)

    def get_calendar_item(self, item_id: str) -> Awaitable[CalendarItem | None]:
        return self.queries.get_calendar_item(item_id)

    def get_calendar_items_with_external_identifier(
        self, external_identifier: str
    ) -> Awaitable[list[CalendarItem] | None]:
        return self.queries.get_calendar_items_with_external_identifier(external_identifier)

    def save_event(
        self, data: EventData, span: Span | str = Span.THIS_EVENT, commit: bool = True
    ) -> Awaitable[str]:
        return self.session.save_event(data, span, commit)

    def remove_event(
        self, event_id: str, span: Span | str = Span.THIS_EVENT, commit: bool = True
    ) -> Awaitable[bool]:
        return self.session.remove_event(event_id, span, commit)

    def save_reminder(self, data: ReminderData, commit: bool = True) -> Awaitable[str]:
        return self.session.save_reminder(data, commit)

    def remove_reminder(self, reminder_id: str, commit: bool = True) -> Awaitable[bool]:
        return self.session.remove_reminder(reminder_id, commit)
