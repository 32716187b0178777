"""Query executor - lookups and predicate queries returning mapped entities.

Every query is awaitable. Event fetches are synchronous in the backend and
complete immediately; reminder fetches are delivered later through a
completion callback. Not-found is reported as None or an empty list.
"""

import logging
from typing import Awaitable

from ekstore.core.enums import ENTITY_TYPE_CODES, EntityType, parse_entity_type
from ekstore.core.errors import BackendOperationError
from ekstore.core.models import Calendar, CalendarItem, Event, Reminder, Source
from ekstore.mappers import map_calendar, map_calendar_item, map_event, map_reminder, map_source
from ekstore.predicates import EVENT_PREDICATES, REMINDER_PREDICATES, Predicate, require_family
from ekstore.session import AccessLevel, StoreSession

logger = logging.getLogger(__name__)


class QueryExecutor:
    """Runs lookups and predicates against a session's backend."""

    def __init__(self, session: StoreSession):
        self._session = session
        self._backend = session.backend

    @property
    def _precision(self) -> int:
        return self._session.config.color_precision

    def _events_hidden(self) -> bool:
        """Write-only event access permits writes but hides event content."""
        return self._session.event_access is AccessLevel.WRITE_ONLY

    def _calendar_or_none(self, native) -> Calendar | None:
        return map_calendar(native, self._precision) if native is not None else None

    # --- calendars and sources ---

    def get_calendars(self, entity_type=EntityType.EVENT) -> Awaitable[list[Calendar]]:
        self._session.ensure_open()
        entity_type = parse_entity_type(entity_type)
        return self._get_calendars(entity_type)

    async def _get_calendars(self, entity_type: EntityType) -> list[Calendar]:
        natives = self._backend.calendars(ENTITY_TYPE_CODES[entity_type])
        return [map_calendar(c, self._precision) for c in natives]

    async def get_calendar(self, calendar_id: str) -> Calendar | None:
        self._session.ensure_open()
        if not calendar_id:
            return None
        return self._calendar_or_none(self._backend.calendar_with_identifier(calendar_id))

    async def get_default_calendar_for_new_events(self) -> Calendar | None:
        self._session.ensure_open()
        return self._calendar_or_none(self._backend.default_calendar_for_new_events())

    async def get_default_calendar_for_new_reminders(self) -> Calendar | None:
        self._session.ensure_open()
        return self._calendar_or_none(self._backend.default_calendar_for_new_reminders())

    async def get_sources(self) -> list[Source]:
        self._session.ensure_open()
        return [map_source(s) for s in self._backend.sources()]

    async def get_delegate_sources(self) -> list[Source]:
        self._session.ensure_open()
        if not self._backend.supports_delegate_sources:
            logger.debug("Backend has no delegate sources")
            return []
        return [map_source(s) for s in self._backend.delegate_sources()]

    async def get_source(self, source_id: str) -> Source | None:
        self._session.ensure_open()
        if not source_id:
            return None
        native = self._backend.source_with_identifier(source_id)
        return map_source(native) if native is not None else None

    # --- predicate queries ---

    def get_events_with_predicate(self, predicate: Predicate) -> Awaitable[list[Event]]:
        self._session.ensure_open()
        require_family(predicate, EVENT_PREDICATES, "get_events_with_predicate")
        return self._get_events(predicate)

    async def _get_events(self, predicate: Predicate) -> list[Event]:
        if self._events_hidden():
            return []
        return [map_event(e) for e in self._backend.events_matching(predicate._native)]

    def get_reminders_with_predicate(self, predicate: Predicate) -> Awaitable[list[Reminder]]:
        self._session.ensure_open()
        require_family(predicate, REMINDER_PREDICATES, "get_reminders_with_predicate")
        return self._get_reminders(predicate)

    async def _get_reminders(self, predicate: Predicate) -> list[Reminder]:
        completion = self._session.new_completion(predicate, predicate._native, predicate._calendars)

        def _done(reminders):
            if reminders is None:
                completion.reject(BackendOperationError("Failed to fetch reminders"))
            else:
                completion.resolve(list(reminders))

        self._backend.fetch_reminders_matching(predicate._native, _done)
        natives = await completion.future
        return [map_reminder(r) for r in natives]

    # --- item lookups ---

    async def get_event(self, event_id: str) -> Event | None:
        self._session.ensure_open()
        if not event_id or self._events_hidden():
            return None
        native = self._backend.event_with_identifier(event_id)
        return map_event(native) if native is not None else None

    def _visible(self, item: CalendarItem | None) -> CalendarItem | None:
        if item is not None and item.kind is EntityType.EVENT and self._events_hidden():
            return None
        return item

    async def get_calendar_item(self, item_id: str) -> CalendarItem | None:
        self._session.ensure_open()
        if not item_id:
            return None
        native = self._backend.calendar_item_with_identifier(item_id)
        if native is None:
            return None
        return self._visible(map_calendar_item(native))

    async def get_calendar_items_with_external_identifier(
        self, external_identifier: str
    ) -> list[CalendarItem] | None:
        self._session.ensure_open()
        if not external_identifier:
            return None
        natives = self._backend.calendar_items_with_external_identifier(external_identifier) or []
        items = [self._visible(map_calendar_item(n)) for n in natives]
        items = [i for i in items if i is not None]
        return items or None
