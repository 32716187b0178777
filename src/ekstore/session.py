"""Store session - authorization, buffered mutations, commit and reset.

Mutating operations validate their input, resolve the entities they touch and
apply the new field values synchronously, raising ValidationError straight
away. What they return is an awaitable that performs the backend save or
remove. With ``commit=False`` the change is buffered in the backend until
``commit()``; ``reset()`` discards everything buffered.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable

from ekstore.completion import Completion
from ekstore.config import Config
from ekstore.core.color import parse_hex
from ekstore.core.enums import (
    AVAILABILITY_CODES,
    COLOR_SPACE_CODES,
    ENTITY_MASK_BITS,
    ENTITY_TYPE_CODES,
    SPAN_CODES,
    AuthorizationStatus,
    ColorSpace,
    EntityType,
    SourceType,
    Span,
    normalize_authorization_status,
    normalize_source_type,
    parse_availability,
    parse_entity_type,
    parse_span,
)
from ekstore.core.errors import BackendOperationError, SessionClosedError, ValidationError
from ekstore.core.models import CalendarData, EventData, ReminderData
from ekstore.mappers import classify_item
from ekstore.ports import BackendError, DateComponents, EventStoreBackend, NativeColor

logger = logging.getLogger(__name__)


class AccessLevel(str, Enum):
    """What a session may do with one entity type."""

    NONE = "none"
    WRITE_ONLY = "writeOnly"
    FULL = "full"


_ACCESS_BY_STATUS = {
    AuthorizationStatus.FULL_ACCESS: AccessLevel.FULL,
    AuthorizationStatus.AUTHORIZED: AccessLevel.FULL,
    AuthorizationStatus.WRITE_ONLY: AccessLevel.WRITE_ONLY,
}


def _apply(native, fields: dict) -> None:
    """Set every field that was provided (not None) on a native entity."""
    for name, value in fields.items():
        if value is not None:
            setattr(native, name, value)


class StoreSession:
    """Owns the connection to one backend store and its buffered changes."""

    def __init__(
        self,
        backend: EventStoreBackend,
        config: Config | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.backend = backend
        self.config = config or Config()
        self.closed = False
        self._clock = clock
        self._pending_changes: list[str] = []
        self._completions: set[Completion] = set()
        self.event_access = self._access_from_status(EntityType.EVENT)
        self.reminder_access = self._access_from_status(EntityType.REMINDER)

    # --- lifecycle ---

    def ensure_open(self) -> None:
        if self.closed:
            raise SessionClosedError("The event store session is closed.")

    def close(self) -> None:
        """Close the session, cancelling pending callbacks. Buffered changes are not committed."""
        if self.closed:
            return
        self.closed = True
        for completion in list(self._completions):
            completion.cancel()
        self._completions.clear()
        if self._pending_changes:
            logger.warning(f"Closing session with {len(self._pending_changes)} uncommitted change(s)")

    def new_completion(self, *keepalive) -> Completion:
        """Create a tracked completion that keeps ``keepalive`` alive until it fires."""
        completion = Completion(self, keepalive)
        self._completions.add(completion)
        completion.future.add_done_callback(lambda _: self._completions.discard(completion))
        return completion

    @property
    def has_pending_changes(self) -> bool:
        return bool(self._pending_changes)

    @property
    def pending_changes(self) -> list[str]:
        return list(self._pending_changes)

    async def _stage(self, change: Callable[[bool], None], description: str, commit: bool) -> None:
        """
        Buffer one change in the backend, then commit it when asked.

        The change is staged before the commit runs, so a committing save
        whose commit fails stays pending like anything buffered before it.
        """
        try:
            change(False)
        except BackendError as e:
            raise BackendOperationError(f"Failed to {description}: {e}") from e
        self._pending_changes.append(description)
        logger.debug(f"Buffered {description}")
        if commit:
            await self._commit()

    # --- authorization ---

    def get_authorization_status(self, entity_type) -> AuthorizationStatus:
        self.ensure_open()
        entity_type = parse_entity_type(entity_type)
        code = self.backend.authorization_status(ENTITY_TYPE_CODES[entity_type])
        return normalize_authorization_status(code, self.backend.supports_full_access)

    def _access_from_status(self, entity_type: EntityType) -> AccessLevel:
        return _ACCESS_BY_STATUS.get(self.get_authorization_status(entity_type), AccessLevel.NONE)

    async def _request_access(self, request, label: str) -> bool:
        self.ensure_open()
        completion = self.new_completion()

        def _done(granted, error=None):
            if error:
                logger.warning(f"{label} request reported: {error}")
            completion.resolve(bool(granted))

        request(_done)
        granted = await completion.future
        logger.info(f"{label} {'granted' if granted else 'denied'}")
        return granted

    def _granted_level(self, entity_type: EntityType, granted: bool, requested: AccessLevel) -> AccessLevel:
        level = self._access_from_status(entity_type)
        if granted and level is AccessLevel.NONE:
            level = requested
        return level

    async def request_full_access_to_events(self) -> bool:
        granted = await self._request_access(self.backend.request_full_access_to_events, "Full event access")
        self.event_access = self._granted_level(EntityType.EVENT, granted, AccessLevel.FULL)
        return granted

    async def request_write_only_access_to_events(self) -> bool:
        granted = await self._request_access(
            self.backend.request_write_only_access_to_events, "Write-only event access"
        )
        self.event_access = self._granted_level(EntityType.EVENT, granted, AccessLevel.WRITE_ONLY)
        return granted

    async def request_full_access_to_reminders(self) -> bool:
        granted = await self._request_access(
            self.backend.request_full_access_to_reminders, "Full reminder access"
        )
        self.reminder_access = self._granted_level(EntityType.REMINDER, granted, AccessLevel.FULL)
        return granted

    # --- resolution helpers ---

    def _calendar_for_item(self, calendar_id: str, entity_type: EntityType):
        calendar = self.backend.calendar_with_identifier(calendar_id)
        if calendar is None:
            raise ValidationError(f"No calendar with id {calendar_id!r}.")
        if not calendar.allowed_entity_types & ENTITY_MASK_BITS[entity_type]:
            raise ValidationError(
                f"Calendar {calendar_id!r} does not allow {entity_type.value} items."
            )
        return calendar

    def _source_for_new_calendar(self, source_id: str | None, entity_type: EntityType):
        if source_id:
            source = self.backend.source_with_identifier(source_id)
            if source is not None:
                return source
            if self.config.strict_sources:
                raise ValidationError(f"No source with id {source_id!r}.")
            logger.warning(f"Source {source_id!r} not found, using the default source")

        if entity_type is EntityType.EVENT:
            default = self.backend.default_calendar_for_new_events()
        else:
            default = self.backend.default_calendar_for_new_reminders()
        if default is not None and default.source is not None:
            return default.source

        for source in self.backend.sources():
            if normalize_source_type(source.source_type) is SourceType.LOCAL:
                return source
        raise ValidationError("No source available for a new calendar; pass a sourceId.")

    def _reminder_with_identifier(self, identifier: str):
        item = self.backend.calendar_item_with_identifier(identifier)
        if item is None or classify_item(item) is not EntityType.REMINDER:
            return None
        return item

    # --- calendars ---

    def save_calendar(self, data: CalendarData, commit: bool = True) -> Awaitable[str]:
        """Create or update a calendar; the awaitable yields its identifier."""
        self.ensure_open()
        entity_type = parse_entity_type(data.entity_type)
        rgba = parse_hex(data.color) if data.color is not None else None
        if not data.id and self.config.strict_sources and not data.source_id:
            raise ValidationError("sourceId is required for new calendars.")

        if data.id:
            calendar = self.backend.calendar_with_identifier(data.id)
            if calendar is None:
                raise ValidationError(f"No calendar with id {data.id!r}.")
            if not calendar.allowed_entity_types & ENTITY_MASK_BITS[entity_type]:
                raise ValidationError(
                    f"Calendar {data.id!r} does not allow {entity_type.value} items."
                )
        else:
            calendar = self.backend.new_calendar(ENTITY_TYPE_CODES[entity_type])
            calendar.source = self._source_for_new_calendar(data.source_id, entity_type)

        _apply(
            calendar,
            {
                "title": data.title,
                "color": NativeColor(rgba, COLOR_SPACE_CODES[ColorSpace.RGB]) if rgba else None,
            },
        )
        return self._save_calendar(calendar, commit)

    async def _save_calendar(self, calendar, commit: bool) -> str:
        await self._stage(
            lambda flush: self.backend.save_calendar(calendar, flush),
            f"save calendar {calendar.calendar_identifier}",
            commit,
        )
        return calendar.calendar_identifier

    def remove_calendar(self, calendar_id: str, commit: bool = True) -> Awaitable[bool]:
        """Remove a calendar; the awaitable yields False if no such calendar exists."""
        self.ensure_open()
        if not calendar_id:
            raise ValidationError("Calendar ID is required.")
        return self._remove_calendar(calendar_id, commit)

    async def _remove_calendar(self, calendar_id: str, commit: bool) -> bool:
        calendar = self.backend.calendar_with_identifier(calendar_id)
        if calendar is None:
            logger.debug(f"Calendar {calendar_id!r} not found, nothing to remove")
            return False
        await self._stage(
            lambda flush: self.backend.remove_calendar(calendar, flush),
            f"remove calendar {calendar_id}",
            commit,
        )
        return True

    # --- events ---

    def save_event(
        self, data: EventData, span: Span | str = Span.THIS_EVENT, commit: bool = True
    ) -> Awaitable[str]:
        """Create or update an event; the awaitable yields its identifier."""
        self.ensure_open()
        span = parse_span(span)
        availability = parse_availability(data.availability) if data.availability is not None else None

        if data.id:
            event = self.backend.event_with_identifier(data.id)
            if event is None:
                raise ValidationError(f"No event with id {data.id!r}.")
        else:
            missing = [
                name
                for name, value in (
                    ("calendarId", data.calendar_id),
                    ("startDate", data.start_date),
                    ("endDate", data.end_date),
                )
                if value is None
            ]
            if missing:
                raise ValidationError(f"Missing required field(s) for a new event: {', '.join(missing)}.")
            event = self.backend.new_event()

        _apply(
            event,
            {
                "calendar": (
                    self._calendar_for_item(data.calendar_id, EntityType.EVENT)
                    if data.calendar_id is not None
                    else None
                ),
                "title": data.title,
                "notes": data.notes,
                "start_date": data.start_date,
                "end_date": data.end_date,
                "all_day": data.is_all_day,
                "location": data.location,
                "url": data.url,
                "availability": AVAILABILITY_CODES[availability] if availability else None,
            },
        )
        return self._save_event(event, span, commit)

    async def _save_event(self, event, span: Span, commit: bool) -> str:
        await self._stage(
            lambda flush: self.backend.save_event(event, SPAN_CODES[span], flush),
            f"save event {event.event_identifier} ({span.value})",
            commit,
        )
        return event.event_identifier

    def remove_event(
        self, event_id: str, span: Span | str = Span.THIS_EVENT, commit: bool = True
    ) -> Awaitable[bool]:
        """Remove an event; the awaitable yields False if no such event exists."""
        self.ensure_open()
        span = parse_span(span)
        if not event_id:
            raise ValidationError("Event ID is required.")
        return self._remove_event(event_id, span, commit)

    async def _remove_event(self, event_id: str, span: Span, commit: bool) -> bool:
        event = self.backend.event_with_identifier(event_id)
        if event is None:
            logger.debug(f"Event {event_id!r} not found, nothing to remove")
            return False
        await self._stage(
            lambda flush: self.backend.remove_event(event, SPAN_CODES[span], flush),
            f"remove event {event_id} ({span.value})",
            commit,
        )
        return True

    # --- reminders ---

    def save_reminder(self, data: ReminderData, commit: bool = True) -> Awaitable[str]:
        """
        Create or update a reminder; the awaitable yields its identifier.

        ``completed=True`` stamps the completion date with the session clock
        unless the reminder was already completed; ``completed=False`` clears it.
        """
        self.ensure_open()
        if data.priority is not None and (
            not isinstance(data.priority, int)
            or isinstance(data.priority, bool)
            or not 0 <= data.priority <= 9
        ):
            raise ValidationError(f"Invalid priority: {data.priority!r}. Must be an integer from 0 to 9.")

        if data.id:
            reminder = self._reminder_with_identifier(data.id)
            if reminder is None:
                raise ValidationError(f"No reminder with id {data.id!r}.")
        else:
            if data.calendar_id is None:
                raise ValidationError("Missing required field(s) for a new reminder: calendarId.")
            reminder = self.backend.new_reminder()

        _apply(
            reminder,
            {
                "calendar": (
                    self._calendar_for_item(data.calendar_id, EntityType.REMINDER)
                    if data.calendar_id is not None
                    else None
                ),
                "title": data.title,
                "notes": data.notes,
                "priority": data.priority,
                "due_date_components": (
                    DateComponents.from_datetime(data.due_date) if data.due_date else None
                ),
                "start_date_components": (
                    DateComponents.from_datetime(data.start_date) if data.start_date else None
                ),
            },
        )
        if data.completed is True and not reminder.completed:
            reminder.completed = True
            reminder.completion_date = self._clock()
        elif data.completed is False:
            reminder.completed = False
            reminder.completion_date = None
        return self._save_reminder(reminder, commit)

    async def _save_reminder(self, reminder, commit: bool) -> str:
        await self._stage(
            lambda flush: self.backend.save_reminder(reminder, flush),
            f"save reminder {reminder.calendar_item_identifier}",
            commit,
        )
        return reminder.calendar_item_identifier

    def remove_reminder(self, reminder_id: str, commit: bool = True) -> Awaitable[bool]:
        """Remove a reminder; the awaitable yields False if no such reminder exists."""
        self.ensure_open()
        if not reminder_id:
            raise ValidationError("Reminder ID is required.")
        return self._remove_reminder(reminder_id, commit)

    async def _remove_reminder(self, reminder_id: str, commit: bool) -> bool:
        reminder = self._reminder_with_identifier(reminder_id)
        if reminder is None:
            logger.debug(f"Reminder {reminder_id!r} not found, nothing to remove")
            return False
        await self._stage(
            lambda flush: self.backend.remove_reminder(reminder, flush),
            f"remove reminder {reminder_id}",
            commit,
        )
        return True

    # --- transaction control ---

    def commit(self) -> Awaitable[None]:
        """Flush all buffered changes. Raises BackendOperationError on failure."""
        self.ensure_open()
        return self._commit()

    async def _commit(self) -> None:
        count = len(self._pending_changes)
        try:
            self.backend.commit()
        except BackendError as e:
            raise BackendOperationError(f"Failed to commit changes: {e}") from e
        self._pending_changes.clear()
        logger.info(f"Committed {count} buffered change(s)")

    def reset(self) -> None:
        """Discard all buffered, uncommitted changes."""
        self.ensure_open()
        self.backend.reset()
        if self._pending_changes:
            logger.debug(f"Discarded {len(self._pending_changes)} buffered change(s)")
        self._pending_changes.clear()

    def refresh_sources_if_necessary(self) -> None:
        self.ensure_open()
        self.backend.refresh_sources_if_necessary()
