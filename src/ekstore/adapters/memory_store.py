"""In-memory event store backend.

A ``MemoryDatabase`` holds committed state and can be shared by several
``MemoryEventStore`` instances. Each store keeps its own uncommitted changes
in an overlay that only it can see until ``commit()`` applies them.
"""

import copy
import logging
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from ekstore.core.enums import ENTITY_TYPE_CODES, EntityType, entity_mask
from ekstore.mappers import resolve_date_components
from ekstore.ports import BackendError, DateComponents, NativeColor

logger = logging.getLogger(__name__)

EVENT = ENTITY_TYPE_CODES[EntityType.EVENT]
REMINDER = ENTITY_TYPE_CODES[EntityType.REMINDER]

# raw authorization codes
_DENIED = 2
_FULL_ACCESS = 3
_WRITE_ONLY = 4


def _new_identifier() -> str:
    return str(uuid.uuid4()).upper()


@dataclass
class MemorySource:
    source_identifier: str
    title: str | None
    source_type: int = 0


@dataclass
class MemoryCalendar:
    calendar_identifier: str
    title: str | None
    allowed_entity_types: int
    type: int = 0
    allows_content_modifications: bool = True
    color: NativeColor | None = None
    source: MemorySource | None = None


@dataclass
class MemoryEvent:
    event_identifier: str
    title: str | None = None
    notes: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    all_day: bool = False
    calendar: MemoryCalendar | None = None
    location: str | None = None
    url: str | None = None
    has_alarms: bool = False
    availability: int = 0
    calendar_item_external_identifier: str | None = None


@dataclass
class MemoryReminder:
    calendar_item_identifier: str
    title: str | None = None
    notes: str | None = None
    calendar: MemoryCalendar | None = None
    completed: bool = False
    completion_date: datetime | None = None
    due_date_components: DateComponents | None = None
    start_date_components: DateComponents | None = None
    priority: int = 0
    has_alarms: bool = False
    calendar_item_external_identifier: str | None = None


@dataclass(frozen=True)
class MemoryPredicate:
    kind: str
    start: datetime | None
    end: datetime | None
    calendar_ids: frozenset[str] | None


class MemoryDatabase:
    """Committed calendar state shared between stores."""

    def __init__(self):
        self.lock = threading.RLock()
        self.sources: dict[str, MemorySource] = {}
        self.delegate_sources: dict[str, MemorySource] = {}
        self.calendars: dict[str, MemoryCalendar] = {}
        self.events: dict[str, MemoryEvent] = {}
        self.reminders: dict[str, MemoryReminder] = {}
        self.default_event_calendar_id: str | None = None
        self.default_reminder_calendar_id: str | None = None
        self.authorization: dict[int, int] = {EVENT: _FULL_ACCESS, REMINDER: _FULL_ACCESS}

    @classmethod
    def with_defaults(cls) -> "MemoryDatabase":
        """A database with one local source and default event and reminder calendars."""
        db = cls()
        local = db.add_source("On My Mac")
        db.add_calendar(
            "Calendar",
            source=local,
            color=NativeColor((0.0, 0.478, 1.0, 1.0), 1),
            default=True,
        )
        db.add_calendar(
            "Reminders",
            entity_types=("reminder",),
            source=local,
            color=NativeColor((1.0, 0.584, 0.0, 1.0), 1),
            default=True,
        )
        return db

    def add_source(self, title: str, source_type: int = 0, delegate: bool = False) -> MemorySource:
        source = MemorySource(_new_identifier(), title, source_type)
        with self.lock:
            table = self.delegate_sources if delegate else self.sources
            table[source.source_identifier] = source
        return source

    def add_calendar(
        self,
        title: str,
        entity_types=("event",),
        source: MemorySource | None = None,
        color: NativeColor | None = None,
        type: int = 0,
        allows_content_modifications: bool = True,
        default: bool = False,
    ) -> MemoryCalendar:
        calendar = MemoryCalendar(
            calendar_identifier=_new_identifier(),
            title=title,
            allowed_entity_types=entity_mask(entity_types),
            type=type,
            allows_content_modifications=allows_content_modifications,
            color=color,
            source=source,
        )
        with self.lock:
            self.calendars[calendar.calendar_identifier] = calendar
            if default and "event" in entity_types:
                self.default_event_calendar_id = calendar.calendar_identifier
            if default and "reminder" in entity_types:
                self.default_reminder_calendar_id = calendar.calendar_identifier
        return calendar

    def add_event(self, calendar: MemoryCalendar, title: str, start: datetime, end: datetime, **fields) -> MemoryEvent:
        event = MemoryEvent(
            event_identifier=_new_identifier(),
            title=title,
            start_date=start,
            end_date=end,
            calendar=calendar,
            calendar_item_external_identifier=fields.pop("calendar_item_external_identifier", None)
            or _new_identifier(),
            **fields,
        )
        with self.lock:
            self.events[event.event_identifier] = event
        return event

    def add_reminder(self, calendar: MemoryCalendar, title: str, **fields) -> MemoryReminder:
        reminder = MemoryReminder(
            calendar_item_identifier=_new_identifier(),
            title=title,
            calendar=calendar,
            calendar_item_external_identifier=fields.pop("calendar_item_external_identifier", None)
            or _new_identifier(),
            **fields,
        )
        with self.lock:
            self.reminders[reminder.calendar_item_identifier] = reminder
        return reminder


class MemoryEventStore:
    """
    In-memory event store backend.

    Implements EventStoreBackend protocol. Saves with ``commit=False`` stay in
    this store's overlay until ``commit()``; ``reset()`` discards them.
    """

    def __init__(
        self,
        database: MemoryDatabase | None = None,
        supports_full_access: bool = True,
        supports_delegate_sources: bool = True,
        grant_access: bool = True,
        threaded_callbacks: bool = True,
    ):
        self.database = database or MemoryDatabase.with_defaults()
        self.supports_full_access = supports_full_access
        self.supports_delegate_sources = supports_delegate_sources
        self.grant_access = grant_access
        self.threaded_callbacks = threaded_callbacks
        self.refresh_count = 0
        self.span_log: list[tuple[str, str, int]] = []
        self._staged: dict[tuple[str, str], Any] = {}
        self._commit_failure: str | None = None

    # --- overlay ---

    def _view(self, kind: str) -> dict[str, Any]:
        with self.database.lock:
            items = dict(getattr(self.database, kind))
        for (staged_kind, identifier), record in self._staged.items():
            if staged_kind != kind:
                continue
            if record is None:
                items.pop(identifier, None)
            else:
                items[identifier] = record
        return items

    def _stage(self, kind: str, identifier: str, record) -> None:
        self._staged[(kind, identifier)] = record
        logger.debug(f"Staged {'removal' if record is None else 'save'} of {kind} {identifier}")

    @property
    def has_uncommitted_changes(self) -> bool:
        return bool(self._staged)

    def fail_next_commit(self, message: str = "The operation couldn't be completed.") -> None:
        """Make the next commit raise BackendError with ``message``."""
        self._commit_failure = message

    def _deliver(self, callback: Callable, *args) -> None:
        if self.threaded_callbacks:
            threading.Thread(target=callback, args=args, daemon=True).start()
        else:
            callback(*args)

    # --- export (copies handed to callers) ---

    def _export_source(self, identifier: str | None) -> MemorySource | None:
        if identifier is None:
            return None
        with self.database.lock:
            current = self.database.sources.get(identifier) or self.database.delegate_sources.get(identifier)
        return copy.copy(current) if current else None

    def _export_calendar(self, identifier: str | None, calendars: dict | None = None) -> MemoryCalendar | None:
        if identifier is None:
            return None
        calendars = calendars if calendars is not None else self._view("calendars")
        current = calendars.get(identifier)
        if current is None:
            return None
        exported = copy.copy(current)
        exported.source = self._export_source(current.source.source_identifier if current.source else None)
        return exported

    def _export_item(self, record, calendars: dict | None = None):
        exported = copy.copy(record)
        exported.calendar = self._export_calendar(
            record.calendar.calendar_identifier if record.calendar else None, calendars
        )
        return exported

    # --- authorization ---

    def authorization_status(self, entity_type: int) -> int:
        return self.database.authorization.get(entity_type, 0)

    def _request_access(self, entity_type: int, granted_code: int, completion) -> None:
        granted = self.grant_access
        self.database.authorization[entity_type] = granted_code if granted else _DENIED
        self._deliver(completion, granted, None)

    def request_full_access_to_events(self, completion) -> None:
        self._request_access(EVENT, _FULL_ACCESS, completion)

    def request_write_only_access_to_events(self, completion) -> None:
        # older systems have no write-only grant and fall back to plain access
        code = _WRITE_ONLY if self.supports_full_access else _FULL_ACCESS
        self._request_access(EVENT, code, completion)

    def request_full_access_to_reminders(self, completion) -> None:
        self._request_access(REMINDER, _FULL_ACCESS, completion)

    # --- sources and calendars ---

    def sources(self) -> list[MemorySource]:
        with self.database.lock:
            return [copy.copy(s) for s in self.database.sources.values()]

    def delegate_sources(self) -> list[MemorySource]:
        if not self.supports_delegate_sources:
            return []
        with self.database.lock:
            return [copy.copy(s) for s in self.database.delegate_sources.values()]

    def source_with_identifier(self, identifier: str) -> MemorySource | None:
        return self._export_source(identifier)

    def calendars(self, entity_type: int) -> list[MemoryCalendar]:
        calendars = self._view("calendars")
        bit = 1 << entity_type
        return [
            self._export_calendar(c.calendar_identifier, calendars)
            for c in calendars.values()
            if c.allowed_entity_types & bit
        ]

    def calendar_with_identifier(self, identifier: str) -> MemoryCalendar | None:
        return self._export_calendar(identifier)

    def default_calendar_for_new_events(self) -> MemoryCalendar | None:
        identifier = self.database.default_event_calendar_id
        return self.calendar_with_identifier(identifier) if identifier else None

    def default_calendar_for_new_reminders(self) -> MemoryCalendar | None:
        identifier = self.database.default_reminder_calendar_id
        return self.calendar_with_identifier(identifier) if identifier else None

    # --- factories ---

    def new_calendar(self, entity_type: int) -> MemoryCalendar:
        return MemoryCalendar(
            calendar_identifier=_new_identifier(),
            title=None,
            allowed_entity_types=1 << entity_type,
        )

    def new_event(self) -> MemoryEvent:
        return MemoryEvent(event_identifier=_new_identifier())

    def new_reminder(self) -> MemoryReminder:
        return MemoryReminder(calendar_item_identifier=_new_identifier())

    # --- mutations ---

    def _writable_calendar(self, calendar: MemoryCalendar | None) -> MemoryCalendar:
        current = self._view("calendars").get(calendar.calendar_identifier) if calendar else None
        if current is None:
            raise BackendError("No calendar has been set.")
        if not current.allows_content_modifications:
            raise BackendError("That calendar may not be modified.")
        return current

    def save_calendar(self, calendar: MemoryCalendar, commit: bool) -> None:
        if not calendar.title:
            raise BackendError("The calendar has no title.")
        if calendar.source is None:
            raise BackendError("The calendar has no source.")
        existing = self._view("calendars").get(calendar.calendar_identifier)
        if existing is not None and not existing.allows_content_modifications:
            raise BackendError("That calendar may not be modified.")
        self._stage("calendars", calendar.calendar_identifier, copy.copy(calendar))
        if commit:
            self.commit()

    def remove_calendar(self, calendar: MemoryCalendar, commit: bool) -> None:
        identifier = calendar.calendar_identifier
        if identifier not in self._view("calendars"):
            raise BackendError("The calendar does not exist.")
        self._stage("calendars", identifier, None)
        for kind in ("events", "reminders"):
            for item_id, record in self._view(kind).items():
                if record.calendar and record.calendar.calendar_identifier == identifier:
                    self._stage(kind, item_id, None)
        if commit:
            self.commit()

    def save_event(self, event: MemoryEvent, span: int, commit: bool) -> None:
        self._writable_calendar(event.calendar)
        if event.start_date is None:
            raise BackendError("No start date has been set.")
        if event.end_date is None:
            raise BackendError("No end date has been set.")
        if event.end_date < event.start_date:
            raise BackendError("The start date must be before the end date.")
        record = copy.copy(event)
        if record.calendar_item_external_identifier is None:
            record.calendar_item_external_identifier = _new_identifier()
        self.span_log.append(("save", record.event_identifier, span))
        self._stage("events", record.event_identifier, record)
        if commit:
            self.commit()

    def remove_event(self, event: MemoryEvent, span: int, commit: bool) -> None:
        if event.event_identifier not in self._view("events"):
            raise BackendError("The event does not exist.")
        self._writable_calendar(event.calendar)
        self.span_log.append(("remove", event.event_identifier, span))
        self._stage("events", event.event_identifier, None)
        if commit:
            self.commit()

    def save_reminder(self, reminder: MemoryReminder, commit: bool) -> None:
        self._writable_calendar(reminder.calendar)
        record = copy.copy(reminder)
        if record.calendar_item_external_identifier is None:
            record.calendar_item_external_identifier = _new_identifier()
        self._stage("reminders", record.calendar_item_identifier, record)
        if commit:
            self.commit()

    def remove_reminder(self, reminder: MemoryReminder, commit: bool) -> None:
        if reminder.calendar_item_identifier not in self._view("reminders"):
            raise BackendError("The reminder does not exist.")
        self._writable_calendar(reminder.calendar)
        self._stage("reminders", reminder.calendar_item_identifier, None)
        if commit:
            self.commit()

    def commit(self) -> None:
        if self._commit_failure is not None:
            message, self._commit_failure = self._commit_failure, None
            raise BackendError(message)
        with self.database.lock:
            for (kind, identifier), record in self._staged.items():
                table = getattr(self.database, kind)
                if record is None:
                    table.pop(identifier, None)
                else:
                    table[identifier] = record
        logger.debug(f"Committed {len(self._staged)} change(s)")
        self._staged.clear()

    def reset(self) -> None:
        self._staged.clear()

    def refresh_sources_if_necessary(self) -> None:
        self.refresh_count += 1

    # --- predicates and fetches ---

    def _predicate(self, kind, start, end, calendars) -> MemoryPredicate:
        ids = None if calendars is None else frozenset(c.calendar_identifier for c in calendars)
        return MemoryPredicate(kind, start, end, ids)

    def predicate_for_events(self, start, end, calendars) -> MemoryPredicate:
        return self._predicate("event", start, end, calendars)

    def predicate_for_reminders(self, calendars) -> MemoryPredicate:
        return self._predicate("reminder", None, None, calendars)

    def predicate_for_incomplete_reminders(self, start, end, calendars) -> MemoryPredicate:
        return self._predicate("incompleteReminder", start, end, calendars)

    def predicate_for_completed_reminders(self, start, end, calendars) -> MemoryPredicate:
        return self._predicate("completedReminder", start, end, calendars)

    @staticmethod
    def _in_scope(record, predicate: MemoryPredicate, calendars: dict) -> bool:
        if record.calendar is None or record.calendar.calendar_identifier not in calendars:
            return False
        return predicate.calendar_ids is None or record.calendar.calendar_identifier in predicate.calendar_ids

    @staticmethod
    def _within(value: datetime | None, start: datetime | None, end: datetime | None) -> bool:
        if start is None and end is None:
            return True
        if value is None:
            return False
        return (start is None or value >= start) and (end is None or value <= end)

    def events_matching(self, predicate: MemoryPredicate) -> list[MemoryEvent]:
        if predicate.kind != "event":
            raise BackendError(f"Not an event predicate: {predicate.kind}")
        calendars = self._view("calendars")
        matches = [
            e
            for e in self._view("events").values()
            if self._in_scope(e, predicate, calendars)
            and e.start_date < predicate.end
            and e.end_date > predicate.start
        ]
        matches.sort(key=lambda e: e.start_date)
        return [self._export_item(e, calendars) for e in matches]

    def _reminders_matching(self, predicate: MemoryPredicate) -> list[MemoryReminder]:
        calendars = self._view("calendars")
        matches = []
        for reminder in self._view("reminders").values():
            if not self._in_scope(reminder, predicate, calendars):
                continue
            if predicate.kind == "incompleteReminder":
                due = resolve_date_components(reminder.due_date_components)
                if reminder.completed or not self._within(due, predicate.start, predicate.end):
                    continue
            elif predicate.kind == "completedReminder":
                if not reminder.completed or not self._within(
                    reminder.completion_date, predicate.start, predicate.end
                ):
                    continue
            matches.append(self._export_item(reminder, calendars))
        return matches

    def fetch_reminders_matching(self, predicate: MemoryPredicate, completion) -> None:
        if predicate.kind == "event":
            self._deliver(completion, None)
            return
        self._deliver(completion, self._reminders_matching(predicate))

    # --- lookups ---

    def event_with_identifier(self, identifier: str) -> MemoryEvent | None:
        record = self._view("events").get(identifier)
        return self._export_item(record) if record else None

    def calendar_item_with_identifier(self, identifier: str):
        record = self._view("events").get(identifier) or self._view("reminders").get(identifier)
        return self._export_item(record) if record else None

    def calendar_items_with_external_identifier(self, external_identifier: str) -> list:
        calendars = self._view("calendars")
        return [
            self._export_item(record, calendars)
            for kind in ("events", "reminders")
            for record in self._view(kind).values()
            if record.calendar_item_external_identifier == external_identifier
        ]
