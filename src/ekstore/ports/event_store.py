"""Event store backend interface.

Native objects are described structurally. Enumerated attributes carry the raw
EventKit integer codes; ``ekstore.core.enums`` turns them into stable tags.
"""

from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Any, Callable, Protocol, Sequence, runtime_checkable


class BackendError(Exception):
    """Raised by a backend when the store rejects a save, remove or commit."""

    pass


@dataclass(frozen=True)
class NativeColor:
    """Raw color: channel values in color-space order plus a color-space model code."""

    components: tuple[float, ...]
    space: int


@dataclass(frozen=True)
class DateComponents:
    """Partial calendar date as stored on reminders."""

    year: int | None = None
    month: int | None = None
    day: int | None = None
    hour: int | None = None
    minute: int | None = None
    second: int | None = None
    time_zone: tzinfo | None = None

    @classmethod
    def from_datetime(cls, value: datetime) -> "DateComponents":
        return cls(
            year=value.year,
            month=value.month,
            day=value.day,
            hour=value.hour,
            minute=value.minute,
            second=value.second,
            time_zone=value.tzinfo,
        )


@runtime_checkable
class NativeSource(Protocol):
    source_identifier: str
    title: str | None
    source_type: int


@runtime_checkable
class NativeCalendar(Protocol):
    calendar_identifier: str
    title: str | None
    allows_content_modifications: bool
    type: int
    color: NativeColor | None
    source: NativeSource | None
    allowed_entity_types: int


@runtime_checkable
class NativeEvent(Protocol):
    event_identifier: str
    calendar_item_external_identifier: str | None
    title: str | None
    notes: str | None
    start_date: datetime | None
    end_date: datetime | None
    all_day: bool
    calendar: NativeCalendar | None
    location: str | None
    url: str | None
    has_alarms: bool
    availability: int


@runtime_checkable
class NativeReminder(Protocol):
    calendar_item_identifier: str
    calendar_item_external_identifier: str | None
    title: str | None
    notes: str | None
    calendar: NativeCalendar | None
    completed: bool
    completion_date: datetime | None
    due_date_components: DateComponents | None
    start_date_components: DateComponents | None
    priority: int
    has_alarms: bool


AccessCallback = Callable[[bool, str | None], None]
RemindersCallback = Callable[[Sequence[NativeReminder] | None], None]


@runtime_checkable
class EventStoreBackend(Protocol):
    """Interface to a platform calendar/reminder store.

    Saves, removes and commits raise BackendError on failure. Authorization
    requests and reminder fetches report through completion callbacks that may
    run on any thread.
    """

    supports_full_access: bool
    supports_delegate_sources: bool

    def authorization_status(self, entity_type: int) -> int:
        ...

    def request_full_access_to_events(self, completion: AccessCallback) -> None:
        ...

    def request_write_only_access_to_events(self, completion: AccessCallback) -> None:
        ...

    def request_full_access_to_reminders(self, completion: AccessCallback) -> None:
        ...

    def sources(self) -> Sequence[NativeSource]:
        ...

    def delegate_sources(self) -> Sequence[NativeSource]:
        ...

    def source_with_identifier(self, identifier: str) -> NativeSource | None:
        ...

    def calendars(self, entity_type: int) -> Sequence[NativeCalendar]:
        ...

    def calendar_with_identifier(self, identifier: str) -> NativeCalendar | None:
        ...

    def default_calendar_for_new_events(self) -> NativeCalendar | None:
        ...

    def default_calendar_for_new_reminders(self) -> NativeCalendar | None:
        ...

    def new_calendar(self, entity_type: int) -> NativeCalendar:
        ...

    def new_event(self) -> NativeEvent:
        ...

    def new_reminder(self) -> NativeReminder:
        ...

    def save_calendar(self, calendar: NativeCalendar, commit: bool) -> None:
        ...

    def remove_calendar(self, calendar: NativeCalendar, commit: bool) -> None:
        ...

    def save_event(self, event: NativeEvent, span: int, commit: bool) -> None:
        ...

    def remove_event(self, event: NativeEvent, span: int, commit: bool) -> None:
        ...

    def save_reminder(self, reminder: NativeReminder, commit: bool) -> None:
        ...

    def remove_reminder(self, reminder: NativeReminder, commit: bool) -> None:
        ...

    def commit(self) -> None:
        ...

    def reset(self) -> None:
        ...

    def refresh_sources_if_necessary(self) -> None:
        ...

    def predicate_for_events(
        self, start: datetime, end: datetime, calendars: Sequence[NativeCalendar] | None
    ) -> Any:
        ...

    def predicate_for_reminders(self, calendars: Sequence[NativeCalendar] | None) -> Any:
        ...

    def predicate_for_incomplete_reminders(
        self,
        start: datetime | None,
        end: datetime | None,
        calendars: Sequence[NativeCalendar] | None,
    ) -> Any:
        ...

    def predicate_for_completed_reminders(
        self,
        start: datetime | None,
        end: datetime | None,
        calendars: Sequence[NativeCalendar] | None,
    ) -> Any:
        ...

    def events_matching(self, predicate: Any) -> Sequence[NativeEvent]:
        ...

    def fetch_reminders_matching(self, predicate: Any, completion: RemindersCallback) -> None:
        ...

    def event_with_identifier(self, identifier: str) -> NativeEvent | None:
        ...

    def calendar_item_with_identifier(self, identifier: str) -> Any:
        ...

    def calendar_items_with_external_identifier(self, external_identifier: str) -> Sequence[Any]:
        ...
