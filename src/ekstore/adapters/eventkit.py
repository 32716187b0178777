"""EventKit adapter - macOS Calendar and Reminders via PyObjC."""

import logging
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ekstore.core.errors import BackendUnavailableError
from ekstore.ports import BackendError, DateComponents, NativeColor

logger = logging.getLogger(__name__)

EVENT = 0
REMINDER = 1

# NSDateComponentUndefined (NSIntegerMax)
_UNDEFINED = 0x7FFFFFFFFFFFFFFF

# NSColorSpaceModel -> component accessors, in channel order
_COMPONENT_ACCESSORS = {
    0: ("whiteComponent", "alphaComponent"),
    1: ("redComponent", "greenComponent", "blueComponent", "alphaComponent"),
    2: ("cyanComponent", "magentaComponent", "yellowComponent", "blackComponent", "alphaComponent"),
}


def _load_frameworks():
    try:
        import AppKit
        import EventKit
        import Foundation
    except ImportError as e:
        raise BackendUnavailableError(
            "EventKit bindings not found - install with 'pip install ekstore[macos]'"
        ) from e
    return EventKit, Foundation, AppKit


def _text(value) -> str | None:
    return str(value) if value is not None else None


def _describe(error) -> str:
    if error is None:
        return "unknown error"
    return str(error.localizedDescription())


class _Record:
    """Attribute view over a native EventKit object."""

    def __init__(self, raw, backend: "EventKitBackend"):
        self.raw = raw
        self._backend = backend


class EKSourceRecord(_Record):
    @property
    def source_identifier(self) -> str:
        return str(self.raw.sourceIdentifier())

    @property
    def title(self) -> str | None:
        return _text(self.raw.title())

    @property
    def source_type(self) -> int:
        return int(self.raw.sourceType())


class EKCalendarRecord(_Record):
    @property
    def calendar_identifier(self) -> str:
        return str(self.raw.calendarIdentifier())

    @property
    def title(self) -> str | None:
        return _text(self.raw.title())

    @title.setter
    def title(self, value: str) -> None:
        self.raw.setTitle_(value)

    @property
    def allows_content_modifications(self) -> bool:
        return bool(self.raw.allowsContentModifications())

    @property
    def type(self) -> int:
        return int(self.raw.type())

    @property
    def color(self) -> NativeColor | None:
        return self._backend.native_color(self.raw.color())

    @color.setter
    def color(self, value: NativeColor) -> None:
        self.raw.setColor_(self._backend.ns_color(value))

    @property
    def source(self) -> EKSourceRecord | None:
        source = self.raw.source()
        return EKSourceRecord(source, self._backend) if source is not None else None

    @source.setter
    def source(self, value: EKSourceRecord) -> None:
        self.raw.setSource_(value.raw)

    @property
    def allowed_entity_types(self) -> int:
        return int(self.raw.allowedEntityTypes())


class _CalendarItemRecord(_Record):
    @property
    def calendar_item_external_identifier(self) -> str | None:
        return _text(self.raw.calendarItemExternalIdentifier())

    @property
    def title(self) -> str | None:
        return _text(self.raw.title())

    @title.setter
    def title(self, value: str) -> None:
        self.raw.setTitle_(value)

    @property
    def notes(self) -> str | None:
        return _text(self.raw.notes())

    @notes.setter
    def notes(self, value: str) -> None:
        self.raw.setNotes_(value)

    @property
    def calendar(self) -> EKCalendarRecord | None:
        calendar = self.raw.calendar()
        return EKCalendarRecord(calendar, self._backend) if calendar is not None else None

    @calendar.setter
    def calendar(self, value: EKCalendarRecord) -> None:
        self.raw.setCalendar_(value.raw)

    @property
    def has_alarms(self) -> bool:
        return bool(self.raw.hasAlarms())


class EKEventRecord(_CalendarItemRecord):
    @property
    def event_identifier(self) -> str:
        return _text(self.raw.eventIdentifier()) or ""

    @property
    def start_date(self) -> datetime | None:
        return self._backend.to_datetime(self.raw.startDate())

    @start_date.setter
    def start_date(self, value: datetime) -> None:
        self.raw.setStartDate_(self._backend.ns_date(value))

    @property
    def end_date(self) -> datetime | None:
        return self._backend.to_datetime(self.raw.endDate())

    @end_date.setter
    def end_date(self, value: datetime) -> None:
        self.raw.setEndDate_(self._backend.ns_date(value))

    @property
    def all_day(self) -> bool:
        return bool(self.raw.isAllDay())

    @all_day.setter
    def all_day(self, value: bool) -> None:
        self.raw.setAllDay_(value)

    @property
    def location(self) -> str | None:
        return _text(self.raw.location())

    @location.setter
    def location(self, value: str) -> None:
        self.raw.setLocation_(value)

    @property
    def url(self) -> str | None:
        url = self.raw.URL()
        return str(url.absoluteString()) if url is not None else None

    @url.setter
    def url(self, value: str) -> None:
        self.raw.setURL_(self._backend.foundation.NSURL.URLWithString_(value))

    @property
    def availability(self) -> int:
        return int(self.raw.availability())

    @availability.setter
    def availability(self, value: int) -> None:
        self.raw.setAvailability_(value)


class EKReminderRecord(_CalendarItemRecord):
    @property
    def calendar_item_identifier(self) -> str:
        return str(self.raw.calendarItemIdentifier())

    @property
    def completed(self) -> bool:
        return bool(self.raw.isCompleted())

    @completed.setter
    def completed(self, value: bool) -> None:
        self.raw.setCompleted_(value)

    @property
    def completion_date(self) -> datetime | None:
        return self._backend.to_datetime(self.raw.completionDate())

    @completion_date.setter
    def completion_date(self, value: datetime | None) -> None:
        self.raw.setCompletionDate_(self._backend.ns_date(value) if value is not None else None)

    @property
    def due_date_components(self) -> DateComponents | None:
        return self._backend.date_components(self.raw.dueDateComponents())

    @due_date_components.setter
    def due_date_components(self, value: DateComponents) -> None:
        self.raw.setDueDateComponents_(self._backend.ns_date_components(value))

    @property
    def start_date_components(self) -> DateComponents | None:
        return self._backend.date_components(self.raw.startDateComponents())

    @start_date_components.setter
    def start_date_components(self, value: DateComponents) -> None:
        self.raw.setStartDateComponents_(self._backend.ns_date_components(value))

    @property
    def priority(self) -> int:
        return int(self.raw.priority())

    @priority.setter
    def priority(self, value: int) -> None:
        self.raw.setPriority_(value)


class _EmptyScope:
    """Predicate for a calendar filter that resolved to no calendars."""

    pass


class EventKitBackend:
    """
    EventKit adapter.

    Implements EventStoreBackend protocol over a single EKEventStore. Needs
    the PyObjC EventKit bindings, which are imported when the backend is
    created.
    """

    def __init__(self, store=None):
        self.eventkit, self.foundation, self.appkit = _load_frameworks()
        self._store = store or self.eventkit.EKEventStore.alloc().init()
        # macOS 14 split event access into full and write-only grants
        self.supports_full_access = bool(
            self._store.respondsToSelector_("requestFullAccessToEventsWithCompletion:")
        )
        self.supports_delegate_sources = bool(self._store.respondsToSelector_("delegateSources"))

    # --- conversions ---

    def to_datetime(self, ns_date) -> datetime | None:
        if ns_date is None:
            return None
        return datetime.fromtimestamp(ns_date.timeIntervalSince1970())

    def ns_date(self, value: datetime):
        return self.foundation.NSDate.dateWithTimeIntervalSince1970_(value.timestamp())

    def native_color(self, ns_color) -> NativeColor | None:
        """
        Read an NSColor's channels in its own color space.

        Pattern and catalog colors have no color space and raise on access;
        those are converted to sRGB first. Returns None when that fails too.
        """
        if ns_color is None:
            return None
        try:
            model = int(ns_color.colorSpace().colorSpaceModel())
            accessors = _COMPONENT_ACCESSORS.get(model, ())
            components = tuple(float(getattr(ns_color, name)()) for name in accessors)
            return NativeColor(components, model)
        except Exception as e:
            logger.debug(f"Color has no readable color space ({e}), converting to sRGB")
        try:
            converted = ns_color.colorUsingColorSpace_(self.appkit.NSColorSpace.sRGBColorSpace())
            if converted is None:
                return None
            components = tuple(float(getattr(converted, name)()) for name in _COMPONENT_ACCESSORS[1])
            return NativeColor(components, 1)
        except Exception as e:
            logger.warning(f"Could not read calendar color: {e}")
            return None

    def ns_color(self, value: NativeColor):
        r, g, b, a = (tuple(value.components) + (1.0,) * 4)[:4]
        return self.appkit.NSColor.colorWithSRGBRed_green_blue_alpha_(r, g, b, a)

    def date_components(self, ns_components) -> DateComponents | None:
        if ns_components is None:
            return None

        def _field(value) -> int | None:
            value = int(value)
            return None if value == _UNDEFINED else value

        return DateComponents(
            year=_field(ns_components.year()),
            month=_field(ns_components.month()),
            day=_field(ns_components.day()),
            hour=_field(ns_components.hour()),
            minute=_field(ns_components.minute()),
            second=_field(ns_components.second()),
            time_zone=self._tzinfo(ns_components.timeZone()),
        )

    def _tzinfo(self, ns_time_zone):
        if ns_time_zone is None:
            return None
        try:
            return ZoneInfo(str(ns_time_zone.name()))
        except (ZoneInfoNotFoundError, ValueError):
            offset = int(ns_time_zone.secondsFromGMT())
            return timezone(timedelta(seconds=offset))

    def ns_date_components(self, value: DateComponents):
        components = self.foundation.NSDateComponents.alloc().init()
        for setter, field in (
            (components.setYear_, value.year),
            (components.setMonth_, value.month),
            (components.setDay_, value.day),
            (components.setHour_, value.hour),
            (components.setMinute_, value.minute),
            (components.setSecond_, value.second),
        ):
            if field is not None:
                setter(field)
        if value.time_zone is not None:
            components.setTimeZone_(self._ns_time_zone(value.time_zone))
        return components

    def _ns_time_zone(self, tz):
        NSTimeZone = self.foundation.NSTimeZone
        key = getattr(tz, "key", None)
        if key:
            return NSTimeZone.timeZoneWithName_(key)
        offset = tz.utcoffset(None) or timedelta(0)
        return NSTimeZone.timeZoneForSecondsFromGMT_(int(offset.total_seconds()))

    def _wrap_item(self, raw):
        if raw is None:
            return None
        if raw.isKindOfClass_(self.eventkit.EKEvent):
            return EKEventRecord(raw, self)
        if raw.isKindOfClass_(self.eventkit.EKReminder):
            return EKReminderRecord(raw, self)
        return raw

    def _calendar(self, raw) -> EKCalendarRecord | None:
        return EKCalendarRecord(raw, self) if raw is not None else None

    @staticmethod
    def _check(result, action: str) -> None:
        ok, error = result
        if not ok:
            raise BackendError(f"Could not {action}: {_describe(error)}")

    # --- authorization ---

    def authorization_status(self, entity_type: int) -> int:
        return int(self.eventkit.EKEventStore.authorizationStatusForEntityType_(entity_type))

    @staticmethod
    def _access_handler(completion):
        def handler(granted, error):
            completion(bool(granted), _describe(error) if error is not None else None)

        return handler

    def request_full_access_to_events(self, completion) -> None:
        handler = self._access_handler(completion)
        if self.supports_full_access:
            self._store.requestFullAccessToEventsWithCompletion_(handler)
        else:
            self._store.requestAccessToEntityType_completion_(EVENT, handler)

    def request_write_only_access_to_events(self, completion) -> None:
        handler = self._access_handler(completion)
        if self.supports_full_access:
            self._store.requestWriteOnlyAccessToEventsWithCompletion_(handler)
        else:
            self._store.requestAccessToEntityType_completion_(EVENT, handler)

    def request_full_access_to_reminders(self, completion) -> None:
        handler = self._access_handler(completion)
        if self.supports_full_access:
            self._store.requestFullAccessToRemindersWithCompletion_(handler)
        else:
            self._store.requestAccessToEntityType_completion_(REMINDER, handler)

    # --- sources and calendars ---

    def sources(self) -> list[EKSourceRecord]:
        return [EKSourceRecord(s, self) for s in self._store.sources()]

    def delegate_sources(self) -> list[EKSourceRecord]:
        if not self.supports_delegate_sources:
            return []
        return [EKSourceRecord(s, self) for s in self._store.delegateSources() or []]

    def source_with_identifier(self, identifier: str) -> EKSourceRecord | None:
        source = self._store.sourceWithIdentifier_(identifier)
        return EKSourceRecord(source, self) if source is not None else None

    def calendars(self, entity_type: int) -> list[EKCalendarRecord]:
        return [EKCalendarRecord(c, self) for c in self._store.calendarsForEntityType_(entity_type)]

    def calendar_with_identifier(self, identifier: str) -> EKCalendarRecord | None:
        return self._calendar(self._store.calendarWithIdentifier_(identifier))

    def default_calendar_for_new_events(self) -> EKCalendarRecord | None:
        return self._calendar(self._store.defaultCalendarForNewEvents())

    def default_calendar_for_new_reminders(self) -> EKCalendarRecord | None:
        return self._calendar(self._store.defaultCalendarForNewReminders())

    # --- factories ---

    def new_calendar(self, entity_type: int) -> EKCalendarRecord:
        raw = self.eventkit.EKCalendar.calendarForEntityType_eventStore_(entity_type, self._store)
        return EKCalendarRecord(raw, self)

    def new_event(self) -> EKEventRecord:
        return EKEventRecord(self.eventkit.EKEvent.eventWithEventStore_(self._store), self)

    def new_reminder(self) -> EKReminderRecord:
        return EKReminderRecord(self.eventkit.EKReminder.reminderWithEventStore_(self._store), self)

    # --- mutations ---

    def save_calendar(self, calendar: EKCalendarRecord, commit: bool) -> None:
        self._check(self._store.saveCalendar_commit_error_(calendar.raw, commit, None), "save calendar")

    def remove_calendar(self, calendar: EKCalendarRecord, commit: bool) -> None:
        self._check(self._store.removeCalendar_commit_error_(calendar.raw, commit, None), "remove calendar")

    def save_event(self, event: EKEventRecord, span: int, commit: bool) -> None:
        self._check(self._store.saveEvent_span_commit_error_(event.raw, span, commit, None), "save event")

    def remove_event(self, event: EKEventRecord, span: int, commit: bool) -> None:
        self._check(self._store.removeEvent_span_commit_error_(event.raw, span, commit, None), "remove event")

    def save_reminder(self, reminder: EKReminderRecord, commit: bool) -> None:
        self._check(self._store.saveReminder_commit_error_(reminder.raw, commit, None), "save reminder")

    def remove_reminder(self, reminder: EKReminderRecord, commit: bool) -> None:
        self._check(self._store.removeReminder_commit_error_(reminder.raw, commit, None), "remove reminder")

    def commit(self) -> None:
        self._check(self._store.commit_(None), "commit changes")

    def reset(self) -> None:
        self._store.reset()

    def refresh_sources_if_necessary(self) -> None:
        self._store.refreshSourcesIfNecessary()

    # --- predicates and fetches ---

    @staticmethod
    def _raw_calendars(calendars):
        return None if calendars is None else [c.raw for c in calendars]

    def predicate_for_events(self, start, end, calendars):
        if calendars is not None and not calendars:
            return _EmptyScope()
        return self._store.predicateForEventsWithStartDate_endDate_calendars_(
            self.ns_date(start), self.ns_date(end), self._raw_calendars(calendars)
        )

    def predicate_for_reminders(self, calendars):
        if calendars is not None and not calendars:
            return _EmptyScope()
        return self._store.predicateForRemindersInCalendars_(self._raw_calendars(calendars))

    def predicate_for_incomplete_reminders(self, start, end, calendars):
        if calendars is not None and not calendars:
            return _EmptyScope()
        return self._store.predicateForIncompleteRemindersWithDueDateStarting_ending_calendars_(
            self.ns_date(start) if start is not None else None,
            self.ns_date(end) if end is not None else None,
            self._raw_calendars(calendars),
        )

    def predicate_for_completed_reminders(self, start, end, calendars):
        if calendars is not None and not calendars:
            return _EmptyScope()
        return self._store.predicateForCompletedRemindersWithCompletionDateStarting_ending_calendars_(
            self.ns_date(start) if start is not None else None,
            self.ns_date(end) if end is not None else None,
            self._raw_calendars(calendars),
        )

    def events_matching(self, predicate) -> list[EKEventRecord]:
        if isinstance(predicate, _EmptyScope):
            return []
        return [EKEventRecord(e, self) for e in self._store.eventsMatchingPredicate_(predicate) or []]

    def fetch_reminders_matching(self, predicate, completion) -> None:
        if isinstance(predicate, _EmptyScope):
            completion([])
            return

        def handler(reminders):
            if reminders is None:
                completion(None)
            else:
                completion([EKReminderRecord(r, self) for r in reminders])

        self._store.fetchRemindersMatchingPredicate_completion_(predicate, handler)

    # --- lookups ---

    def event_with_identifier(self, identifier: str) -> EKEventRecord | None:
        event = self._store.eventWithIdentifier_(identifier)
        return EKEventRecord(event, self) if event is not None else None

    def calendar_item_with_identifier(self, identifier: str):
        return self._wrap_item(self._store.calendarItemWithIdentifier_(identifier))

    def calendar_items_with_external_identifier(self, external_identifier: str) -> list:
        items = self._store.calendarItemsWithExternalIdentifier_(external_identifier) or []
        return [self._wrap_item(i) for i in items]
