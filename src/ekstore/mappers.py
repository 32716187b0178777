"""Translate native store objects into the stable data model.

Mappers never raise. Absent native values fall back to the per-entity
default policy tables below.
"""

import logging
from datetime import datetime

from ekstore.core.color import DEFAULT_PRECISION, encode_color, unknown_color
from ekstore.core.enums import (
    EntityType,
    normalize_availability,
    normalize_calendar_type,
    normalize_entity_mask,
    normalize_source_type,
)
from ekstore.core.models import Calendar, CalendarItem, Event, Reminder, Source
from ekstore.ports import DateComponents, NativeEvent, NativeReminder

logger = logging.getLogger(__name__)

SOURCE_DEFAULTS = {
    "title": "",
}

CALENDAR_DEFAULTS = {
    "title": "Untitled Calendar",
    "allows_content_modifications": False,
    "source": "",
}

EVENT_DEFAULTS = {
    "title": "Untitled Event",
    "notes": None,
    "start_date": None,
    "end_date": None,
    "all_day": False,
    "calendar_id": "",
    "calendar_title": "",
    "location": None,
    "url": None,
    "has_alarms": False,
    "calendar_item_external_identifier": None,
}

REMINDER_DEFAULTS = {
    "title": "Untitled Reminder",
    "notes": None,
    "calendar_id": "",
    "calendar_title": "",
    "completed": False,
    "completion_date": None,
    "priority": 0,
    "has_alarms": False,
    "calendar_item_external_identifier": None,
}


def _get(native, name: str, defaults: dict):
    value = getattr(native, name, None)
    return defaults[name] if value is None else value


def _calendar_ref(native, defaults: dict) -> tuple[str, str]:
    calendar = getattr(native, "calendar", None)
    if calendar is None:
        return defaults["calendar_id"], defaults["calendar_title"]
    return (
        getattr(calendar, "calendar_identifier", None) or defaults["calendar_id"],
        getattr(calendar, "title", None) or defaults["calendar_title"],
    )


def resolve_date_components(components: DateComponents | None) -> datetime | None:
    """Resolve partial date components to an instant, or None if they cannot be."""
    if components is None:
        return None
    try:
        return datetime(
            components.year,
            components.month,
            components.day,
            components.hour or 0,
            components.minute or 0,
            components.second or 0,
            tzinfo=components.time_zone,
        )
    except (TypeError, ValueError) as e:
        logger.debug(f"Unresolvable date components {components}: {e}")
        return None


def map_source(native) -> Source:
    return Source(
        id=native.source_identifier,
        title=_get(native, "title", SOURCE_DEFAULTS),
        source_type=normalize_source_type(getattr(native, "source_type", None)),
    )


def map_calendar(native, precision: int = DEFAULT_PRECISION) -> Calendar:
    color = getattr(native, "color", None)
    source = getattr(native, "source", None)
    return Calendar(
        id=native.calendar_identifier,
        title=_get(native, "title", CALENDAR_DEFAULTS),
        allows_content_modifications=bool(
            _get(native, "allows_content_modifications", CALENDAR_DEFAULTS)
        ),
        type=normalize_calendar_type(getattr(native, "type", None)),
        color=(
            encode_color(color.components, color.space, precision)
            if color is not None
            else unknown_color()
        ),
        source=getattr(source, "title", None) or CALENDAR_DEFAULTS["source"],
        allowed_entity_types=normalize_entity_mask(getattr(native, "allowed_entity_types", None)),
    )


def map_event(native) -> Event:
    calendar_id, calendar_title = _calendar_ref(native, EVENT_DEFAULTS)
    url = getattr(native, "url", None)
    return Event(
        id=native.event_identifier,
        title=_get(native, "title", EVENT_DEFAULTS),
        notes=_get(native, "notes", EVENT_DEFAULTS),
        start_date=_get(native, "start_date", EVENT_DEFAULTS),
        end_date=_get(native, "end_date", EVENT_DEFAULTS),
        is_all_day=bool(_get(native, "all_day", EVENT_DEFAULTS)),
        calendar_id=calendar_id,
        calendar_title=calendar_title,
        location=_get(native, "location", EVENT_DEFAULTS),
        url=str(url) if url is not None else EVENT_DEFAULTS["url"],
        has_alarms=bool(_get(native, "has_alarms", EVENT_DEFAULTS)),
        availability=normalize_availability(getattr(native, "availability", None)),
        external_identifier=_get(native, "calendar_item_external_identifier", EVENT_DEFAULTS),
    )


def map_reminder(native) -> Reminder:
    calendar_id, calendar_title = _calendar_ref(native, REMINDER_DEFAULTS)
    return Reminder(
        id=native.calendar_item_identifier,
        title=_get(native, "title", REMINDER_DEFAULTS),
        notes=_get(native, "notes", REMINDER_DEFAULTS),
        calendar_id=calendar_id,
        calendar_title=calendar_title,
        completed=bool(_get(native, "completed", REMINDER_DEFAULTS)),
        completion_date=_get(native, "completion_date", REMINDER_DEFAULTS),
        due_date=resolve_date_components(getattr(native, "due_date_components", None)),
        start_date=resolve_date_components(getattr(native, "start_date_components", None)),
        priority=int(_get(native, "priority", REMINDER_DEFAULTS)),
        has_alarms=bool(_get(native, "has_alarms", REMINDER_DEFAULTS)),
        external_identifier=_get(native, "calendar_item_external_identifier", REMINDER_DEFAULTS),
    )


def classify_item(native) -> EntityType | None:
    """Decide whether a native calendar item is an event or a reminder."""
    if isinstance(native, NativeEvent):
        return EntityType.EVENT
    if isinstance(native, NativeReminder):
        return EntityType.REMINDER
    return None


def map_calendar_item(native) -> CalendarItem | None:
    """Map an event or reminder into a tagged CalendarItem; unknown kinds give None."""
    kind = classify_item(native)
    if kind is EntityType.EVENT:
        return CalendarItem(kind=kind, item=map_event(native))
    if kind is EntityType.REMINDER:
        return CalendarItem(kind=kind, item=map_reminder(native))
    logger.debug(f"Ignoring calendar item of unknown kind: {type(native).__name__}")
    return None
