"""Stable data model - immutable snapshots and mutation DTOs."""

from dataclasses import dataclass
from datetime import datetime

from .enums import (
    Availability,
    CalendarType,
    ColorSpace,
    EntityType,
    SourceType,
)
from .errors import ValidationError


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_datetime(value, name: str) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            # Python < 3.11 does not accept a trailing Z
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            pass
    raise ValidationError(f"Invalid {name}: {value!r}. Expected an ISO-8601 date.")


@dataclass(frozen=True)
class Source:
    """An account or provider that owns calendars."""

    id: str
    title: str
    source_type: SourceType

    def to_dict(self) -> dict:
        return {"id": self.id, "title": self.title, "sourceType": self.source_type.value}


@dataclass(frozen=True)
class CalendarColor:
    """Calendar color as approximate hex, raw components and original color space."""

    hex: str
    components: str
    space: ColorSpace

    def to_dict(self) -> dict:
        return {"hex": self.hex, "components": self.components, "space": self.space.value}


@dataclass(frozen=True)
class Calendar:
    id: str
    title: str
    allows_content_modifications: bool
    type: CalendarType
    color: CalendarColor
    # source title, not id
    source: str
    allowed_entity_types: frozenset[EntityType]

    def allows(self, entity_type: EntityType) -> bool:
        return entity_type in self.allowed_entity_types

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "allowsContentModifications": self.allows_content_modifications,
            "type": self.type.value,
            "color": self.color.to_dict(),
            "source": self.source,
            "allowedEntityTypes": sorted(t.value for t in self.allowed_entity_types),
        }


@dataclass(frozen=True)
class Event:
    id: str
    title: str
    notes: str | None
    start_date: datetime | None
    end_date: datetime | None
    is_all_day: bool
    calendar_id: str
    calendar_title: str
    location: str | None
    url: str | None
    has_alarms: bool
    availability: Availability
    external_identifier: str | None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "notes": self.notes,
            "startDate": _iso(self.start_date),
            "endDate": _iso(self.end_date),
            "isAllDay": self.is_all_day,
            "calendarId": self.calendar_id,
            "calendarTitle": self.calendar_title,
            "location": self.location,
            "url": self.url,
            "hasAlarms": self.has_alarms,
            "availability": self.availability.value,
            "externalIdentifier": self.external_identifier,
        }


@dataclass(frozen=True)
class Reminder:
    id: str
    title: str
    notes: str | None
    calendar_id: str
    calendar_title: str
    completed: bool
    completion_date: datetime | None
    due_date: datetime | None
    start_date: datetime | None
    priority: int
    has_alarms: bool
    external_identifier: str | None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "notes": self.notes,
            "calendarId": self.calendar_id,
            "calendarTitle": self.calendar_title,
            "completed": self.completed,
            "completionDate": _iso(self.completion_date),
            "dueDate": _iso(self.due_date),
            "startDate": _iso(self.start_date),
            "priority": self.priority,
            "hasAlarms": self.has_alarms,
            "externalIdentifier": self.external_identifier,
        }


@dataclass(frozen=True)
class CalendarItem:
    """An event or a reminder, tagged with its kind."""

    kind: EntityType
    item: Event | Reminder

    def to_dict(self) -> dict:
        return {"type": self.kind.value, "item": self.item.to_dict()}


@dataclass
class CalendarData:
    """Fields for creating (no id) or updating (id) a calendar."""

    title: str | None = None
    entity_type: EntityType | str | None = None
    id: str | None = None
    source_id: str | None = None
    color: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "CalendarData":
        color = data.get("color")
        if isinstance(color, dict):
            color = color.get("hex")
        return cls(
            title=data.get("title"),
            entity_type=data.get("entityType"),
            id=data.get("id") or None,
            source_id=data.get("sourceId") or None,
            color=color,
        )


@dataclass
class EventData:
    """Fields for creating or updating an event. ``None`` leaves a field untouched."""

    title: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    id: str | None = None
    notes: str | None = None
    is_all_day: bool | None = None
    calendar_id: str | None = None
    location: str | None = None
    url: str | None = None
    availability: Availability | str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "EventData":
        return cls(
            title=data.get("title"),
            start_date=_parse_datetime(data.get("startDate"), "startDate"),
            end_date=_parse_datetime(data.get("endDate"), "endDate"),
            id=data.get("id") or None,
            notes=data.get("notes"),
            is_all_day=data.get("isAllDay"),
            calendar_id=data.get("calendarId") or None,
            location=data.get("location"),
            url=data.get("url"),
            availability=data.get("availability"),
        )


@dataclass
class ReminderData:
    """Fields for creating or updating a reminder. ``None`` leaves a field untouched."""

    title: str | None = None
    id: str | None = None
    notes: str | None = None
    calendar_id: str | None = None
    completed: bool | None = None
    due_date: datetime | None = None
    start_date: datetime | None = None
    priority: int | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "ReminderData":
        return cls(
            title=data.get("title"),
            id=data.get("id") or None,
            notes=data.get("notes"),
            calendar_id=data.get("calendarId") or None,
            completed=data.get("completed"),
            due_date=_parse_datetime(data.get("dueDate"), "dueDate"),
            start_date=_parse_datetime(data.get("startDate"), "startDate"),
            priority=data.get("priority"),
        )
