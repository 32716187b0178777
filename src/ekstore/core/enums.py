"""Stable string enumerations and the raw-code normalizer.

Backends report enumerated values as raw integer codes (EventKit numbering).
The ``normalize_*`` functions are total: anything they do not recognize maps
to the ``UNKNOWN`` member. The ``parse_*`` functions go the other way for
caller input and are strict.
"""

from enum import Enum

from .errors import ValidationError


class EntityType(str, Enum):
    EVENT = "event"
    REMINDER = "reminder"


class CalendarType(str, Enum):
    LOCAL = "local"
    CALDAV = "calDAV"
    EXCHANGE = "exchange"
    SUBSCRIPTION = "subscription"
    BIRTHDAY = "birthday"
    UNKNOWN = "unknown"


class SourceType(str, Enum):
    LOCAL = "local"
    EXCHANGE = "exchange"
    CALDAV = "calDAV"
    MOBILEME = "mobileMe"
    SUBSCRIBED = "subscribed"
    BIRTHDAYS = "birthdays"
    UNKNOWN = "unknown"


class ColorSpace(str, Enum):
    RGB = "rgb"
    MONOCHROME = "monochrome"
    CMYK = "cmyk"
    LAB = "lab"
    DEVICE_N = "deviceN"
    INDEXED = "indexed"
    PATTERN = "pattern"
    UNKNOWN = "unknown"


class Availability(str, Enum):
    FREE = "free"
    BUSY = "busy"
    TENTATIVE = "tentative"
    UNAVAILABLE = "unavailable"
    UNKNOWN = "unknown"


class AuthorizationStatus(str, Enum):
    NOT_DETERMINED = "notDetermined"
    RESTRICTED = "restricted"
    DENIED = "denied"
    AUTHORIZED = "authorized"
    FULL_ACCESS = "fullAccess"
    WRITE_ONLY = "writeOnly"
    UNKNOWN = "unknown"


class PredicateType(str, Enum):
    EVENT = "event"
    REMINDER = "reminder"
    INCOMPLETE_REMINDER = "incompleteReminder"
    COMPLETED_REMINDER = "completedReminder"


class Span(str, Enum):
    THIS_EVENT = "thisEvent"
    FUTURE_EVENTS = "futureEvents"


# Raw EventKit codes
ENTITY_TYPE_CODES = {EntityType.EVENT: 0, EntityType.REMINDER: 1}
ENTITY_MASK_BITS = {EntityType.EVENT: 1 << 0, EntityType.REMINDER: 1 << 1}
SPAN_CODES = {Span.THIS_EVENT: 0, Span.FUTURE_EVENTS: 1}
AVAILABILITY_CODES = {
    Availability.BUSY: 0,
    Availability.FREE: 1,
    Availability.TENTATIVE: 2,
    Availability.UNAVAILABLE: 3,
}
AUTHORIZATION_CODES = {
    AuthorizationStatus.NOT_DETERMINED: 0,
    AuthorizationStatus.RESTRICTED: 1,
    AuthorizationStatus.DENIED: 2,
    AuthorizationStatus.FULL_ACCESS: 3,
    AuthorizationStatus.WRITE_ONLY: 4,
}

_CALENDAR_TYPES = {
    0: CalendarType.LOCAL,
    1: CalendarType.CALDAV,
    2: CalendarType.EXCHANGE,
    3: CalendarType.SUBSCRIPTION,
    4: CalendarType.BIRTHDAY,
}

_SOURCE_TYPES = {
    0: SourceType.LOCAL,
    1: SourceType.EXCHANGE,
    2: SourceType.CALDAV,
    3: SourceType.MOBILEME,
    4: SourceType.SUBSCRIBED,
    5: SourceType.BIRTHDAYS,
}

_COLOR_SPACES = {
    0: ColorSpace.MONOCHROME,
    1: ColorSpace.RGB,
    2: ColorSpace.CMYK,
    3: ColorSpace.LAB,
    4: ColorSpace.DEVICE_N,
    5: ColorSpace.INDEXED,
    6: ColorSpace.PATTERN,
}

_AVAILABILITIES = {code: value for value, code in AVAILABILITY_CODES.items()}
_AUTHORIZATIONS = {code: value for value, code in AUTHORIZATION_CODES.items()}

COLOR_SPACE_CODES = {value: code for code, value in _COLOR_SPACES.items()}


def _lookup(table: dict, code, default):
    try:
        return table.get(code, default)
    except TypeError:
        # unhashable garbage from a misbehaving backend
        return default


def normalize_calendar_type(code) -> CalendarType:
    return _lookup(_CALENDAR_TYPES, code, CalendarType.UNKNOWN)


def normalize_source_type(code) -> SourceType:
    return _lookup(_SOURCE_TYPES, code, SourceType.UNKNOWN)


def normalize_color_space(code) -> ColorSpace:
    return _lookup(_COLOR_SPACES, code, ColorSpace.UNKNOWN)


def normalize_availability(code) -> Availability:
    """Map a raw availability code; ``-1`` (not supported) becomes unknown."""
    return _lookup(_AVAILABILITIES, code, Availability.UNKNOWN)


def normalize_authorization_status(code, full_access_split: bool = True) -> AuthorizationStatus:
    """
    Map a raw authorization status code.

    Code 3 means "full access" on systems that distinguish full and write-only
    access and plain "authorized" on systems that predate the split.
    """
    status = _lookup(_AUTHORIZATIONS, code, AuthorizationStatus.UNKNOWN)
    if status is AuthorizationStatus.FULL_ACCESS and not full_access_split:
        return AuthorizationStatus.AUTHORIZED
    return status


def normalize_entity_mask(mask) -> frozenset[EntityType]:
    """Expand a raw entity-type bit mask into a set of entity types."""
    if not isinstance(mask, int):
        return frozenset()
    return frozenset(t for t, bit in ENTITY_MASK_BITS.items() if mask & bit)


def entity_mask(types) -> int:
    mask = 0
    for t in types:
        mask |= ENTITY_MASK_BITS[EntityType(t)]
    return mask


def _parse(enum_cls, value, label: str, allowed=None):
    if isinstance(value, enum_cls):
        member = value
    else:
        try:
            member = enum_cls(value)
        except (ValueError, TypeError):
            member = None
    if member is None or (allowed is not None and member not in allowed):
        choices = ", ".join(f'"{m.value}"' for m in (allowed or enum_cls))
        raise ValidationError(f"Invalid {label}: {value!r}. Must be one of {choices}.")
    return member


def parse_entity_type(value) -> EntityType:
    return _parse(EntityType, value, "entity type")


def parse_span(value) -> Span:
    return _parse(Span, value, "span")


def parse_availability(value) -> Availability:
    """Parse an availability for writing; ``unknown`` cannot be written."""
    return _parse(Availability, value, "availability", allowed=tuple(AVAILABILITY_CODES))
