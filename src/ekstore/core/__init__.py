"""Core data model - enums, colors, entities and errors with no backend I/O."""

from .color import HEX_FALLBACK, derive_hex, encode_color, parse_hex
from .enums import (
    AuthorizationStatus,
    Availability,
    CalendarType,
    ColorSpace,
    EntityType,
    PredicateType,
    SourceType,
    Span,
)
from .errors import (
    BackendOperationError,
    BackendUnavailableError,
    EventStoreError,
    SessionClosedError,
    ValidationError,
)
from .models import (
    Calendar,
    CalendarColor,
    CalendarData,
    CalendarItem,
    Event,
    EventData,
    Reminder,
    ReminderData,
    Source,
)

__all__ = [
    # Enums
    "AuthorizationStatus",
    "Availability",
    "CalendarType",
    "ColorSpace",
    "EntityType",
    "PredicateType",
    "SourceType",
    "Span",
    # Colors
    "HEX_FALLBACK",
    "derive_hex",
    "encode_color",
    "parse_hex",
    # Errors
    "BackendOperationError",
    "BackendUnavailableError",
    "EventStoreError",
    "SessionClosedError",
    "ValidationError",
    # Models
    "Calendar",
    "CalendarColor",
    "CalendarData",
    "CalendarItem",
    "Event",
    "EventData",
    "Reminder",
    "ReminderData",
    "Source",
]
