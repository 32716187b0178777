"""Ports - interfaces/protocols for external dependencies."""

from .event_store import (
    BackendError,
    DateComponents,
    EventStoreBackend,
    NativeCalendar,
    NativeColor,
    NativeEvent,
    NativeReminder,
    NativeSource,
)

__all__ = [
    "BackendError",
    "DateComponents",
    "EventStoreBackend",
    "NativeCalendar",
    "NativeColor",
    "NativeEvent",
    "NativeReminder",
    "NativeSource",
]
