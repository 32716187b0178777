"""Predicate builder - opaque, typed query descriptors."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable

from ekstore.core.enums import ENTITY_MASK_BITS, EntityType, PredicateType
from ekstore.core.errors import ValidationError
from ekstore.ports import EventStoreBackend

logger = logging.getLogger(__name__)

EVENT_PREDICATES = frozenset({PredicateType.EVENT})
REMINDER_PREDICATES = frozenset(
    {
        PredicateType.REMINDER,
        PredicateType.INCOMPLETE_REMINDER,
        PredicateType.COMPLETED_REMINDER,
    }
)


@dataclass(frozen=True)
class Predicate:
    """
    A compiled query filter tagged with its family.

    Only the ``type`` is part of the public shape; the backend handle and the
    calendar handles it was built from stay private.
    """

    type: PredicateType
    _native: Any = field(repr=False, compare=False)
    _calendars: tuple = field(default=(), repr=False, compare=False)

    def to_dict(self) -> dict:
        return {"type": self.type.value}


def require_family(predicate, family: frozenset, operation: str) -> Predicate:
    """Raise ValidationError unless ``predicate`` belongs to ``family``."""
    if not isinstance(predicate, Predicate):
        raise ValidationError(f"{operation} expects a Predicate, got {type(predicate).__name__}")
    if predicate.type not in family:
        expected = ", ".join(sorted(f"'{t.value}'" for t in family))
        raise ValidationError(
            f"Invalid predicate type: '{predicate.type.value}'. {operation} requires {expected}."
        )
    return predicate


class PredicateBuilder:
    """Builds predicates against a backend, resolving calendar ids to handles."""

    def __init__(self, backend: EventStoreBackend):
        self._backend = backend

    def _resolve_calendars(self, calendar_ids: Iterable[str] | None, entity_type: EntityType):
        """
        Resolve ids to backend calendars of ``entity_type``.

        Returns None for "all calendars". Ids that do not resolve, or resolve
        to a calendar of the other kind, are dropped.
        """
        if calendar_ids is None:
            return None
        bit = ENTITY_MASK_BITS[entity_type]
        calendars = []
        for identifier in calendar_ids:
            calendar = self._backend.calendar_with_identifier(identifier) if identifier else None
            if calendar is None or not (calendar.allowed_entity_types & bit):
                logger.debug(f"Dropping calendar id {identifier!r} from {entity_type.value} predicate")
                continue
            calendars.append(calendar)
        return calendars

    @staticmethod
    def _check_bounds(start: datetime | None, end: datetime | None) -> None:
        for name, value in (("start", start), ("end", end)):
            if value is not None and not isinstance(value, datetime):
                raise ValidationError(f"Predicate {name} must be a datetime, got {type(value).__name__}")
        if start is not None and end is not None and end < start:
            raise ValidationError("Predicate end must not be before start.")

    def event_predicate(
        self, start: datetime, end: datetime, calendar_ids: Iterable[str] | None = None
    ) -> Predicate:
        if start is None or end is None:
            raise ValidationError("Event predicates require both a start and an end date.")
        self._check_bounds(start, end)
        calendars = self._resolve_calendars(calendar_ids, EntityType.EVENT)
        native = self._backend.predicate_for_events(start, end, calendars)
        return Predicate(PredicateType.EVENT, native, tuple(calendars or ()))

    def reminder_predicate(self, calendar_ids: Iterable[str] | None = None) -> Predicate:
        calendars = self._resolve_calendars(calendar_ids, EntityType.REMINDER)
        native = self._backend.predicate_for_reminders(calendars)
        return Predicate(PredicateType.REMINDER, native, tuple(calendars or ()))

    def incomplete_reminder_predicate(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        calendar_ids: Iterable[str] | None = None,
    ) -> Predicate:
        self._check_bounds(start, end)
        calendars = self._resolve_calendars(calendar_ids, EntityType.REMINDER)
        native = self._backend.predicate_for_incomplete_reminders(start, end, calendars)
        return Predicate(PredicateType.INCOMPLETE_REMINDER, native, tuple(calendars or ()))

    def completed_reminder_predicate(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        calendar_ids: Iterable[str] | None = None,
    ) -> Predicate:
        self._check_bounds(start, end)
        calendars = self._resolve_calendars(calendar_ids, EntityType.REMINDER)
        native = self._backend.predicate_for_completed_reminders(start, end, calendars)
        return Predicate(PredicateType.COMPLETED_REMINDER, native, tuple(calendars or ()))
