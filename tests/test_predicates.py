"""Tests for predicate construction and family guards."""

from datetime import datetime, timedelta

import pytest

from ekstore.core.enums import PredicateType
from ekstore.core.errors import ValidationError
from ekstore.predicates import (
    EVENT_PREDICATES,
    REMINDER_PREDICATES,
    PredicateBuilder,
    require_family,
)

START = datetime(2025, 1, 15)
END = START + timedelta(days=7)


@pytest.fixture
def builder(backend):
    return PredicateBuilder(backend)


class TestEventPredicate:
    def test_type_and_public_shape(self, builder):
        predicate = builder.event_predicate(START, END)
        assert predicate.type is PredicateType.EVENT
        assert predicate.to_dict() == {"type": "event"}

    @pytest.mark.parametrize("start,end", [(None, END), (START, None)])
    def test_requires_both_bounds(self, builder, start, end):
        with pytest.raises(ValidationError, match="both a start and an end"):
            builder.event_predicate(start, end)

    def test_rejects_reversed_range(self, builder):
        with pytest.raises(ValidationError, match="before start"):
            builder.event_predicate(END, START)

    def test_rejects_non_datetime(self, builder):
        with pytest.raises(ValidationError, match="must be a datetime"):
            builder.event_predicate("2025-01-15", END)

    def test_drops_stale_calendar_ids(self, builder, event_calendar):
        predicate = builder.event_predicate(START, END, ["stale-id", "", event_calendar.calendar_identifier])
        assert [c.calendar_identifier for c in predicate._calendars] == [event_calendar.calendar_identifier]

    def test_drops_calendars_of_the_other_kind(self, builder, reminder_calendar):
        predicate = builder.event_predicate(START, END, [reminder_calendar.calendar_identifier])
        assert predicate._calendars == ()
        assert predicate._native.calendar_ids == frozenset()


class TestReminderPredicates:
    def test_all_calendars(self, builder):
        predicate = builder.reminder_predicate()
        assert predicate.type is PredicateType.REMINDER
        assert predicate._native.calendar_ids is None

    def test_open_ended_ranges(self, builder):
        assert builder.incomplete_reminder_predicate(end=END).type is PredicateType.INCOMPLETE_REMINDER
        assert builder.completed_reminder_predicate(start=START).type is PredicateType.COMPLETED_REMINDER

    def test_rejects_reversed_range(self, builder):
        with pytest.raises(ValidationError):
            builder.completed_reminder_predicate(END, START)

    def test_resolves_reminder_calendars(self, builder, reminder_calendar):
        predicate = builder.incomplete_reminder_predicate(calendar_ids=[reminder_calendar.calendar_identifier])
        assert predicate._native.calendar_ids == {reminder_calendar.calendar_identifier}


class TestRequireFamily:
    def test_accepts_member(self, builder):
        predicate = builder.completed_reminder_predicate()
        assert require_family(predicate, REMINDER_PREDICATES, "get_reminders_with_predicate") is predicate

    def test_rejects_other_family(self, builder):
        with pytest.raises(ValidationError, match="Invalid predicate type: 'reminder'"):
            require_family(builder.reminder_predicate(), EVENT_PREDICATES, "get_events_with_predicate")

    def test_rejects_non_predicates(self):
        with pytest.raises(ValidationError, match="expects a Predicate"):
            require_family({"type": "event"}, EVENT_PREDICATES, "get_events_with_predicate")
