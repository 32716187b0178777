"""Tests for enumeration normalization and parsing."""

import pytest

from ekstore.core.enums import (
    AuthorizationStatus,
    Availability,
    CalendarType,
    ColorSpace,
    EntityType,
    SourceType,
    Span,
    entity_mask,
    normalize_authorization_status,
    normalize_availability,
    normalize_calendar_type,
    normalize_color_space,
    normalize_entity_mask,
    normalize_source_type,
    parse_availability,
    parse_entity_type,
    parse_span,
)
from ekstore.core.errors import ValidationError


class TestNormalizers:
    @pytest.mark.parametrize(
        "code,expected",
        [
            (0, CalendarType.LOCAL),
            (1, CalendarType.CALDAV),
            (2, CalendarType.EXCHANGE),
            (3, CalendarType.SUBSCRIPTION),
            (4, CalendarType.BIRTHDAY),
        ],
    )
    def test_calendar_type(self, code, expected):
        assert normalize_calendar_type(code) is expected

    def test_source_types(self):
        assert normalize_source_type(3) is SourceType.MOBILEME
        assert normalize_source_type(5) is SourceType.BIRTHDAYS

    def test_color_space(self):
        assert normalize_color_space(0) is ColorSpace.MONOCHROME
        assert normalize_color_space(-1) is ColorSpace.UNKNOWN

    def test_availability(self):
        assert normalize_availability(0) is Availability.BUSY
        assert normalize_availability(1) is Availability.FREE
        assert normalize_availability(-1) is Availability.UNKNOWN

    @pytest.mark.parametrize(
        "normalize",
        [
            normalize_calendar_type,
            normalize_source_type,
            normalize_color_space,
            normalize_availability,
            normalize_authorization_status,
        ],
    )
    @pytest.mark.parametrize("code", [99, None, "3", [1]])
    def test_unrecognized_codes_are_unknown(self, normalize, code):
        assert normalize(code).value == "unknown"

    def test_authorization_full_access_split(self):
        assert normalize_authorization_status(3) is AuthorizationStatus.FULL_ACCESS
        assert normalize_authorization_status(3, full_access_split=False) is AuthorizationStatus.AUTHORIZED
        assert normalize_authorization_status(4) is AuthorizationStatus.WRITE_ONLY
        assert normalize_authorization_status(0) is AuthorizationStatus.NOT_DETERMINED

    def test_entity_mask(self):
        assert normalize_entity_mask(1) == {EntityType.EVENT}
        assert normalize_entity_mask(3) == {EntityType.EVENT, EntityType.REMINDER}
        assert normalize_entity_mask(None) == frozenset()
        assert entity_mask(["event", "reminder"]) == 3


class TestParsers:
    def test_entity_type(self):
        assert parse_entity_type("reminder") is EntityType.REMINDER
        assert parse_entity_type(EntityType.EVENT) is EntityType.EVENT

    @pytest.mark.parametrize("value", ["task", None, "", 0])
    def test_entity_type_rejects(self, value):
        with pytest.raises(ValidationError, match="Invalid entity type"):
            parse_entity_type(value)

    def test_span(self):
        assert parse_span("futureEvents") is Span.FUTURE_EVENTS
        with pytest.raises(ValidationError):
            parse_span("allEvents")

    def test_availability_cannot_write_unknown(self):
        assert parse_availability("tentative") is Availability.TENTATIVE
        with pytest.raises(ValidationError):
            parse_availability("unknown")
