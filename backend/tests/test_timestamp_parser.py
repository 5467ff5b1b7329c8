"""
ClipSync Backend — Timestamp Normalizer Unit Tests
===================================================

What we test:
    ✅ Every client dialect (mobile, JS, desktop, epoch) lands on the same instant
    ✅ Offsets are converted to UTC; naive values are taken as UTC
    ✅ Nanoseconds truncate to microseconds
    ✅ Empty input means "not supplied"; garbage raises with the attempt count
"""

from datetime import datetime, timezone

import pytest

from clipsync.exceptions import UnparseableTimestampError, ValidationError
from clipsync.services.timestamp_parser import (
    TIMESTAMP_PATTERNS,
    normalize_or_now,
    parse_client_timestamp,
)

NOON = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestAcceptedFormats:
    @pytest.mark.parametrize(
        "value",
        [
            "2024-01-01T12:00:00.000000Z",
            "2024-01-01T12:00:00.000000",
            "2024-01-01T12:00:00.000Z",
            "2024-01-01T12:00:00.000",
            "2024-01-01T12:00:00.000000000Z",
            "2024-01-01T12:00:00Z",
            "2024-01-01T12:00:00",
            "2024-01-01T12:00:00+00:00",
            "2024-01-01T14:00:00+02:00",
            "2024-01-01T07:00:00.000-05:00",
            "2024-01-01 12:00:00",
            "2024-01-01 12:00:00.000",
            "2024/01/01 12:00:00",
            "1704110400",
            "1704110400.000",
        ],
    )
    def test_same_instant(self, value):
        assert parse_client_timestamp(value) == NOON

    def test_result_is_aware_utc(self):
        parsed = parse_client_timestamp("2024-01-01T12:00:00")
        assert parsed.tzinfo is not None
        assert parsed.utcoffset().total_seconds() == 0

    def test_microseconds_preserved(self):
        parsed = parse_client_timestamp("2024-01-01T12:00:00.123456")
        assert parsed.microsecond == 123456

    def test_milliseconds_scaled(self):
        parsed = parse_client_timestamp("2024-01-01T12:00:00.123Z")
        assert parsed.microsecond == 123000

    def test_nanoseconds_truncated(self):
        parsed = parse_client_timestamp("2024-01-01T12:00:00.123456789Z")
        assert parsed.microsecond == 123456

    def test_surrounding_whitespace_ignored(self):
        assert parse_client_timestamp("  2024-01-01T12:00:00Z \n") == NOON


class TestRejectedInput:
    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_empty_means_not_supplied(self, value):
        assert parse_client_timestamp(value) is None

    @pytest.mark.parametrize(
        "value",
        ["not-a-time", "2024-13-01T12:00:00Z", "2024-02-30 10:00:00", "12:00:00", "2024-01-01"],
    )
    def test_unparseable(self, value):
        with pytest.raises(UnparseableTimestampError) as exc_info:
            parse_client_timestamp(value)
        assert exc_info.value.value == value
        assert exc_info.value.attempted == len(TIMESTAMP_PATTERNS)

    def test_unparseable_is_a_validation_error(self):
        with pytest.raises(ValidationError):
            parse_client_timestamp("yesterday")


class TestNormalizeOrNow:
    def test_uses_supplied_value(self):
        assert normalize_or_now("2024-01-01T12:00:00Z") == NOON

    def test_falls_back_to_now(self):
        now = datetime(2030, 5, 5, tzinfo=timezone.utc)
        assert normalize_or_now(None, now=now) == now
        assert normalize_or_now("", now=now) == now

    def test_default_now_is_current(self):
        before = datetime.now(timezone.utc)
        result = normalize_or_now(None)
        assert before <= result <= datetime.now(timezone.utc)
