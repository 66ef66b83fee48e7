"""
Unit Tests for Input Validation
"""

from datetime import datetime, timedelta, timezone

import pytest

from topicgen.utils.validation import (
    InvalidDateFormatError,
    InvalidRangeError,
    MalformedIdentityReferenceError,
    ensure_utc,
    parse_date_string,
    validate_date_range,
    validate_identity_reference,
)


class TestValidateDateRange:
    def test_normalizes_to_utc(self):
        cet = timezone(timedelta(hours=1))
        start, end = validate_date_range(
            datetime(2025, 1, 1, 1, 0, tzinfo=cet), "2025-01-02T00:00:00"
        )

        assert start == datetime(2025, 1, 1, 0, 0, tzinfo=timezone.utc)
        assert end.tzinfo == timezone.utc

    def test_accepts_z_suffix(self):
        start, _ = validate_date_range("2025-01-01T00:00:00Z", "2025-01-01T00:00:00Z")

        assert start == datetime(2025, 1, 1, tzinfo=timezone.utc)

    def test_start_after_end(self):
        with pytest.raises(InvalidRangeError, match="Start date must be before or equal to end date"):
            validate_date_range("2025-02-01T00:00:00Z", "2025-01-01T00:00:00Z")

    @pytest.mark.parametrize("bad", [None, "", "not a date", 12345])
    def test_invalid_start(self, bad):
        with pytest.raises(InvalidRangeError, match="Invalid start date"):
            validate_date_range(bad, "2025-01-01T00:00:00Z")

    def test_invalid_end(self):
        with pytest.raises(InvalidRangeError, match="Invalid end date"):
            validate_date_range("2025-01-01T00:00:00Z", "2025-13-01")

    def test_is_a_value_error(self):
        assert issubclass(InvalidRangeError, ValueError)


class TestValidateIdentityReference:
    @pytest.mark.parametrize(
        "reference",
        ["@alice", "alice", "<@U123456>", "U123456", "john.doe", "@team-leads", "jürgen", "a_b"],
    )
    def test_accepted_shapes(self, reference):
        assert validate_identity_reference(f"  {reference} ") == reference

    @pytest.mark.parametrize("reference", ["", "   ", None])
    def test_empty(self, reference):
        with pytest.raises(MalformedIdentityReferenceError, match="cannot be empty"):
            validate_identity_reference(reference)

    @pytest.mark.parametrize("reference", ["alice smith", "<@u123>", "@", "<@U1", "a/b"])
    def test_malformed_lists_accepted_formats(self, reference):
        with pytest.raises(MalformedIdentityReferenceError) as exc_info:
            validate_identity_reference(reference)

        message = str(exc_info.value)
        assert "Invalid user mention format" in message
        assert "@username, username, <@U123456>, or U123456" in message


class TestParseDateString:
    def test_start_of_day(self):
        assert parse_date_string("2025-12-20", "start date") == datetime(
            2025, 12, 20, tzinfo=timezone.utc
        )

    def test_end_of_day(self):
        end = parse_date_string("2025-12-24", "end date", end_of_day=True)

        assert end == datetime(2025, 12, 24, 23, 59, 59, 999999, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", ["20-12-2025", "2025/12/20", "", "2025-1-2"])
    def test_wrong_format(self, value):
        with pytest.raises(InvalidDateFormatError, match="Expected format: YYYY-MM-DD"):
            parse_date_string(value, "start date")

    def test_impossible_date(self):
        with pytest.raises(InvalidDateFormatError, match='Invalid end date: "2025-02-30"'):
            parse_date_string("2025-02-30", "end date")


def test_ensure_utc_treats_naive_as_utc():
    naive = datetime(2025, 1, 1, 12, 0)

    assert ensure_utc(naive) == datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
