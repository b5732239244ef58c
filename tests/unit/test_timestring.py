"""
Unit tests for valid-time strings.

Tests cover:
- Completing dates and seconds-precision times
- Calendar validation
- Conversion from timestamps and datetimes
- normalize() errors
"""

from datetime import datetime

import pytest

from datatable import timestring
from datatable.errors import ErrorCode, InvalidTime
from datatable.timestring import END_OF_TIME


class TestFromString:
    """Tests for from_string and is_valid."""

    def test_date_completes_to_midnight(self):
        """A bare date means midnight."""
        assert timestring.from_string("2010-01-01") == "2010-01-01 00:00:00.000000"

    def test_seconds_complete_to_zero_fraction(self):
        """A time without fraction gets six zero digits."""
        assert timestring.from_string("2015-06-01 12:30:45") == "2015-06-01 12:30:45.000000"

    def test_full_string_unchanged(self):
        """A full time string passes through."""
        value = "2016-02-29 23:59:59.123456"
        assert timestring.from_string(value) == value

    @pytest.mark.parametrize(
        "value",
        ["2010-02-30", "2011-02-29 00:00:00", "2010-13-01", "yesterday", "2010-1-1", ""],
    )
    def test_invalid_strings_give_empty(self, value):
        """Malformed or impossible dates give an empty string."""
        assert timestring.from_string(value) == ""

    def test_end_of_time_is_valid(self):
        """END_OF_TIME is itself a valid time string."""
        assert timestring.is_valid(END_OF_TIME)

    def test_is_valid_rejects_non_strings(self):
        """Only strings can be valid."""
        assert not timestring.is_valid(None)
        assert not timestring.is_valid(20100101)


class TestFromVariable:
    """Tests for from_variable and from_datetime."""

    def test_datetime(self):
        """Datetimes keep their microseconds."""
        dt = datetime(2015, 6, 1, 8, 5, 3, 42)
        assert timestring.from_variable(dt) == "2015-06-01 08:05:03.000042"

    def test_small_years_are_zero_padded(self):
        """Years below 1000 still give four digits."""
        assert timestring.from_datetime(datetime(5, 1, 2, 3, 4, 5, 6)) == "0005-01-02 03:04:05.000006"

    def test_timestamp(self):
        """Numbers are Unix timestamps in local time."""
        expected = timestring.from_datetime(datetime.fromtimestamp(1262304000))
        assert timestring.from_variable(1262304000) == expected
        assert timestring.from_variable(1262304000.0) == expected

    @pytest.mark.parametrize("value", [None, True, [], {}, object()])
    def test_unsupported_types_give_empty(self, value):
        """Anything else cannot be converted."""
        assert timestring.from_variable(value) == ""


class TestNow:
    """Tests for now()."""

    def test_now_is_valid_and_current(self):
        """now() lies between two surrounding clock readings."""
        before = timestring.from_datetime(datetime.now())
        current = timestring.now()
        after = timestring.from_datetime(datetime.now())

        assert timestring.is_valid(current)
        assert before <= current <= after

    def test_now_is_before_end_of_time(self):
        """The current version is always open at now()."""
        assert timestring.now() < END_OF_TIME


class TestNormalize:
    """Tests for normalize()."""

    def test_valid_value(self):
        """Valid input is normalised."""
        assert timestring.normalize("2012-01-01") == "2012-01-01 00:00:00.000000"

    def test_invalid_value_raises(self):
        """Invalid input raises InvalidTime naming the operation."""
        with pytest.raises(InvalidTime) as exc_info:
            timestring.normalize("not a time", "get_row_with_time")

        assert exc_info.value.code == ErrorCode.INVALID_TIME
        assert "get_row_with_time" in exc_info.value.message
        assert exc_info.value.time_value == "not a time"
