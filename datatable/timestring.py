"""
Time strings for valid-time columns.

All valid times are stored as fixed-width strings with microsecond
precision, ``YYYY-MM-DD HH:MM:SS.ffffff``, so that lexicographic order is
chronological order both in memory and in the database.

Invariants:
    - END_OF_TIME is the greatest value representable in the format
    - now() samples the clock once; seconds and microseconds come from
      the same instant
    - normalize() either returns a valid time string or raises InvalidTime
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any

from .errors import InvalidTime

TIME_FORMAT = "%Y-%m-%d %H:%M:%S.%f"

END_OF_TIME = "9999-12-31 23:59:59.999999"

# Reserved valid-time columns of a bitemporal row version
VALID_FROM = "validFrom"
VALID_UNTIL = "validUntil"

_FULL_RE = re.compile(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\.\d{6}$")
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_SECONDS_RE = re.compile(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}$")


def from_datetime(dt: datetime) -> str:
    return (
        f"{dt.year:04d}-{dt.month:02d}-{dt.day:02d} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d}.{dt.microsecond:06d}"
    )


def now() -> str:
    """Current local time as a time string."""
    return from_datetime(datetime.now())


def from_timestamp(timestamp: float) -> str:
    """Convert a Unix timestamp (seconds, local time) to a time string."""
    return from_datetime(datetime.fromtimestamp(timestamp))


def is_valid(time_string: str) -> bool:
    """Whether ``time_string`` is a complete, calendar-valid time string."""
    if not isinstance(time_string, str) or not _FULL_RE.match(time_string):
        return False
    try:
        datetime.strptime(time_string, TIME_FORMAT)
    except ValueError:
        return False
    return True


def from_string(value: str) -> str:
    """Complete a date or a seconds-precision time to the full format.

    Returns an empty string if the result is not a valid time string.
    """
    if _DATE_RE.match(value):
        value += " 00:00:00.000000"
    elif _SECONDS_RE.match(value):
        value += ".000000"
    return value if is_valid(value) else ""


def from_variable(value: Any) -> str:
    """Convert a str, number or datetime to a time string ('' if impossible)."""
    if isinstance(value, datetime):
        return from_datetime(value)
    if isinstance(value, bool):
        return ""
    if isinstance(value, (int, float)):
        try:
            return from_timestamp(float(value))
        except (OverflowError, OSError, ValueError):
            return ""
    if isinstance(value, str):
        return from_string(value)
    return ""


def normalize(value: Any, context: str = "") -> str:
    """Like from_variable, but raises InvalidTime instead of returning ''."""
    time_string = from_variable(value)
    if time_string == "":
        where = f" for {context}" if context else ""
        raise InvalidTime(f"Invalid time given{where}: {value!r}", time_value=value)
    return time_string
