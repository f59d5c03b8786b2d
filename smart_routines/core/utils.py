"""
Shared utility functions for parsing check operands.

Check operands are user-authored strings. Numeric parsers never raise:
anything that cannot be read as a number falls back to a default.
"""

import re
from datetime import date, datetime

from dateutil import parser as dateutil_parser

_INT_PREFIX = re.compile(r"^\s*([+-]?\d+)")
_FLOAT_PREFIX = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")
_TIME_OF_DAY = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")


def parse_int(value: str | None, default: int = 0) -> int:
    """Parse the leading integer of a string ("3", " 3 ", "3.9" -> 3).

    Returns `default` for None, empty or non-numeric input.
    """
    if value is None:
        return default
    match = _INT_PREFIX.match(str(value))
    if match is None:
        return default
    return int(match.group(1))


def parse_float(value: str | float | None, default: float = 0.0) -> float:
    """Parse the leading number of a string, or pass a number through."""
    if value is None:
        return default
    if isinstance(value, (int, float)):
        return float(value)
    match = _FLOAT_PREFIX.match(str(value))
    if match is None:
        return default
    return float(match.group(1))


def parse_time_of_day(value: str | None) -> int | None:
    """Convert "HH:MM" into minutes since midnight.

    Returns None if the value is missing or not a valid 24-hour time.
    """
    if not value or not isinstance(value, str):
        return None
    match = _TIME_OF_DAY.match(value)
    if match is None:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        return None
    return hours * 60 + minutes


def minutes_since_midnight(moment: datetime) -> int:
    return moment.hour * 60 + moment.minute


def parse_date(value: str) -> date | None:
    """Parse a date string into a date object.

    Supports ISO 8601 formats (YYYY-MM-DD) and datetime strings.
    Returns None if the value cannot be parsed.
    """
    if not value or not isinstance(value, str):
        return None

    try:
        parsed = dateutil_parser.parse(value)
        if isinstance(parsed, datetime):
            return parsed.date()
        return parsed
    except (ValueError, TypeError, OverflowError):
        return None


def parse_date_range(value: str | None) -> tuple[date, date] | None:
    """Parse a "start,end" operand into a pair of dates, or None if malformed."""
    if not value:
        return None
    parts = value.split(",")
    if len(parts) != 2:
        return None
    start, end = parse_date(parts[0].strip()), parse_date(parts[1].strip())
    if start is None or end is None:
        return None
    return start, end


def to_naive_local(moment: datetime | None) -> datetime | None:
    """Convert an aware datetime to naive local time; naive values pass through."""
    if moment is None or moment.tzinfo is None:
        return moment
    return moment.astimezone().replace(tzinfo=None)
