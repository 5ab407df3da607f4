"""
Helpers for fixed UTC offsets and human-readable time labels.

Offsets are signed minutes east of UTC (EST in summer is -240). They are
fixed values, so there are no daylight-saving rules to resolve.
"""

import pendulum
from pendulum import DateTime

from .exceptions import InvalidOffsetError

MAX_OFFSET_MINUTES = 720

# Labels are always rendered in English, regardless of the global pendulum locale.
LABEL_LOCALE = "en"


def validate_offset(offset_minutes: int) -> int:
    """Return the offset unchanged, or raise InvalidOffsetError if it exceeds 12 hours."""
    if abs(offset_minutes) > MAX_OFFSET_MINUTES:
        raise InvalidOffsetError(offset_minutes, MAX_OFFSET_MINUTES)
    return offset_minutes


def offset_timezone(offset_minutes: int):
    """Return a fixed pendulum timezone for the offset."""
    validate_offset(offset_minutes)
    return pendulum.timezone(offset_minutes * 60)


def to_local(instant: DateTime, offset_minutes: int) -> DateTime:
    """Express an instant as wall-clock time at the given offset."""
    return instant.in_timezone(offset_timezone(offset_minutes))


def parse_utc(text: str) -> DateTime:
    """
    Parse an ISO 8601 string into a UTC instant.

    Raises:
        ValueError: If the string is not a date-time
    """
    parsed = pendulum.parse(text)
    if not isinstance(parsed, DateTime):
        raise ValueError(f"Could not parse datetime: {text}")
    return parsed.in_timezone("UTC")


def utc_encoding(instant: DateTime) -> str:
    """Render an instant like 2020-07-07T12:00:00Z."""
    return instant.in_timezone("UTC").format("YYYY-MM-DDTHH:mm:ss[Z]")


def format_time(local: DateTime) -> str:
    """Format wall-clock time on a 12-hour clock: 8:00 AM, 12:15 PM, 7:45 PM."""
    return local.format("h:mm A", locale=LABEL_LOCALE)


def format_short_date(local: DateTime) -> str:
    """Format a date like Tue 7/7."""
    return local.format("ddd M/D", locale=LABEL_LOCALE)


def format_long_date(local: DateTime) -> str:
    """Format a date like Tuesday 7/7."""
    return local.format("dddd M/D", locale=LABEL_LOCALE)


def format_time_range(instant: DateTime, minutes: int, offset_minutes: int) -> str:
    """
    Format the span starting at ``instant`` in the viewer's offset.

    Example: 4:00 PM - 5:00 PM
    """
    start = to_local(instant, offset_minutes)
    end = start.add(minutes=minutes)
    return f"{format_time(start)} - {format_time(end)}"
