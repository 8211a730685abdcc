"""Shared utilities used across the booking core."""

import re
from datetime import date, datetime, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo

Clock = Callable[[], datetime]

_TIME_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s?([AaPp][Mm])\s*$")


def normalize_phone(value: str) -> str:
    """Normalize a phone number by stripping everything except digits and a leading +.

    Examples:
        >>> normalize_phone("(726) 207-1007")
        '7262071007'
        >>> normalize_phone("+1 (726) 207-1007")
        '+17262071007'
    """
    value = value.strip()
    if value.startswith("+"):
        return "+" + re.sub(r"[^\d]", "", value[1:])
    return re.sub(r"[^\d]", "", value)


def normalize_time(value: str) -> str:
    """Rewrite a 12-hour time into the canonical ``H:MM AM`` form.

    Stored times are compared as plain strings, so "02:00 pm", "2:00PM"
    and "2:00 PM" must collapse to the same value.

    Examples:
        >>> normalize_time("02:00 pm")
        '2:00 PM'
        >>> normalize_time("11:30AM")
        '11:30 AM'
    """
    match = _TIME_RE.match(value)
    if not match:
        return value.strip()
    hour, minute, meridiem = match.groups()
    return f"{int(hour)}:{minute} {meridiem.upper()}"


def format_hour(hour: int) -> str:
    """Format a 24-hour clock hour as a 12-hour slot label ("13" -> "1:00 PM")."""
    display = hour % 12 or 12
    meridiem = "PM" if hour % 24 >= 12 else "AM"
    return f"{display}:00 {meridiem}"


def time_sort_key(value: str) -> int:
    """Minutes since midnight for a 12-hour time string; unparseable sorts last."""
    match = _TIME_RE.match(value)
    if not match:
        return 24 * 60
    hour, minute, meridiem = match.groups()
    hour_24 = int(hour) % 12 + (12 if meridiem.upper() == "PM" else 0)
    return hour_24 * 60 + int(minute)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_epoch_ms(moment: datetime) -> int:
    """Convert an aware datetime to integer epoch milliseconds."""
    return int(moment.timestamp() * 1000)


def local_today(clock: Clock = utc_now, tz_name: Optional[str] = None) -> date:
    """Calendar date of ``clock()`` in the business timezone."""
    moment = clock()
    if tz_name:
        moment = moment.astimezone(ZoneInfo(tz_name))
    return moment.date()
