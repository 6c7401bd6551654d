"""
Clock helpers shared by the lottery services.

All times of day are handled as minutes from midnight internally.
"""
from datetime import date, time
from typing import Optional, Union


def parse_hhmm(value: Optional[Union[str, time]]) -> Optional[int]:
    """
    Parse "HH:MM" (or "HH:MM:SS", or a datetime.time) to minutes from midnight.

    Returns None for missing or malformed input rather than raising.
    """
    if value is None:
        return None
    if isinstance(value, time):
        return value.hour * 60 + value.minute
    if not isinstance(value, str):
        return None

    parts = value.strip().split(":")
    if len(parts) not in (2, 3):
        return None
    try:
        hours = int(parts[0])
        minutes = int(parts[1])
    except ValueError:
        return None
    if not (0 <= hours <= 24 and 0 <= minutes < 60):
        return None
    total = hours * 60 + minutes
    if total > 24 * 60:
        return None
    return total


def time_to_minutes(t: time) -> int:
    return t.hour * 60 + t.minute


def format_minutes_12h(minutes: int) -> str:
    """480 -> "8:00 AM", 720 -> "12:00 PM", 0 -> "12:00 AM"."""
    hours = (minutes // 60) % 24
    mins = minutes % 60
    hour12 = 12 if hours % 12 == 0 else hours % 12
    period = "AM" if hours < 12 else "PM"
    return f"{hour12}:{mins:02d} {period}"


def format_hhmm(t: time) -> str:
    return f"{t.hour:02d}:{t.minute:02d}"


def month_key(d: date) -> str:
    """date(2025, 11, 10) -> "2025-11"."""
    return f"{d.year:04d}-{d.month:02d}"


def sunday_based_weekday(d: date) -> int:
    """Day of week with 0=Sunday .. 6=Saturday."""
    return (d.weekday() + 1) % 7
