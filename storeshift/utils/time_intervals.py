"""
Minute-of-day arithmetic for same-day wall-clock times.

All intervals are half-open: [start, end). A shift ending at 10:00 does not
overlap one starting at 10:00.
"""
from datetime import time

MINUTES_PER_DAY = 24 * 60


def to_minutes(value: str | time) -> int:
    """Convert "HH:MM" (or a time) to minutes since midnight. Raises ValueError on bad input."""
    if isinstance(value, time):
        return value.hour * 60 + value.minute
    if not isinstance(value, str):
        raise ValueError(f"Expected HH:MM, got {value!r}")

    parts = value.strip().split(":")
    if len(parts) < 2 or len(parts) > 3 or not all(p.isdigit() for p in parts):
        raise ValueError(f"Expected HH:MM, got {value!r}")
    hours, minutes = int(parts[0]), int(parts[1])
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValueError(f"Time out of range: {value!r}")
    return hours * 60 + minutes


def parse_time(value: str | time | None) -> time | None:
    """Lenient variant of to_minutes: returns None instead of raising."""
    if value is None:
        return None
    try:
        minutes = to_minutes(value)
    except ValueError:
        return None
    return time(minutes // 60, minutes % 60)


def format_time(value: time) -> str:
    return f"{value.hour:02d}:{value.minute:02d}"


def overlaps(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    return a_start < b_end and a_end > b_start


def contains(outer_start: int, outer_end: int, inner_start: int, inner_end: int) -> bool:
    """True if [inner_start, inner_end) lies fully inside [outer_start, outer_end)."""
    return outer_start <= inner_start and inner_end <= outer_end


def duration_hours(start: str | time, end: str | time) -> float:
    return (to_minutes(end) - to_minutes(start)) / 60
