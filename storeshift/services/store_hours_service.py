"""
Store hours calendar: which time ranges are open on a given date.

Resolution order for a date:
  1. A StoreException for that exact date wins outright.
     Holiday exceptions without ranges of their own use the holiday entry (index 7).
  2. Otherwise the weekly StoreSchedule row for date.weekday().
  3. Not open -> no permitted ranges.

Legacy open_time/close_time columns are folded into the range list once, when the
calendar is built from rows. Queries only ever see normalized DayHours.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, time
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storeshift.models.store_hours import StoreSchedule, StoreException, HOLIDAY_DAY_INDEX
from storeshift.utils.time_intervals import to_minutes, format_time, contains, overlaps

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimeRange:
    open_time: time
    close_time: time

    @property
    def open_minutes(self) -> int:
        return to_minutes(self.open_time)

    @property
    def close_minutes(self) -> int:
        return to_minutes(self.close_time)

    def contains(self, start_minutes: int, end_minutes: int) -> bool:
        return contains(self.open_minutes, self.close_minutes, start_minutes, end_minutes)

    def as_dict(self) -> dict:
        return {"open_time": format_time(self.open_time), "close_time": format_time(self.close_time)}

    @classmethod
    def from_value(cls, value: "dict | TimeRange") -> "TimeRange":
        if isinstance(value, TimeRange):
            return value
        open_min = to_minutes(value["open_time"])
        close_min = to_minutes(value["close_time"])
        return cls(time(open_min // 60, open_min % 60), time(close_min // 60, close_min % 60))


@dataclass(frozen=True)
class DayHours:
    is_open: bool
    ranges: tuple[TimeRange, ...] = ()
    is_holiday: bool = False
    reason: str | None = None


CLOSED = DayHours(is_open=False)

# Used for locations that never configured their week
DEFAULT_WEEK: dict[int, DayHours] = {
    **{day: DayHours(True, (TimeRange(time(9, 0), time(20, 0)),)) for day in range(6)},
    6: CLOSED,
}


def validate_time_ranges(ranges: Iterable[TimeRange]) -> None:
    """Raise ValueError unless every range is non-empty and no two ranges overlap."""
    ordered = sorted(ranges, key=lambda r: r.open_minutes)
    for r in ordered:
        if r.open_minutes >= r.close_minutes:
            raise ValueError(
                f"Range {format_time(r.open_time)}-{format_time(r.close_time)}: "
                "closing time must be after opening time"
            )
    for prev, nxt in zip(ordered, ordered[1:]):
        if overlaps(prev.open_minutes, prev.close_minutes, nxt.open_minutes, nxt.close_minutes):
            raise ValueError(
                f"Ranges {format_time(prev.open_time)}-{format_time(prev.close_time)} and "
                f"{format_time(nxt.open_time)}-{format_time(nxt.close_time)} overlap"
            )


def normalize_ranges(
    time_ranges: list | None,
    open_time: time | None = None,
    close_time: time | None = None,
) -> tuple[TimeRange, ...]:
    """Build the ordered range tuple, folding a legacy single open/close pair in."""
    ranges = [TimeRange.from_value(r) for r in (time_ranges or [])]
    if not ranges and open_time is not None and close_time is not None:
        ranges = [TimeRange(open_time, close_time)]
    return tuple(sorted(ranges, key=lambda r: r.open_minutes))


def _day_hours_from_row(row: StoreSchedule | StoreException, *, is_holiday: bool = False) -> DayHours:
    ranges = normalize_ranges(row.time_ranges, row.open_time, row.close_time)
    try:
        validate_time_ranges(ranges)
    except ValueError as exc:
        # Predates write-side validation; containment checks still work on it
        logger.warning("Stored hours for location %s are inconsistent: %s", row.location_id, exc)
    return DayHours(
        is_open=bool(row.is_open),
        ranges=ranges,
        is_holiday=is_holiday,
        reason=getattr(row, "reason", None),
    )


class StoreHoursCalendar:

    def __init__(self, weekly: dict[int, DayHours], exceptions: dict[date, DayHours] | None = None):
        self.weekly = weekly
        self.exceptions = exceptions or {}

    @classmethod
    def from_records(
        cls,
        schedules: Iterable[StoreSchedule],
        exceptions: Iterable[StoreException] = (),
    ) -> "StoreHoursCalendar":
        weekly = {s.day_of_week: _day_hours_from_row(s) for s in schedules}
        if not weekly:
            weekly = dict(DEFAULT_WEEK)
        overrides = {e.date: _day_hours_from_row(e, is_holiday=bool(e.is_holiday)) for e in exceptions}
        return cls(weekly, overrides)

    @property
    def holiday_hours(self) -> DayHours | None:
        return self.weekly.get(HOLIDAY_DAY_INDEX)

    def resolve(self, day: date) -> DayHours:
        exception = self.exceptions.get(day)
        if exception is not None:
            if exception.is_holiday and exception.is_open and not exception.ranges:
                holiday = self.holiday_hours
                if holiday is None or not holiday.is_open:
                    return DayHours(False, (), is_holiday=True, reason=exception.reason)
                return DayHours(True, holiday.ranges, is_holiday=True, reason=exception.reason)
            return exception
        return self.weekly.get(day.weekday(), CLOSED)

    def is_date_open(self, day: date) -> bool:
        return self.resolve(day).is_open

    def permitted_ranges(self, day: date) -> list[TimeRange]:
        hours = self.resolve(day)
        if not hours.is_open:
            return []
        return list(hours.ranges)

    def is_within_store_hours(self, day: date, start: str | time, end: str | time) -> bool:
        """The whole [start, end) must fit inside a single range; spanning a closure gap fails."""
        start_min, end_min = to_minutes(start), to_minutes(end)
        return any(r.contains(start_min, end_min) for r in self.permitted_ranges(day))


async def load_store_calendar(db: AsyncSession, location_id: uuid.UUID) -> StoreHoursCalendar:
    schedules = await db.execute(
        select(StoreSchedule).where(StoreSchedule.location_id == location_id)
    )
    exceptions = await db.execute(
        select(StoreException).where(StoreException.location_id == location_id)
    )
    return StoreHoursCalendar.from_records(schedules.scalars().all(), exceptions.scalars().all())
