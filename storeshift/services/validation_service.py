"""
Shift validation: decides whether a proposed shift may be written.

Checks run in a fixed order and accumulate, so the caller sees every problem at
once. A missing location or a foreign employee aborts immediately.
  1. location selected and the employee assigned to it
  2. start/end parse as HH:MM with hour 0-23
  3. end strictly after start (same-day shifts only)
  4. no approved vacation on the date
  5. no overlap with the employee's other shifts that date
  6. fully inside store hours
  7. outside the employee's unavailable windows (only when enforced)
Checks 5-7 need two valid, ordered times and are skipped otherwise.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field, asdict
from datetime import date, time
from enum import Enum
from typing import Iterable

from storeshift.services.conflict_service import find_conflicts
from storeshift.services.schedule_cache import ScheduleSnapshot
from storeshift.services.vacation_service import VacationOracle
from storeshift.utils.time_intervals import parse_time, to_minutes, overlaps, format_time


class ValidationErrorType(str, Enum):
    LOCATION = "location"
    TIME = "time"
    VACATION = "vacation"
    CONFLICT = "conflict"
    SCHEDULE = "schedule"
    AVAILABILITY = "availability"
    STORE = "store"


@dataclass(frozen=True)
class ValidationError:
    type: ValidationErrorType
    message: str
    shift_id: uuid.UUID | None = None
    index: int | None = None  # position inside a batch (template blueprint, duplicated shift)
    date: date | None = None

    def as_dict(self) -> dict:
        data = asdict(self)
        data["type"] = self.type.value
        return data

    def for_item(self, index: int | None = None, shift_id: uuid.UUID | None = None) -> "ValidationError":
        return ValidationError(
            type=self.type,
            message=self.message,
            shift_id=shift_id if shift_id is not None else self.shift_id,
            index=index if index is not None else self.index,
            date=self.date,
        )


@dataclass
class ShiftCandidate:
    """A proposed shift. Times may arrive as "HH:MM" strings or time objects."""

    location_id: uuid.UUID | None
    employee_id: uuid.UUID
    date: date
    start_time: str | time
    end_time: str | time
    is_published: bool = False
    template_id: uuid.UUID | None = None
    source_shift_id: uuid.UUID | None = None
    id: uuid.UUID | None = field(default=None)

    def parsed(self) -> "ShiftCandidate":
        """Copy with both times as time objects; only call once validation passed."""
        return ShiftCandidate(
            location_id=self.location_id,
            employee_id=self.employee_id,
            date=self.date,
            start_time=parse_time(self.start_time),
            end_time=parse_time(self.end_time),
            is_published=self.is_published,
            template_id=self.template_id,
            source_shift_id=self.source_shift_id,
            id=self.id,
        )


class ShiftValidator:

    def __init__(self, vacations: VacationOracle, *, enforce_unavailability: bool = False):
        self.vacations = vacations
        self.enforce_unavailability = enforce_unavailability

    async def validate(
        self,
        candidate: ShiftCandidate,
        snapshot: ScheduleSnapshot,
        *,
        exclude_id: uuid.UUID | None = None,
        pending: Iterable = (),
    ) -> list[ValidationError]:
        """
        Validate a candidate against a location snapshot.

        ``pending`` holds shifts accepted earlier in the same batch but not yet
        visible in the snapshot.
        """
        errors: list[ValidationError] = []

        def fail(kind: ValidationErrorType, message: str) -> None:
            errors.append(ValidationError(kind, message, shift_id=exclude_id, date=candidate.date))

        # 1. Location
        if candidate.location_id is None or candidate.location_id != snapshot.location_id:
            fail(ValidationErrorType.LOCATION, "No location selected for this shift")
            return errors
        if candidate.employee_id not in snapshot.employee_names:
            fail(ValidationErrorType.LOCATION, f"Employee {candidate.employee_id} is not assigned to this location")
            return errors

        # 2. Parseable times
        start = parse_time(candidate.start_time)
        end = parse_time(candidate.end_time)
        if start is None:
            fail(ValidationErrorType.TIME, f"Invalid start time: {candidate.start_time!r}")
        if end is None:
            fail(ValidationErrorType.TIME, f"Invalid end time: {candidate.end_time!r}")

        # 3. Ordering (no overnight shifts)
        times_ok = start is not None and end is not None
        if times_ok and to_minutes(end) <= to_minutes(start):
            fail(ValidationErrorType.TIME, "End time must be after start time")
            times_ok = False

        name = snapshot.employee_name(candidate.employee_id)

        # 4. Approved vacation
        if await self.vacations.has_approved_vacation_conflict(candidate.employee_id, candidate.date):
            fail(ValidationErrorType.VACATION, f"{name} has approved time off on {candidate.date.isoformat()}")

        if not times_ok:
            return errors

        proposed = ShiftCandidate(
            location_id=candidate.location_id,
            employee_id=candidate.employee_id,
            date=candidate.date,
            start_time=start,
            end_time=end,
        )

        # 5. Overlap with the employee's other shifts
        existing = list(snapshot.shifts_on(candidate.employee_id, candidate.date)) + list(pending)
        conflicts = find_conflicts(proposed, existing, exclude_id=exclude_id)
        if conflicts:
            other = conflicts[0]
            fail(
                ValidationErrorType.CONFLICT,
                f"{name} already works {format_time(other.start_time)}-{format_time(other.end_time)} "
                f"on {candidate.date.isoformat()}",
            )

        # 6. Store hours
        if not snapshot.calendar.is_date_open(candidate.date):
            fail(ValidationErrorType.SCHEDULE, f"The store is closed on {candidate.date.isoformat()}")
        elif not snapshot.calendar.is_within_store_hours(candidate.date, start, end):
            ranges = snapshot.calendar.permitted_ranges(candidate.date)
            opening = ", ".join(f"{format_time(r.open_time)}-{format_time(r.close_time)}" for r in ranges)
            fail(
                ValidationErrorType.SCHEDULE,
                f"Shift {format_time(start)}-{format_time(end)} is outside store hours"
                + (f" ({opening})" if opening else ""),
            )

        # 7. Unavailable windows
        if self.enforce_unavailability:
            start_min, end_min = to_minutes(start), to_minutes(end)
            for slot in snapshot.unavailable.get(candidate.employee_id, []):
                if slot.day_of_week != candidate.date.weekday():
                    continue
                if overlaps(start_min, end_min, to_minutes(slot.start_time), to_minutes(slot.end_time)):
                    fail(
                        ValidationErrorType.AVAILABILITY,
                        f"{name} is unavailable {format_time(slot.start_time)}-{format_time(slot.end_time)}",
                    )
                    break

        return errors
