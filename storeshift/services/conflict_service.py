"""
Shift conflict detection: does a candidate overlap another shift of the same
employee on the same date?

A linear scan is enough – an employee has a handful of shifts per day at most.
Shifts are duck-typed: anything with id, employee_id, date, start_time and
end_time works (ORM rows, snapshot records, candidates).
"""
from __future__ import annotations

from typing import Any, Iterable

from storeshift.utils.time_intervals import to_minutes, overlaps


def find_conflicts(candidate: Any, existing_shifts: Iterable[Any], exclude_id=None) -> list[Any]:
    start, end = to_minutes(candidate.start_time), to_minutes(candidate.end_time)
    conflicts = []
    for other in existing_shifts:
        if other.employee_id != candidate.employee_id or other.date != candidate.date:
            continue
        if exclude_id is not None and getattr(other, "id", None) == exclude_id:
            continue
        if overlaps(start, end, to_minutes(other.start_time), to_minutes(other.end_time)):
            conflicts.append(other)
    return conflicts


def has_conflict(candidate: Any, existing_shifts: Iterable[Any], exclude_id=None) -> bool:
    return bool(find_conflicts(candidate, existing_shifts, exclude_id))
