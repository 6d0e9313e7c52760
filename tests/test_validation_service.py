"""
Tests for ShiftValidator – check order, accumulated errors, store hours,
vacation and overlap rules. Snapshots are built by hand, no DB.
"""
import uuid
from datetime import date, time

import pytest

from storeshift.services.schedule_cache import ScheduleSnapshot, ShiftRecord, UnavailableSlot
from storeshift.services.store_hours_service import StoreHoursCalendar, DayHours, TimeRange
from storeshift.services.vacation_service import ApprovedAbsence, VacationOracle
from storeshift.services.validation_service import ShiftCandidate, ShiftValidator, ValidationErrorType

LOC = uuid.uuid4()
EMP = uuid.uuid4()
MONDAY = date(2024, 6, 10)


# ── Helpers ───────────────────────────────────────────────────────────────────

def no_absences():
    async def lookup(employee_id):
        return []
    return lookup


def absences(*ranges):
    async def lookup(employee_id):
        return [ApprovedAbsence(start, end) for start, end in ranges]
    return lookup


def record(start: str, end: str, day: date = MONDAY, employee_id=EMP):
    h_s, m_s = map(int, start.split(":"))
    h_e, m_e = map(int, end.split(":"))
    return ShiftRecord(
        id=uuid.uuid4(), employee_id=employee_id, date=day,
        start_time=time(h_s, m_s), end_time=time(h_e, m_e),
        hours=0.0, is_published=False, version=1,
    )


def snapshot(*shifts, weekly=None, unavailable=None):
    calendar = StoreHoursCalendar(weekly or {
        day: DayHours(True, (TimeRange(time(9, 0), time(22, 0)),)) for day in range(7)
    })
    return ScheduleSnapshot(
        location_id=LOC,
        shifts=list(shifts),
        calendar=calendar,
        employee_names={EMP: "Ana"},
        unavailable=unavailable or {},
    )


def candidate(start="10:00", end="14:00", day=MONDAY, location_id=LOC):
    return ShiftCandidate(location_id=location_id, employee_id=EMP, date=day, start_time=start, end_time=end)


def types(errors):
    return [e.type for e in errors]


# ── Structural & time checks ──────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_valid_shift_has_no_errors():
    errors = await ShiftValidator(VacationOracle(no_absences())).validate(candidate(), snapshot())
    assert errors == []


@pytest.mark.asyncio
async def test_missing_location_aborts_with_single_error():
    errors = await ShiftValidator(VacationOracle(no_absences())).validate(
        candidate(start="bad", location_id=None), snapshot(),
    )
    assert types(errors) == [ValidationErrorType.LOCATION]


@pytest.mark.asyncio
async def test_employee_of_another_location_aborts():
    foreign = ShiftCandidate(location_id=LOC, employee_id=uuid.uuid4(), date=MONDAY, start_time="25:00", end_time="14:00")
    errors = await ShiftValidator(VacationOracle(no_absences())).validate(foreign, snapshot())
    assert types(errors) == [ValidationErrorType.LOCATION]
    assert "not assigned to this location" in errors[0].message


@pytest.mark.asyncio
async def test_invalid_times_reported_and_later_checks_skipped():
    errors = await ShiftValidator(VacationOracle(no_absences())).validate(
        candidate(start="25:00", end="14:00"), snapshot(record("09:00", "18:00")),
    )
    assert types(errors) == [ValidationErrorType.TIME]
    assert "Invalid start time" in errors[0].message


@pytest.mark.asyncio
async def test_end_before_start_rejected():
    errors = await ShiftValidator(VacationOracle(no_absences())).validate(candidate("14:00", "10:00"), snapshot())
    assert types(errors) == [ValidationErrorType.TIME]
    assert errors[0].message == "End time must be after start time"


@pytest.mark.asyncio
async def test_overnight_shift_rejected():
    errors = await ShiftValidator(VacationOracle(no_absences())).validate(candidate("22:00", "02:00"), snapshot())
    assert ValidationErrorType.TIME in types(errors)


# ── Store hours (Scenario A) ──────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_shift_starting_before_opening_rejected():
    """Store open Mon 09:00–20:00, shift 08:00–12:00 → outside store hours."""
    weekly = {0: DayHours(True, (TimeRange(time(9, 0), time(20, 0)),))}
    errors = await ShiftValidator(VacationOracle(no_absences())).validate(
        candidate("08:00", "12:00"), snapshot(weekly=weekly),
    )
    assert types(errors) == [ValidationErrorType.SCHEDULE]
    assert "outside store hours (09:00-20:00)" in errors[0].message


@pytest.mark.asyncio
async def test_closed_day_rejected():
    weekly = {0: DayHours(False)}
    errors = await ShiftValidator(VacationOracle(no_absences())).validate(candidate(), snapshot(weekly=weekly))
    assert types(errors) == [ValidationErrorType.SCHEDULE]
    assert "closed" in errors[0].message


# ── Vacation (Scenario B) ─────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_approved_vacation_rejects_regardless_of_store_hours():
    oracle = VacationOracle(absences((date(2024, 7, 1), date(2024, 7, 5))))
    validator = ShiftValidator(oracle)

    errors = await validator.validate(candidate(day=date(2024, 7, 3)), snapshot())
    assert types(errors) == [ValidationErrorType.VACATION]
    assert errors[0].message == "Ana has approved time off on 2024-07-03"

    closed = {2: DayHours(False)}
    errors = await validator.validate(candidate(day=date(2024, 7, 3)), snapshot(weekly=closed))
    assert types(errors) == [ValidationErrorType.VACATION, ValidationErrorType.SCHEDULE]


@pytest.mark.asyncio
async def test_vacation_checked_even_with_bad_times():
    oracle = VacationOracle(absences((MONDAY, MONDAY)))
    errors = await ShiftValidator(oracle).validate(candidate("14:00", "10:00"), snapshot())
    assert types(errors) == [ValidationErrorType.TIME, ValidationErrorType.VACATION]


# ── Overlap (Scenario C) ──────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_overlapping_shift_rejected_contiguous_accepted():
    snap = snapshot(record("14:00", "20:00"))
    validator = ShiftValidator(VacationOracle(no_absences()))

    errors = await validator.validate(candidate("18:00", "22:00"), snap)
    assert types(errors) == [ValidationErrorType.CONFLICT]
    assert errors[0].message == "Ana already works 14:00-20:00 on 2024-06-10"

    assert await validator.validate(candidate("20:00", "22:00"), snap) == []


@pytest.mark.asyncio
async def test_update_excludes_the_shift_itself():
    existing = record("14:00", "20:00")
    errors = await ShiftValidator(VacationOracle(no_absences())).validate(
        candidate("15:00", "21:00"), snapshot(existing), exclude_id=existing.id,
    )
    assert errors == []


@pytest.mark.asyncio
async def test_pending_batch_items_count_as_existing():
    pending = [candidate("10:00", "14:00")]
    errors = await ShiftValidator(VacationOracle(no_absences())).validate(
        candidate("12:00", "16:00"), snapshot(), pending=pending,
    )
    assert types(errors) == [ValidationErrorType.CONFLICT]


@pytest.mark.asyncio
async def test_errors_accumulate_in_check_order():
    weekly = {0: DayHours(True, (TimeRange(time(9, 0), time(20, 0)),))}
    oracle = VacationOracle(absences((MONDAY, MONDAY)))
    errors = await ShiftValidator(oracle).validate(
        candidate("18:00", "22:00"), snapshot(record("17:00", "19:00"), weekly=weekly),
    )
    assert types(errors) == [
        ValidationErrorType.VACATION, ValidationErrorType.CONFLICT, ValidationErrorType.SCHEDULE,
    ]


@pytest.mark.asyncio
async def test_revalidation_is_idempotent():
    validator = ShiftValidator(VacationOracle(no_absences()))
    snap = snapshot(record("14:00", "20:00"))
    first = await validator.validate(candidate("18:00", "22:00"), snap)
    second = await validator.validate(candidate("18:00", "22:00"), snap)
    assert first == second


# ── Unavailable windows ───────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_unavailability_informational_by_default():
    unavailable = {EMP: [UnavailableSlot(0, time(9, 0), time(12, 0))]}
    errors = await ShiftValidator(VacationOracle(no_absences())).validate(
        candidate("10:00", "14:00"), snapshot(unavailable=unavailable),
    )
    assert errors == []


@pytest.mark.asyncio
async def test_unavailability_enforced_when_enabled():
    unavailable = {EMP: [UnavailableSlot(0, time(9, 0), time(12, 0)), UnavailableSlot(1, time(0, 0), time(23, 0))]}
    validator = ShiftValidator(VacationOracle(no_absences()), enforce_unavailability=True)

    errors = await validator.validate(candidate("10:00", "14:00"), snapshot(unavailable=unavailable))
    assert types(errors) == [ValidationErrorType.AVAILABILITY]
    assert await validator.validate(candidate("12:00", "14:00"), snapshot(unavailable=unavailable)) == []
