import uuid
from datetime import date

from fastapi import APIRouter, HTTPException, status, Query, Response
from fastapi.responses import JSONResponse
from sqlalchemy import select, and_

from storeshift.api.deps import DB, CurrentLocation, Scheduler
from storeshift.models.shift import Shift
from storeshift.schemas.shift import (
    ShiftCreate, ShiftUpdate, ShiftOut, ValidationErrorOut, BatchResultOut, ShiftCheckOut, PublishRequest, PublishOut,
    DuplicateDayRequest, DuplicateWeekRequest, HoursSummaryOut,
)
from storeshift.services.validation_service import ShiftCandidate, ValidationError

router = APIRouter(prefix="/shifts", tags=["shifts"])


# ── Helpers ──────────────────────────────────────────────────────────────────

def _rejected(errors: list[ValidationError]) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"errors": [ValidationErrorOut.from_error(e).model_dump(mode="json") for e in errors]},
    )


# ── Shifts ───────────────────────────────────────────────────────────────────

@router.get("", response_model=list[ShiftOut])
async def list_shifts(
    location: CurrentLocation,
    db: DB,
    from_date: date | None = Query(None),
    to_date: date | None = Query(None),
    employee_id: uuid.UUID | None = Query(None),
):
    conditions = [Shift.location_id == location.id]
    if employee_id:
        conditions.append(Shift.employee_id == employee_id)
    if from_date:
        conditions.append(Shift.date >= from_date)
    if to_date:
        conditions.append(Shift.date <= to_date)

    result = await db.execute(
        select(Shift).where(and_(*conditions)).order_by(Shift.date, Shift.start_time)
    )
    return result.scalars().all()


@router.post("", response_model=ShiftOut, status_code=status.HTTP_201_CREATED)
async def create_shift(payload: ShiftCreate, location: CurrentLocation, scheduler: Scheduler):
    result = await scheduler.validate_and_create_shift(
        ShiftCandidate(location_id=location.id, **payload.model_dump())
    )
    if not result.is_ok:
        return _rejected(result.errors)
    return result.shifts[0]


@router.post("/validate", response_model=ShiftCheckOut)
async def validate_shift(
    payload: ShiftCreate,
    location: CurrentLocation,
    scheduler: Scheduler,
    exclude_id: uuid.UUID | None = Query(None),
):
    """Run every check for a proposed shift without saving it. Pass exclude_id when editing."""
    errors = await scheduler.validate_shift(
        ShiftCandidate(location_id=location.id, **payload.model_dump()), exclude_id=exclude_id,
    )
    return ShiftCheckOut(valid=not errors, errors=[ValidationErrorOut.from_error(e) for e in errors])


@router.get("/hours-summary", response_model=list[HoursSummaryOut])
async def hours_summary(location: CurrentLocation, scheduler: Scheduler, week_start: date = Query(...)):
    summary = await scheduler.hours_summary(location.id, week_start)
    return [HoursSummaryOut.model_validate(s) for s in summary]


@router.post("/publish", response_model=PublishOut)
async def publish_shifts(payload: PublishRequest, location: CurrentLocation, scheduler: Scheduler):
    published = await scheduler.publish_shifts(location.id, payload.shift_ids)
    return PublishOut(published=published)


@router.post("/duplicate-day", response_model=BatchResultOut)
async def duplicate_day(payload: DuplicateDayRequest, location: CurrentLocation, scheduler: Scheduler):
    return BatchResultOut.from_result(await scheduler.duplicate_day(location.id, payload.source_date))


@router.post("/duplicate-week", response_model=BatchResultOut)
async def duplicate_week(payload: DuplicateWeekRequest, location: CurrentLocation, scheduler: Scheduler):
    return BatchResultOut.from_result(await scheduler.duplicate_week(location.id, payload.week_start))


@router.put("/{shift_id}", response_model=ShiftOut)
async def update_shift(shift_id: uuid.UUID, payload: ShiftUpdate, location: CurrentLocation, scheduler: Scheduler):
    changes = payload.model_dump(exclude_unset=True, exclude={"version"})
    if any(value is None for value in changes.values()):
        raise HTTPException(status_code=400, detail="Shift fields cannot be cleared")

    result = await scheduler.validate_and_update_shift(
        location.id, shift_id, changes, expected_version=payload.version,
    )
    if not result.is_ok:
        return _rejected(result.errors)
    return result.shifts[0]


@router.delete("/{shift_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_shift(shift_id: uuid.UUID, location: CurrentLocation, scheduler: Scheduler):
    await scheduler.delete_shift(location.id, shift_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
