import uuid
from datetime import date

from fastapi import APIRouter, HTTPException, status, Query, Path, Response
from sqlalchemy import select, and_

from storeshift.api.deps import DB, CurrentLocation, Scheduler
from storeshift.core.config import settings
from storeshift.models.store_hours import StoreSchedule, StoreException, HOLIDAY_DAY_INDEX
from storeshift.schemas.store_hours import (
    TimeRangeSchema, StoreScheduleIn, StoreScheduleOut, StoreExceptionIn, StoreExceptionOut,
    CalendarDayOut, HolidayImportRequest,
)
from storeshift.services.holiday_service import import_public_holidays
from storeshift.services.store_hours_service import load_store_calendar, normalize_ranges, TimeRange

router = APIRouter(prefix="/store-hours", tags=["store-hours"])
exceptions_router = APIRouter(prefix="/store-exceptions", tags=["store-hours"])


# ── Helpers ──────────────────────────────────────────────────────────────────

def _ranges_out(ranges) -> list[TimeRangeSchema]:
    return [TimeRangeSchema(open_time=r.open_time, close_time=r.close_time) for r in ranges]


def _ranges_in(ranges: list[TimeRangeSchema]) -> list[dict]:
    return [TimeRange(r.open_time, r.close_time).as_dict() for r in ranges]


def _exception_out(row: StoreException) -> StoreExceptionOut:
    return StoreExceptionOut(
        id=row.id,
        date=row.date,
        is_open=row.is_open,
        time_ranges=_ranges_out(normalize_ranges(row.time_ranges, row.open_time, row.close_time)),
        reason=row.reason,
        is_holiday=row.is_holiday,
    )


async def _get_exception(db, location_id: uuid.UUID, exception_id: uuid.UUID) -> StoreException:
    result = await db.execute(
        select(StoreException).where(
            StoreException.id == exception_id,
            StoreException.location_id == location_id,
        )
    )
    exception = result.scalar_one_or_none()
    if not exception:
        raise HTTPException(status_code=404, detail="Store exception not found")
    return exception


# ── Weekly hours ─────────────────────────────────────────────────────────────

@router.get("", response_model=list[StoreScheduleOut])
async def list_store_hours(location: CurrentLocation, db: DB):
    """Effective weekly hours (0=Mon ... 6=Sun, 7=holiday hours when configured)."""
    calendar = await load_store_calendar(db, location.id)
    return [
        StoreScheduleOut(day_of_week=day, is_open=hours.is_open, time_ranges=_ranges_out(hours.ranges))
        for day, hours in sorted(calendar.weekly.items())
    ]


@router.put("/{day_of_week}", response_model=StoreScheduleOut)
async def set_store_hours(
    payload: StoreScheduleIn,
    location: CurrentLocation,
    db: DB,
    scheduler: Scheduler,
    day_of_week: int = Path(ge=0, le=HOLIDAY_DAY_INDEX),
):
    result = await db.execute(
        select(StoreSchedule).where(
            StoreSchedule.location_id == location.id,
            StoreSchedule.day_of_week == day_of_week,
        )
    )
    schedule = result.scalar_one_or_none()
    if schedule is None:
        schedule = StoreSchedule(location_id=location.id, day_of_week=day_of_week)
        db.add(schedule)

    schedule.is_open = payload.is_open
    schedule.time_ranges = _ranges_in(payload.time_ranges)
    schedule.open_time = None
    schedule.close_time = None
    await db.commit()
    await scheduler.notify_changed(location.id, "store_hours", "update", schedule.id)

    return StoreScheduleOut(day_of_week=day_of_week, is_open=payload.is_open, time_ranges=payload.time_ranges)


@router.get("/calendar/{day}", response_model=CalendarDayOut)
async def calendar_day(day: date, location: CurrentLocation, scheduler: Scheduler):
    """Resolved hours for one date, exceptions and holiday hours applied."""
    hours = await scheduler.day_hours(location.id, day)
    return CalendarDayOut(
        date=day,
        is_open=await scheduler.is_date_open(location.id, day),
        is_holiday=hours.is_holiday,
        reason=hours.reason,
        ranges=_ranges_out(await scheduler.permitted_ranges(location.id, day)),
    )


# ── Date exceptions ──────────────────────────────────────────────────────────

@exceptions_router.get("", response_model=list[StoreExceptionOut])
async def list_exceptions(
    location: CurrentLocation,
    db: DB,
    from_date: date | None = Query(None),
    to_date: date | None = Query(None),
):
    conditions = [StoreException.location_id == location.id]
    if from_date:
        conditions.append(StoreException.date >= from_date)
    if to_date:
        conditions.append(StoreException.date <= to_date)
    result = await db.execute(select(StoreException).where(and_(*conditions)).order_by(StoreException.date))
    return [_exception_out(e) for e in result.scalars().all()]


@exceptions_router.post("", response_model=StoreExceptionOut, status_code=status.HTTP_201_CREATED)
async def create_exception(payload: StoreExceptionIn, location: CurrentLocation, db: DB, scheduler: Scheduler):
    existing = await db.execute(
        select(StoreException.id).where(
            StoreException.location_id == location.id,
            StoreException.date == payload.date,
        )
    )
    if existing.scalar_one_or_none() is not None:
        raise HTTPException(status_code=409, detail=f"An exception for {payload.date} already exists")

    exception = StoreException(
        location_id=location.id,
        date=payload.date,
        is_open=payload.is_open,
        time_ranges=_ranges_in(payload.time_ranges),
        reason=payload.reason,
        is_holiday=payload.is_holiday,
    )
    db.add(exception)
    await db.commit()
    await db.refresh(exception)
    await scheduler.notify_changed(location.id, "store_hours", "create", exception.id)
    return _exception_out(exception)


@exceptions_router.post("/import-holidays", response_model=list[StoreExceptionOut])
async def import_holidays(payload: HolidayImportRequest, location: CurrentLocation, db: DB, scheduler: Scheduler):
    country = payload.country or settings.HOLIDAY_COUNTRY
    try:
        imported = await import_public_holidays(
            db, location.id, payload.year, country, overwrite=payload.overwrite,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    await db.commit()
    for exception in imported:
        await db.refresh(exception)
    if imported:
        await scheduler.notify_changed(location.id, "store_hours", "create", *(e.id for e in imported))
    return [_exception_out(e) for e in imported]


@exceptions_router.put("/{exception_id}", response_model=StoreExceptionOut)
async def update_exception(
    exception_id: uuid.UUID, payload: StoreExceptionIn, location: CurrentLocation, db: DB, scheduler: Scheduler,
):
    exception = await _get_exception(db, location.id, exception_id)
    if payload.date != exception.date:
        clash = await db.execute(
            select(StoreException.id).where(
                StoreException.location_id == location.id,
                StoreException.date == payload.date,
            )
        )
        if clash.scalar_one_or_none() is not None:
            raise HTTPException(status_code=409, detail=f"An exception for {payload.date} already exists")

    exception.date = payload.date
    exception.is_open = payload.is_open
    exception.time_ranges = _ranges_in(payload.time_ranges)
    exception.open_time = None
    exception.close_time = None
    exception.reason = payload.reason
    exception.is_holiday = payload.is_holiday
    await db.commit()
    await db.refresh(exception)
    await scheduler.notify_changed(location.id, "store_hours", "update", exception.id)
    return _exception_out(exception)


@exceptions_router.delete("/{exception_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_exception(exception_id: uuid.UUID, location: CurrentLocation, db: DB, scheduler: Scheduler):
    exception = await _get_exception(db, location.id, exception_id)
    await db.delete(exception)
    await db.commit()
    await scheduler.notify_changed(location.id, "store_hours", "delete", exception_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
