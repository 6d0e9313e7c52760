"""
Per-location schedule snapshots used by the validator.

A snapshot bundles everything validation reads for one location: the shifts,
the resolved store hours calendar, employee display names and unavailable
windows. The cache hands out snapshots, drops them when the change feed reports
a write for the location, and reloads them once they are older than max_age.
"""
from __future__ import annotations

import asyncio
import logging
import time as _time
import uuid
from dataclasses import dataclass, field
from datetime import date, time
from typing import Callable

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storeshift.core.errors import TransientStoreError
from storeshift.models.employee import Employee
from storeshift.models.shift import Shift
from storeshift.services.change_feed import ChangeEvent, ChangeFeed
from storeshift.services.store_hours_service import StoreHoursCalendar, load_store_calendar

logger = logging.getLogger(__name__)

MAX_RELOADS = 3


@dataclass(frozen=True)
class ShiftRecord:
    id: uuid.UUID
    employee_id: uuid.UUID
    date: date
    start_time: time
    end_time: time
    hours: float
    is_published: bool
    version: int

    @classmethod
    def from_model(cls, shift: Shift) -> "ShiftRecord":
        return cls(
            id=shift.id,
            employee_id=shift.employee_id,
            date=shift.date,
            start_time=shift.start_time,
            end_time=shift.end_time,
            hours=shift.hours,
            is_published=shift.is_published,
            version=shift.version,
        )


@dataclass(frozen=True)
class UnavailableSlot:
    day_of_week: int
    start_time: time
    end_time: time


@dataclass
class ScheduleSnapshot:
    location_id: uuid.UUID
    shifts: list[ShiftRecord]
    calendar: StoreHoursCalendar
    employee_names: dict[uuid.UUID, str] = field(default_factory=dict)
    unavailable: dict[uuid.UUID, list[UnavailableSlot]] = field(default_factory=dict)
    loaded_at: float = 0.0

    def shifts_on(self, employee_id: uuid.UUID, day: date) -> list[ShiftRecord]:
        return [s for s in self.shifts if s.employee_id == employee_id and s.date == day]

    def shifts_dated(self, day: date) -> list[ShiftRecord]:
        return sorted(
            (s for s in self.shifts if s.date == day),
            key=lambda s: (s.start_time, str(s.employee_id)),
        )

    def employee_name(self, employee_id: uuid.UUID | None) -> str:
        if employee_id is None:
            return "Employee"
        return self.employee_names.get(employee_id, str(employee_id))


async def load_snapshot(db: AsyncSession, location_id: uuid.UUID) -> ScheduleSnapshot:
    shifts = await db.execute(
        select(Shift).where(Shift.location_id == location_id).order_by(Shift.date, Shift.start_time)
    )
    employees = await db.execute(select(Employee).where(Employee.location_id == location_id))
    calendar = await load_store_calendar(db, location_id)

    names: dict[uuid.UUID, str] = {}
    unavailable: dict[uuid.UUID, list[UnavailableSlot]] = {}
    for emp in employees.scalars().all():
        names[emp.id] = emp.name
        unavailable[emp.id] = [
            UnavailableSlot(w.day_of_week, w.start_time, w.end_time) for w in emp.unavailable_windows
        ]

    return ScheduleSnapshot(
        location_id=location_id,
        shifts=[ShiftRecord.from_model(s) for s in shifts.scalars().all()],
        calendar=calendar,
        employee_names=names,
        unavailable=unavailable,
    )


class ScheduleCache:

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        max_age_seconds: float = 30.0,
        feed: ChangeFeed | None = None,
        clock: Callable[[], float] = _time.monotonic,
    ):
        self.session_factory = session_factory
        self.max_age_seconds = max_age_seconds
        self._clock = clock
        self._snapshots: dict[uuid.UUID, ScheduleSnapshot] = {}
        # bumped by invalidate(); a load that saw a different value is discarded
        self._generations: dict[uuid.UUID, int] = {}
        self._epoch = 0
        self._lock = asyncio.Lock()
        self._unsubscribe = feed.subscribe(self._on_change) if feed is not None else None

    def _on_change(self, event: ChangeEvent) -> None:
        self.invalidate(event.location_id)

    def _is_fresh(self, snapshot: ScheduleSnapshot) -> bool:
        return self._clock() - snapshot.loaded_at < self.max_age_seconds

    async def get(self, location_id: uuid.UUID) -> ScheduleSnapshot:
        snapshot = self._snapshots.get(location_id)
        if snapshot is not None and self._is_fresh(snapshot):
            return snapshot
        return await self.refresh(location_id)

    def _generation(self, location_id: uuid.UUID) -> tuple[int, int]:
        return self._epoch, self._generations.get(location_id, 0)

    async def _load(self, location_id: uuid.UUID) -> ScheduleSnapshot:
        try:
            async with self.session_factory() as db:
                return await load_snapshot(db, location_id)
        except SQLAlchemyError as exc:
            raise TransientStoreError(f"Could not load schedule for location {location_id}: {exc}") from exc

    async def refresh(self, location_id: uuid.UUID) -> ScheduleSnapshot:
        """
        Load a fresh snapshot and cache it.

        When the location is invalidated while the load is running the result is
        thrown away and loaded again. After MAX_RELOADS attempts the last load is
        returned uncached, so the next get() starts over.
        """
        async with self._lock:
            for _ in range(MAX_RELOADS):
                generation = self._generation(location_id)
                snapshot = await self._load(location_id)
                snapshot.loaded_at = self._clock()
                if self._generation(location_id) == generation:
                    self._snapshots[location_id] = snapshot
                    logger.debug("Loaded schedule snapshot for %s (%d shifts)", location_id, len(snapshot.shifts))
                    return snapshot
                logger.debug("Schedule for %s changed while loading, reloading", location_id)
            logger.warning("Schedule for %s kept changing during %d loads, not caching", location_id, MAX_RELOADS)
            return snapshot

    def invalidate(self, location_id: uuid.UUID | None = None) -> None:
        if location_id is None:
            self._epoch += 1
            self._snapshots.clear()
        else:
            self._generations[location_id] = self._generations.get(location_id, 0) + 1
            self._snapshots.pop(location_id, None)

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._snapshots.clear()
