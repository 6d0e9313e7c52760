"""
Shift store adapter: the only code that writes shifts.

Every write
  - runs in its own transaction, with an audit log row,
  - re-checks overlap for (employee_id, date) inside that transaction, so two
    callers validating against stale snapshots cannot both commit overlapping shifts,
  - is bounded by a timeout and retried with exponential backoff on transient
    driver errors,
  - publishes a ChangeEvent once committed.
Updates also take the caller's expected version (optimistic concurrency).
"""
from __future__ import annotations

import asyncio
import hashlib
import logging
import uuid
from datetime import date, time
from typing import Awaitable, Callable, Iterable, TypeVar

from sqlalchemy import select, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from storeshift.core.errors import (
    ShiftNotFoundError, ShiftOverlapError, StaleShiftError, TransientStoreError,
)
from storeshift.models.audit import AuditLog
from storeshift.models.shift import Shift
from storeshift.services.change_feed import ChangeEvent, ChangeFeed
from storeshift.utils.time_intervals import duration_hours, format_time, overlaps, to_minutes

logger = logging.getLogger(__name__)

T = TypeVar("T")

SHIFT_FIELDS = ("employee_id", "date", "start_time", "end_time")


def _shift_values(shift: Shift) -> dict:
    return {
        "employee_id": str(shift.employee_id),
        "date": shift.date.isoformat(),
        "start_time": format_time(shift.start_time),
        "end_time": format_time(shift.end_time),
        "hours": shift.hours,
        "is_published": shift.is_published,
    }


def _day_lock_key(employee_id: uuid.UUID, day: date) -> int:
    digest = hashlib.blake2b(f"{employee_id}:{day.isoformat()}".encode(), digest_size=8).digest()
    return int.from_bytes(digest, "big", signed=True)


class ShiftStore:

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        feed: ChangeFeed,
        *,
        write_timeout: float = 5.0,
        max_retries: int = 3,
        retry_backoff: float = 0.2,
    ):
        self.session_factory = session_factory
        self.feed = feed
        self.write_timeout = write_timeout
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff
        # SQLite allows a single writer; on PostgreSQL the advisory lock below does the real work
        self._write_lock = asyncio.Lock()

    # ── Write plumbing ────────────────────────────────────────────────────────

    async def _write(self, op: Callable[[], Awaitable[T]], label: str) -> T:
        last_exc: Exception | None = None
        attempts = self.max_retries + 1
        for attempt in range(attempts):
            try:
                async with self._write_lock:
                    return await asyncio.wait_for(op(), timeout=self.write_timeout)
            except (OperationalError, asyncio.TimeoutError) as exc:
                last_exc = exc
                if attempt + 1 == attempts:
                    break
                delay = self.retry_backoff * (2 ** attempt)
                logger.warning(
                    "Shift store %s failed (attempt %d/%d), retrying in %.2fs: %r",
                    label, attempt + 1, attempts, delay, exc,
                )
                await asyncio.sleep(delay)
        raise TransientStoreError(f"Shift store {label} failed after {attempts} attempts: {last_exc!r}") from last_exc

    async def _lock_day(self, db: AsyncSession, employee_id: uuid.UUID, day: date) -> None:
        if db.get_bind().dialect.name == "postgresql":
            await db.execute(
                text("SELECT pg_advisory_xact_lock(:key)"), {"key": _day_lock_key(employee_id, day)}
            )

    async def _guard_overlap(
        self,
        db: AsyncSession,
        *,
        location_id: uuid.UUID,
        employee_id: uuid.UUID,
        day: date,
        start: time,
        end: time,
        exclude_id: uuid.UUID | None = None,
    ) -> None:
        await self._lock_day(db, employee_id, day)
        query = select(Shift).where(
            Shift.location_id == location_id,
            Shift.employee_id == employee_id,
            Shift.date == day,
        )
        if exclude_id is not None:
            query = query.where(Shift.id != exclude_id)
        result = await db.execute(query)
        start_min, end_min = to_minutes(start), to_minutes(end)
        for other in result.scalars().all():
            if overlaps(start_min, end_min, to_minutes(other.start_time), to_minutes(other.end_time)):
                raise ShiftOverlapError(
                    f"Overlaps shift {format_time(other.start_time)}-{format_time(other.end_time)} "
                    f"on {day.isoformat()}",
                    conflicting_id=other.id,
                )

    # ── Operations ────────────────────────────────────────────────────────────

    async def create(
        self,
        *,
        location_id: uuid.UUID,
        employee_id: uuid.UUID,
        day: date,
        start_time: time,
        end_time: time,
        template_id: uuid.UUID | None = None,
        source_shift_id: uuid.UUID | None = None,
    ) -> Shift:
        async def op() -> Shift:
            async with self.session_factory() as db:
                async with db.begin():
                    await self._guard_overlap(
                        db, location_id=location_id, employee_id=employee_id,
                        day=day, start=start_time, end=end_time,
                    )
                    shift = Shift(
                        location_id=location_id,
                        employee_id=employee_id,
                        template_id=template_id,
                        source_shift_id=source_shift_id,
                        date=day,
                        start_time=start_time,
                        end_time=end_time,
                        hours=duration_hours(start_time, end_time),
                        is_published=False,
                    )
                    db.add(shift)
                    await db.flush()
                    db.add(AuditLog(
                        location_id=location_id, entity_type="shift", entity_id=shift.id,
                        action="create", new_values=_shift_values(shift),
                    ))
                return shift

        shift = await self._write(op, "create")
        await self.feed.publish(ChangeEvent(location_id, "shift", "create", (shift.id,)))
        return shift

    async def update(
        self,
        location_id: uuid.UUID,
        shift_id: uuid.UUID,
        changes: dict,
        *,
        expected_version: int | None = None,
    ) -> Shift:
        """Apply employee/date/time changes. Always clears is_published and recomputes hours."""
        unknown = set(changes) - set(SHIFT_FIELDS)
        if unknown:
            raise ValueError(f"Unsupported shift fields: {sorted(unknown)}")

        async def op() -> Shift:
            async with self.session_factory() as db:
                try:
                    async with db.begin():
                        shift = await db.get(Shift, shift_id)
                        if shift is None or shift.location_id != location_id:
                            raise ShiftNotFoundError(f"Shift {shift_id} not found")
                        if expected_version is not None and shift.version != expected_version:
                            raise StaleShiftError(shift_id, expected_version, shift.version)

                        old_values = _shift_values(shift)
                        with db.no_autoflush:
                            for field, value in changes.items():
                                setattr(shift, field, value)
                            await self._guard_overlap(
                                db, location_id=location_id, employee_id=shift.employee_id,
                                day=shift.date, start=shift.start_time, end=shift.end_time,
                                exclude_id=shift.id,
                            )
                        shift.hours = duration_hours(shift.start_time, shift.end_time)
                        shift.is_published = False
                        await db.flush()
                        db.add(AuditLog(
                            location_id=location_id, entity_type="shift", entity_id=shift.id,
                            action="update", old_values=old_values, new_values=_shift_values(shift),
                        ))
                except StaleDataError as exc:
                    raise StaleShiftError(shift_id, expected_version, None) from exc
                return shift

        shift = await self._write(op, "update")
        await self.feed.publish(ChangeEvent(location_id, "shift", "update", (shift.id,)))
        return shift

    async def delete(self, location_id: uuid.UUID, shift_id: uuid.UUID) -> None:
        async def op() -> None:
            async with self.session_factory() as db:
                async with db.begin():
                    shift = await db.get(Shift, shift_id)
                    if shift is None or shift.location_id != location_id:
                        raise ShiftNotFoundError(f"Shift {shift_id} not found")
                    db.add(AuditLog(
                        location_id=location_id, entity_type="shift", entity_id=shift.id,
                        action="delete", old_values=_shift_values(shift),
                    ))
                    await db.delete(shift)

        await self._write(op, "delete")
        await self.feed.publish(ChangeEvent(location_id, "shift", "delete", (shift_id,)))

    async def publish(self, location_id: uuid.UUID, shift_ids: Iterable[uuid.UUID]) -> list[uuid.UUID]:
        """Mark shifts published. Unknown ids and shifts of other locations are ignored."""
        ids = list(dict.fromkeys(shift_ids))
        if not ids:
            return []

        async def op() -> list[uuid.UUID]:
            async with self.session_factory() as db:
                async with db.begin():
                    result = await db.execute(
                        select(Shift).where(Shift.location_id == location_id, Shift.id.in_(ids))
                    )
                    published = []
                    for shift in result.scalars().all():
                        if shift.is_published:
                            continue
                        shift.is_published = True
                        published.append(shift.id)
                    if published:
                        db.add(AuditLog(
                            location_id=location_id, entity_type="shift", entity_id=None,
                            action="publish", new_values={"shift_ids": [str(i) for i in published]},
                        ))
                return published

        published = await self._write(op, "publish")
        if published:
            await self.feed.publish(ChangeEvent(location_id, "shift", "publish", tuple(published)))
        return published
