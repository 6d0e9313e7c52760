"""
Scheduling operations exposed to the API and to tooling.

Single-shift operations validate against the location snapshot and write through
the ShiftStore. Batch operations (template application, day/week duplication)
validate every item independently, then issue the accepted writes concurrently
and wait for all of them; one failing item never stops its siblings.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storeshift.core.config import settings
from storeshift.core.errors import (
    ShiftNotFoundError, ShiftOverlapError, StructuralError, TemplateNotFoundError, TransientStoreError,
)
from storeshift.core.redis import get_redis
from storeshift.models.employee import Employee
from storeshift.models.shift import Shift, ShiftTemplate, TemplateBlueprint
from storeshift.services.change_feed import ChangeEvent, ChangeFeed
from storeshift.services.schedule_cache import ScheduleCache, ScheduleSnapshot
from storeshift.services.shift_store import ShiftStore
from storeshift.services.store_hours_service import DayHours, TimeRange
from storeshift.services.vacation_service import VacationOracle, VacationRepository
from storeshift.services.validation_service import (
    ShiftCandidate, ShiftValidator, ValidationError, ValidationErrorType,
)

logger = logging.getLogger(__name__)

DAYS_PER_WEEK = 7


@dataclass
class ScheduleResult:
    shifts: list[Shift] = field(default_factory=list)
    errors: list[ValidationError] = field(default_factory=list)

    @property
    def is_ok(self) -> bool:
        return len(self.errors) == 0

    def extend(self, other: "ScheduleResult") -> None:
        self.shifts.extend(other.shifts)
        self.errors.extend(other.errors)


@dataclass
class HoursSummary:
    employee_id: uuid.UUID
    employee_name: str
    assigned_hours: float
    weekly_limit: float | None

    @property
    def over_limit(self) -> bool:
        return self.weekly_limit is not None and self.assigned_hours > self.weekly_limit


def blueprint_date(blueprint: TemplateBlueprint, anchor: date) -> date:
    """Concrete date of a blueprint: anchor + day_offset, or the next given weekday on/after anchor."""
    if blueprint.day_offset is not None:
        return anchor + timedelta(days=blueprint.day_offset)
    return anchor + timedelta(days=(blueprint.weekday - anchor.weekday()) % DAYS_PER_WEEK)


class ScheduleService:

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        cache: ScheduleCache,
        store: ShiftStore,
        validator: ShiftValidator,
    ):
        self.session_factory = session_factory
        self.cache = cache
        self.store = store
        self.validator = validator

    @classmethod
    def from_settings(
        cls,
        session_factory: async_sessionmaker[AsyncSession],
        feed: ChangeFeed | None = None,
    ) -> "ScheduleService":
        if feed is None:
            feed = ChangeFeed(get_redis if settings.USE_REDIS_FEED else None)
        vacations = VacationRepository(session_factory)
        return cls(
            session_factory,
            cache=ScheduleCache(
                session_factory, max_age_seconds=settings.SNAPSHOT_MAX_AGE_SECONDS, feed=feed,
            ),
            store=ShiftStore(
                session_factory,
                feed,
                write_timeout=settings.STORE_WRITE_TIMEOUT_SECONDS,
                max_retries=settings.STORE_WRITE_MAX_RETRIES,
                retry_backoff=settings.STORE_RETRY_BACKOFF_SECONDS,
            ),
            validator=ShiftValidator(
                VacationOracle(vacations.approved_requests_for, fail_open=settings.VACATION_LOOKUP_FAIL_OPEN),
                enforce_unavailability=settings.ENFORCE_UNAVAILABILITY,
            ),
        )

    @property
    def feed(self) -> ChangeFeed:
        return self.store.feed

    @staticmethod
    def _require_location(location_id: uuid.UUID | None) -> uuid.UUID:
        if location_id is None:
            raise StructuralError("No location selected")
        return location_id

    async def notify_changed(self, location_id: uuid.UUID, kind: str, action: str, *entity_ids: uuid.UUID) -> None:
        """Announce writes made outside the ShiftStore (store hours, exceptions, templates)."""
        await self.feed.publish(ChangeEvent(location_id, kind, action, tuple(entity_ids)))

    async def _snapshot_for(self, location_id: uuid.UUID, employee_ids=()) -> ScheduleSnapshot:
        """Location snapshot, reloaded once when it does not know one of ``employee_ids`` yet."""
        snapshot = await self.cache.get(location_id)
        if any(e not in snapshot.employee_names for e in employee_ids):
            snapshot = await self.cache.refresh(location_id)
        return snapshot

    # ── Single shifts ─────────────────────────────────────────────────────────

    async def validate_shift(self, candidate: ShiftCandidate, exclude_id: uuid.UUID | None = None) -> list[ValidationError]:
        """Dry run: the errors validate_and_create_shift would report, without writing."""
        location_id = self._require_location(candidate.location_id)
        snapshot = await self._snapshot_for(location_id, [candidate.employee_id])
        return await self.validator.validate(candidate, snapshot, exclude_id=exclude_id)

    async def validate_and_create_shift(self, candidate: ShiftCandidate) -> ScheduleResult:
        location_id = self._require_location(candidate.location_id)
        snapshot = await self._snapshot_for(location_id, [candidate.employee_id])
        errors = await self.validator.validate(candidate, snapshot)
        if errors:
            return ScheduleResult(errors=errors)

        parsed = candidate.parsed()
        try:
            shift = await self.store.create(
                location_id=location_id,
                employee_id=parsed.employee_id,
                day=parsed.date,
                start_time=parsed.start_time,
                end_time=parsed.end_time,
                template_id=parsed.template_id,
                source_shift_id=parsed.source_shift_id,
            )
        except ShiftOverlapError as exc:
            return ScheduleResult(errors=[
                ValidationError(ValidationErrorType.CONFLICT, str(exc), date=parsed.date)
            ])
        return ScheduleResult(shifts=[shift])

    async def validate_and_update_shift(
        self,
        location_id: uuid.UUID | None,
        shift_id: uuid.UUID,
        changes: dict,
        *,
        expected_version: int | None = None,
    ) -> ScheduleResult:
        """
        Validate the shift as it would look after ``changes`` and write it.

        Any successful edit leaves the shift unpublished, even when no time field changed.
        """
        location_id = self._require_location(location_id)
        snapshot = await self.cache.get(location_id)
        current = next((s for s in snapshot.shifts if s.id == shift_id), None)
        if current is None:
            snapshot = await self.cache.refresh(location_id)
            current = next((s for s in snapshot.shifts if s.id == shift_id), None)
        if current is None:
            raise ShiftNotFoundError(f"Shift {shift_id} not found")

        candidate = ShiftCandidate(
            location_id=location_id,
            employee_id=changes.get("employee_id") or current.employee_id,
            date=changes.get("date") or current.date,
            start_time=changes.get("start_time") or current.start_time,
            end_time=changes.get("end_time") or current.end_time,
            id=shift_id,
        )
        if candidate.employee_id not in snapshot.employee_names:
            snapshot = await self.cache.refresh(location_id)
        errors = await self.validator.validate(candidate, snapshot, exclude_id=shift_id)
        if errors:
            return ScheduleResult(errors=errors)

        parsed = candidate.parsed()
        try:
            shift = await self.store.update(
                location_id,
                shift_id,
                {
                    "employee_id": parsed.employee_id,
                    "date": parsed.date,
                    "start_time": parsed.start_time,
                    "end_time": parsed.end_time,
                },
                expected_version=expected_version,
            )
        except ShiftOverlapError as exc:
            return ScheduleResult(errors=[
                ValidationError(ValidationErrorType.CONFLICT, str(exc), shift_id=shift_id, date=parsed.date)
            ])
        return ScheduleResult(shifts=[shift])

    async def delete_shift(self, location_id: uuid.UUID | None, shift_id: uuid.UUID) -> None:
        await self.store.delete(self._require_location(location_id), shift_id)

    async def publish_shifts(self, location_id: uuid.UUID | None, shift_ids: list[uuid.UUID]) -> list[uuid.UUID]:
        """Publish without re-validation."""
        return await self.store.publish(self._require_location(location_id), shift_ids)

    # ── Batches ───────────────────────────────────────────────────────────────

    async def _persist(self, candidate: ShiftCandidate) -> Shift | ValidationError:
        try:
            return await self.store.create(
                location_id=candidate.location_id,
                employee_id=candidate.employee_id,
                day=candidate.date,
                start_time=candidate.start_time,
                end_time=candidate.end_time,
                template_id=candidate.template_id,
                source_shift_id=candidate.source_shift_id,
            )
        except ShiftOverlapError as exc:
            return ValidationError(ValidationErrorType.CONFLICT, str(exc), date=candidate.date)
        except TransientStoreError as exc:
            return ValidationError(ValidationErrorType.STORE, f"Could not save shift: {exc}", date=candidate.date)

    async def _run_batch(self, location_id: uuid.UUID, candidates: list[ShiftCandidate], label: str) -> ScheduleResult:
        snapshot = await self._snapshot_for(location_id, {c.employee_id for c in candidates})
        result = ScheduleResult()
        accepted: list[tuple[int, ShiftCandidate]] = []

        for index, candidate in enumerate(candidates):
            errors = await self.validator.validate(
                candidate, snapshot, pending=[c for _, c in accepted],
            )
            if errors:
                result.errors.extend(e.for_item(index=index, shift_id=candidate.source_shift_id) for e in errors)
                continue
            accepted.append((index, candidate.parsed()))

        outcomes = await asyncio.gather(
            *(self._persist(c) for _, c in accepted), return_exceptions=True,
        )
        unexpected: list[BaseException] = []
        for (index, candidate), outcome in zip(accepted, outcomes):
            if isinstance(outcome, ValidationError):
                result.errors.append(outcome.for_item(index=index, shift_id=candidate.source_shift_id))
            elif isinstance(outcome, BaseException):
                unexpected.append(outcome)
            else:
                result.shifts.append(outcome)

        result.errors.sort(key=lambda e: e.index if e.index is not None else -1)
        logger.info(
            "%s for location %s: %d of %d shifts created, %d errors",
            label, location_id, len(result.shifts), len(candidates), len(result.errors),
        )
        if unexpected:
            logger.error("%s: %d writes failed unexpectedly", label, len(unexpected))
            raise unexpected[0]
        return result

    async def _load_template(self, location_id: uuid.UUID, template_id: uuid.UUID) -> ShiftTemplate:
        async with self.session_factory() as db:
            result = await db.execute(
                select(ShiftTemplate).where(
                    ShiftTemplate.id == template_id,
                    ShiftTemplate.location_id == location_id,
                )
            )
            template = result.scalar_one_or_none()
        if template is None:
            raise TemplateNotFoundError(f"Template {template_id} not found")
        return template

    async def apply_template(
        self, location_id: uuid.UUID | None, template_id: uuid.UUID, anchor_date: date,
    ) -> ScheduleResult:
        location_id = self._require_location(location_id)
        template = await self._load_template(location_id, template_id)
        candidates = [
            ShiftCandidate(
                location_id=location_id,
                employee_id=bp.employee_id,
                date=blueprint_date(bp, anchor_date),
                start_time=bp.start_time,
                end_time=bp.end_time,
                template_id=template.id,
            )
            for bp in template.blueprints
        ]
        return await self._run_batch(location_id, candidates, f"Template '{template.name}'")

    async def duplicate_day(self, location_id: uuid.UUID | None, source_date: date) -> ScheduleResult:
        """Copy the shifts dated exactly ``source_date`` one week forward, unpublished."""
        location_id = self._require_location(location_id)
        snapshot = await self.cache.get(location_id)
        target = source_date + timedelta(days=DAYS_PER_WEEK)
        candidates = [
            ShiftCandidate(
                location_id=location_id,
                employee_id=s.employee_id,
                date=target,
                start_time=s.start_time,
                end_time=s.end_time,
                source_shift_id=s.id,
            )
            for s in snapshot.shifts_dated(source_date)
        ]
        return await self._run_batch(location_id, candidates, f"Duplicate {source_date.isoformat()}")

    async def duplicate_week(self, location_id: uuid.UUID | None, week_start: date) -> ScheduleResult:
        """duplicate_day for each of the seven days starting at ``week_start``."""
        location_id = self._require_location(location_id)
        result = ScheduleResult()
        for offset in range(DAYS_PER_WEEK):
            result.extend(await self.duplicate_day(location_id, week_start + timedelta(days=offset)))
        return result

    # ── Templates ─────────────────────────────────────────────────────────────

    async def create_template(self, location_id: uuid.UUID | None, name: str, blueprints: list[dict]) -> ShiftTemplate:
        location_id = self._require_location(location_id)
        employee_ids = {bp["employee_id"] for bp in blueprints}
        snapshot = await self._snapshot_for(location_id, employee_ids)
        foreign = sorted(str(e) for e in employee_ids if e not in snapshot.employee_names)
        if foreign:
            raise StructuralError(f"Employees not assigned to this location: {', '.join(foreign)}")

        async with self.session_factory() as db:
            template = ShiftTemplate(location_id=location_id, name=name)
            template.blueprints = [
                TemplateBlueprint(position=position, **bp) for position, bp in enumerate(blueprints)
            ]
            db.add(template)
            await db.commit()
            await db.refresh(template, ["blueprints"])
        await self.notify_changed(location_id, "template", "create", template.id)
        return template

    async def capture_template(
        self, location_id: uuid.UUID | None, name: str, from_date: date, days: int = DAYS_PER_WEEK,
    ) -> ShiftTemplate:
        """Save the shifts of [from_date, from_date + days) as a template relative to from_date."""
        location_id = self._require_location(location_id)
        snapshot = await self.cache.get(location_id)
        until = from_date + timedelta(days=days)
        blueprints = [
            {
                "employee_id": s.employee_id,
                "day_offset": (s.date - from_date).days,
                "start_time": s.start_time,
                "end_time": s.end_time,
            }
            for s in sorted(snapshot.shifts, key=lambda s: (s.date, s.start_time))
            if from_date <= s.date < until
        ]
        return await self.create_template(location_id, name, blueprints)

    # ── Store hours & reporting ───────────────────────────────────────────────

    async def day_hours(self, location_id: uuid.UUID | None, day: date) -> DayHours:
        snapshot = await self.cache.get(self._require_location(location_id))
        return snapshot.calendar.resolve(day)

    async def is_date_open(self, location_id: uuid.UUID | None, day: date) -> bool:
        snapshot = await self.cache.get(self._require_location(location_id))
        return snapshot.calendar.is_date_open(day)

    async def permitted_ranges(self, location_id: uuid.UUID | None, day: date) -> list[TimeRange]:
        snapshot = await self.cache.get(self._require_location(location_id))
        return snapshot.calendar.permitted_ranges(day)

    async def hours_summary(self, location_id: uuid.UUID | None, week_start: date) -> list[HoursSummary]:
        """Assigned hours per active employee for the week, next to the advisory weekly ceiling."""
        location_id = self._require_location(location_id)
        snapshot = await self.cache.get(location_id)
        week_end = week_start + timedelta(days=DAYS_PER_WEEK)

        totals: dict[uuid.UUID, float] = {}
        for s in snapshot.shifts:
            if week_start <= s.date < week_end:
                totals[s.employee_id] = totals.get(s.employee_id, 0.0) + s.hours

        async with self.session_factory() as db:
            result = await db.execute(
                select(Employee).where(Employee.location_id == location_id, Employee.is_active == True)
                .order_by(Employee.name)
            )
            employees = result.scalars().all()

        return [
            HoursSummary(
                employee_id=emp.id,
                employee_name=emp.name,
                assigned_hours=totals.get(emp.id, 0.0),
                weekly_limit=float(emp.weekly_hours_limit) if emp.weekly_hours_limit is not None else None,
            )
            for emp in employees
        ]
