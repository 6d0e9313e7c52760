"""
Vacation conflict oracle.

Answers "is this employee on approved time off on this date?". Requests are read
through an injected async lookup so the oracle does not depend on a session.

Lookup failures are handled by an explicit policy instead of an incidental
catch-and-default:
  fail_open=True   -> treat as "no conflict", scheduling continues (default)
  fail_open=False  -> treat as "conflict", the shift is rejected
Both outcomes are logged.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Awaitable, Callable

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storeshift.core.errors import TransientStoreError
from storeshift.models.vacation import VacationRequest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApprovedAbsence:
    start_date: date
    end_date: date  # inclusive

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


ApprovedLookup = Callable[[uuid.UUID], Awaitable[list[ApprovedAbsence]]]


class VacationOracle:

    def __init__(self, lookup: ApprovedLookup, *, fail_open: bool = True):
        self.lookup = lookup
        self.fail_open = fail_open

    async def has_approved_vacation_conflict(self, employee_id: uuid.UUID, day: date) -> bool:
        try:
            absences = await self.lookup(employee_id)
        except TransientStoreError as exc:
            if self.fail_open:
                logger.warning(
                    "Vacation lookup failed for employee %s on %s, allowing shift (fail-open): %s",
                    employee_id, day, exc,
                )
                return False
            logger.warning(
                "Vacation lookup failed for employee %s on %s, rejecting shift (fail-closed): %s",
                employee_id, day, exc,
            )
            return True
        return any(a.covers(day) for a in absences)


class VacationRepository:
    """Reads approved requests from the database; wraps driver errors as TransientStoreError."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def approved_requests_for(self, employee_id: uuid.UUID) -> list[ApprovedAbsence]:
        try:
            async with self.session_factory() as db:
                result = await db.execute(
                    select(VacationRequest.start_date, VacationRequest.end_date).where(
                        VacationRequest.employee_id == employee_id,
                        VacationRequest.status == "approved",
                    )
                )
                return [ApprovedAbsence(start, end) for start, end in result.all()]
        except SQLAlchemyError as exc:
            raise TransientStoreError(f"Could not read vacation requests: {exc}") from exc
