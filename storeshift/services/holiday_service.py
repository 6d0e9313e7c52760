"""
Public holidays as store exceptions.

Imported holidays become StoreException rows with is_holiday=True, is_open=True
and no ranges of their own, which makes the calendar apply the holiday hours
(weekly entry 7) on those dates – or treat the day as closed when no holiday
hours are configured.
"""
from __future__ import annotations

import logging
import uuid
from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from workalendar.registry import registry

from storeshift.models.store_hours import StoreException

logger = logging.getLogger(__name__)


def public_holidays(year: int, country: str) -> dict[date, str]:
    """Public holidays of a country (ISO code, e.g. "ES", "DE-BW") for one year."""
    calendar_class = registry.get(country)
    if calendar_class is None:
        raise ValueError(f"No holiday calendar for country {country!r}")
    return {d: name for d, name in calendar_class().holidays(year)}


def is_public_holiday(d: date, country: str) -> tuple[bool, str | None]:
    name = public_holidays(d.year, country).get(d)
    return name is not None, name


async def import_public_holidays(
    db: AsyncSession,
    location_id: uuid.UUID,
    year: int,
    country: str,
    *,
    overwrite: bool = False,
) -> list[StoreException]:
    """
    Add a holiday exception for every public holiday of ``year``.

    Dates that already carry an exception are left alone unless ``overwrite``.
    Does NOT commit – caller is responsible for db.commit.
    """
    holidays = public_holidays(year, country)
    result = await db.execute(
        select(StoreException).where(
            StoreException.location_id == location_id,
            StoreException.date.in_(list(holidays)),
        )
    )
    existing = {e.date: e for e in result.scalars().all()}

    touched: list[StoreException] = []
    for day, name in sorted(holidays.items()):
        exception = existing.get(day)
        if exception is not None and not overwrite:
            continue
        if exception is None:
            exception = StoreException(location_id=location_id, date=day)
            db.add(exception)
        exception.is_open = True
        exception.is_holiday = True
        exception.time_ranges = []
        exception.open_time = None
        exception.close_time = None
        exception.reason = name
        touched.append(exception)

    logger.info(
        "Imported %d public holidays (%s %d) for location %s, %d already present",
        len(touched), country, year, location_id, len(existing) if not overwrite else 0,
    )
    return touched
