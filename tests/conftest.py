"""
Shared pytest fixtures for StoreShift tests.

Uses SQLite in-memory with StaticPool so all sessions share one connection,
meaning data written in one session is visible to others (important for the
scheduler, which opens its own sessions, and for HTTP client tests).
"""
import uuid
from datetime import date, time

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

import storeshift.models  # noqa – registers all SQLAlchemy models with Base.metadata
from storeshift.api.deps import get_scheduler
from storeshift.core.database import Base, get_db
from storeshift.main import app
from storeshift.models.employee import Employee
from storeshift.models.location import Location
from storeshift.models.shift import Shift
from storeshift.models.store_hours import StoreSchedule
from storeshift.models.vacation import VacationRequest
from storeshift.services.change_feed import ChangeFeed
from storeshift.services.schedule_service import ScheduleService
from storeshift.utils.time_intervals import duration_hours, parse_time

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# ── Shared engine (function-scoped: fresh DB per test) ───────────────────────

@pytest_asyncio.fixture
async def engine():
    """Creates a fresh in-memory SQLite engine per test with a shared connection pool."""
    eng = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,          # single shared connection → all sessions see same data
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield eng

    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await eng.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncSession:
    """Async DB session for direct data inspection inside tests."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def scheduler(session_factory) -> ScheduleService:
    """ScheduleService wired to the test engine with an in-process change feed."""
    service = ScheduleService.from_settings(session_factory, feed=ChangeFeed())
    yield service
    service.cache.close()


# ── HTTP client fixture ───────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def client(session_factory, scheduler) -> AsyncClient:
    """
    FastAPI test client with get_db and the scheduler overridden to use the test engine.
    Lifespan does not run under ASGITransport, so app.state is never consulted.
    """
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_scheduler] = lambda: scheduler

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()


# ── Location + employee fixtures ──────────────────────────────────────────────

@pytest_asyncio.fixture
async def location(db) -> Location:
    loc = Location(id=uuid.uuid4(), name="Calle Mayor", is_active=True)
    db.add(loc)
    await db.commit()
    await db.refresh(loc)
    return loc


@pytest_asyncio.fixture
async def other_location(db) -> Location:
    loc = Location(id=uuid.uuid4(), name="Gran Vía", is_active=True)
    db.add(loc)
    await db.commit()
    await db.refresh(loc)
    return loc


@pytest_asyncio.fixture
async def employee(db, location) -> Employee:
    emp = Employee(id=uuid.uuid4(), location_id=location.id, name="Ana", weekly_hours_limit=20, is_active=True)
    db.add(emp)
    await db.commit()
    await db.refresh(emp)
    return emp


@pytest_asyncio.fixture
async def second_employee(db, location) -> Employee:
    emp = Employee(id=uuid.uuid4(), location_id=location.id, name="Ben", is_active=True)
    db.add(emp)
    await db.commit()
    await db.refresh(emp)
    return emp


# ── Helpers ───────────────────────────────────────────────────────────────────

def location_headers(location: Location) -> dict:
    return {"X-Location-Id": str(location.id)}


async def add_shift(db, location, employee, day: date, start: str, end: str, **extra) -> Shift:
    """Insert a shift directly, bypassing validation (test setup only)."""
    shift = Shift(
        location_id=location.id,
        employee_id=employee.id,
        date=day,
        start_time=parse_time(start),
        end_time=parse_time(end),
        hours=duration_hours(start, end),
        **extra,
    )
    db.add(shift)
    await db.commit()
    await db.refresh(shift)
    return shift


async def set_weekday_hours(db, location, day_of_week: int, *ranges: tuple[str, str], is_open: bool = True):
    db.add(StoreSchedule(
        location_id=location.id,
        day_of_week=day_of_week,
        is_open=is_open,
        time_ranges=[{"open_time": o, "close_time": c} for o, c in ranges],
    ))
    await db.commit()


async def add_vacation(db, location, employee, start: date, end: date, status: str = "approved"):
    db.add(VacationRequest(
        location_id=location.id,
        employee_id=employee.id,
        start_date=start,
        end_date=end,
        status=status,
    ))
    await db.commit()


def at(hhmm: str) -> time:
    return parse_time(hhmm)
