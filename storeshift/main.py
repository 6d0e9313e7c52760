import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storeshift.core.config import settings
from storeshift.core.database import AsyncSessionLocal, create_tables
from storeshift.core.errors import (
    ShiftNotFoundError, StaleShiftError, StructuralError, TemplateNotFoundError, TransientStoreError,
)
from storeshift.core.redis import close_redis
from storeshift.api.v1.shifts import router as shifts_router
from storeshift.api.v1.templates import router as templates_router
from storeshift.api.v1.store_hours import router as store_hours_router, exceptions_router
from storeshift.services.schedule_service import ScheduleService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(level=settings.LOG_LEVEL)
    # Create tables on startup (SQLite / local development)
    await create_tables()

    scheduler = ScheduleService.from_settings(AsyncSessionLocal)
    app.state.scheduler = scheduler
    listener = None
    if settings.USE_REDIS_FEED:
        listener = asyncio.create_task(scheduler.feed.listen_remote())
        logger.info("Listening for remote change events on %s", settings.REDIS_URL)

    yield

    if listener is not None:
        listener.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await listener
    scheduler.cache.close()
    await close_redis()


app = FastAPI(
    title="StoreShift API",
    description="Shift scheduling and validation for retail locations",
    version="1.0.0",
    lifespan=lifespan,
    # Swagger UI only in development – set DEBUG=false in production
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Service errors → HTTP ────────────────────────────────────────────────────

@app.exception_handler(StructuralError)
async def structural_error_handler(request: Request, exc: StructuralError):
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


@app.exception_handler(ShiftNotFoundError)
@app.exception_handler(TemplateNotFoundError)
async def not_found_handler(request: Request, exc: Exception):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.exception_handler(StaleShiftError)
async def stale_shift_handler(request: Request, exc: StaleShiftError):
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})


@app.exception_handler(TransientStoreError)
async def transient_store_handler(request: Request, exc: TransientStoreError):
    logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Schedule store temporarily unavailable, try again"},
    )


API_PREFIX = "/api/v1"

app.include_router(shifts_router, prefix=API_PREFIX)
app.include_router(templates_router, prefix=API_PREFIX)
app.include_router(store_hours_router, prefix=API_PREFIX)
app.include_router(exceptions_router, prefix=API_PREFIX)


@app.get("/health")
async def health_check():
    return {"status": "ok", "service": "StoreShift API", "version": "1.0.0"}
