from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    APP_ENV: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    ALLOWED_ORIGINS: str = "http://localhost:5173,http://localhost:3000"

    # Database – SQLite for local development, postgresql+asyncpg in production
    DATABASE_URL: str = "sqlite+aiosqlite:///./storeshift.db"

    # Redis change feed (optional – other processes invalidate their caches)
    REDIS_URL: str = "redis://localhost:6379/0"
    USE_REDIS_FEED: bool = False

    # Scheduling rules
    # True: a failed vacation lookup lets the shift through (availability over correctness)
    VACATION_LOOKUP_FAIL_OPEN: bool = True
    # Unavailable windows are informational unless this is switched on
    ENFORCE_UNAVAILABILITY: bool = False

    # Shift store writes
    STORE_WRITE_TIMEOUT_SECONDS: float = 5.0
    STORE_WRITE_MAX_RETRIES: int = 3
    STORE_RETRY_BACKOFF_SECONDS: float = 0.2

    # Schedule snapshot cache
    SNAPSHOT_MAX_AGE_SECONDS: float = 30.0

    # Public holiday import (ISO 3166 code understood by workalendar)
    HOLIDAY_COUNTRY: str = "ES"

    @property
    def allowed_origins_list(self) -> list[str]:
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",")]

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
