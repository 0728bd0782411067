# clinic_scheduler/core/config.py

from datetime import time
from zoneinfo import ZoneInfo
import urllib.parse

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Read env from .env; ignore unknown keys so extra lines don't crash startup
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Database ---
    # A full async URL wins over the Postgres parts (tests use sqlite+aiosqlite)
    DATABASE_URL: str | None = None
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "clinic"
    POSTGRES_USER: str = "clinic"
    POSTGRES_PASSWORD: str = ""

    # --- Clinic scheduling ---
    CLINIC_TIMEZONE: str = "America/Sao_Paulo"
    OPENING_TIME: time = time(8, 0)
    LAST_SLOT_TIME: time = time(18, 0)  # last bookable start, inclusive
    SLOT_MINUTES: int = 30
    DEFAULT_DURATION_MIN: int = 50
    ALLOWED_DURATIONS: list[int] = [30, 50, 60]
    REJECT_PAST_BOOKINGS: bool = True
    CLINIC_ID: str = "default"
    PHONE_REGION: str = "BR"  # region assumed for numbers without a country code

    # --- Security ---
    CLINIC_API_KEY: str | None = None

    # --- Monitoring & Logging ---
    APP_ENV: str = "production"
    LOG_LEVEL: str = "INFO"
    LOG_REQUESTS: bool = False
    LOG_RESPONSES: bool = False
    MAX_LOG_LENGTH: int = 200
    SLOW_REQUEST_THRESHOLD: float = 2.0

    # Sync URI (Alembic)
    @property
    def sync_db_uri(self) -> str:
        if self.DATABASE_URL:
            return (
                self.DATABASE_URL
                .replace("+asyncpg", "")
                .replace("+aiosqlite", "")
            )
        pwd = urllib.parse.quote_plus(self.POSTGRES_PASSWORD)
        return f"postgresql://{self.POSTGRES_USER}:{pwd}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    # Async URI (SQLAlchemy engine)
    @property
    def async_db_uri(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        pwd = urllib.parse.quote_plus(self.POSTGRES_PASSWORD)
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{pwd}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.CLINIC_TIMEZONE)

    # Monitoring helpers
    @property
    def is_development(self) -> bool:
        return self.APP_ENV.lower() in ("development", "dev", "local")

    @property
    def is_testing(self) -> bool:
        return self.APP_ENV.lower() in ("test", "testing")

    @property
    def is_production(self) -> bool:
        return self.APP_ENV.lower() in ("production", "prod")

# Singleton
settings = Settings()
