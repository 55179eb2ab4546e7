from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    # Environment
    environment: str = Field(default="development", alias="ENVIRONMENT")

    # Database - PostgreSQL for production, SQLite for development
    database_url: str = Field(
        default="sqlite:///./roomstay.db",
        alias="DATABASE_URL"
    )

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=True, alias="LOG_JSON")

    # CORS - Frontend URLs (comma-separated)
    allowed_origins: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173",
        alias="ALLOWED_ORIGINS"
    )

    default_currency: str = Field(default="USD", alias="DEFAULT_CURRENCY")

    # ==============================================
    # Availability engine limits
    # ==============================================
    # Open-ended recurring block periods are projected this far from their start
    block_recurrence_horizon_days: int = Field(default=730, alias="BLOCK_RECURRENCE_HORIZON_DAYS")

    # Largest grid window (days) a single request may ask for
    max_grid_days: int = Field(default=731, alias="MAX_GRID_DAYS")

    # Stay validation
    max_stay_nights: int = Field(default=365, alias="MAX_STAY_NIGHTS")
    max_advance_days: int = Field(default=730, alias="MAX_ADVANCE_DAYS")

    # Rolling window used by the materialize endpoint
    materialize_window_days: int = Field(default=365, alias="MATERIALIZE_WINDOW_DAYS")

    # ==============================================
    # Write path
    # ==============================================
    # Bounded wait on row locks (PostgreSQL lock_timeout / SQLite busy timeout)
    store_lock_timeout_ms: int = Field(default=5000, alias="STORE_LOCK_TIMEOUT_MS")

    # Whole-operation retries for lock timeouts and aborted transactions
    transient_retry_attempts: int = Field(default=3, alias="TRANSIENT_RETRY_ATTEMPTS")
    transient_retry_backoff_seconds: float = Field(default=0.05, alias="TRANSIENT_RETRY_BACKOFF_SECONDS")

    # ==============================================
    # Rate limiting (public check / reservation endpoints)
    # ==============================================
    rate_limit_enabled: bool = Field(default=True, alias="RATE_LIMIT_ENABLED")
    rate_limit_storage_uri: str = Field(default="memory://", alias="RATE_LIMIT_STORAGE_URI")
    check_rate_limit: str = Field(default="120/minute", alias="CHECK_RATE_LIMIT")
    reservation_rate_limit: str = Field(default="30/minute", alias="RESERVATION_RATE_LIMIT")

    @field_validator('transient_retry_attempts')
    @classmethod
    def validate_retry_attempts(cls, v: int) -> int:
        """At least one attempt is always made"""
        if v < 1:
            raise ValueError("TRANSIENT_RETRY_ATTEMPTS must be at least 1")
        return v

    @field_validator('block_recurrence_horizon_days', 'max_grid_days')
    @classmethod
    def validate_positive_days(cls, v: int) -> int:
        if v < 1:
            raise ValueError("day limits must be positive")
        return v

    @property
    def cors_origins(self) -> List[str]:
        """
        Parse allowed origins from comma-separated string.
        Returns a list suitable for CORSMiddleware.
        """
        if not self.allowed_origins:
            return ["http://localhost:5173"]

        origins = []
        seen = set()
        for origin in self.allowed_origins.split(","):
            origin = origin.strip().rstrip("/")
            if origin and origin not in seen:
                seen.add(origin)
                origins.append(origin)

        return origins or ["http://localhost:5173"]

    class Config:
        env_file = ".env"
        extra = "ignore"
        populate_by_name = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
