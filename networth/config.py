# networth/config.py
"""
Engine configuration using Pydantic Settings.

Loads configuration from environment variables with validation:
- ENVIRONMENT: Runtime mode (development, test, production)
- BASE_CURRENCY: Currency every valuation is reported in
- CACHE_URL: Optional SQLAlchemy URL for a persistent price cache
- CACHE_CAPACITY_BYTES: Size budget for cached price/FX entries
- STALE_FALLBACK_DAYS: How far back to look for a stale price

Environment-specific behavior:
- test: Defaults to an in-memory cache store
- development/production: Honour CACHE_URL when set

Usage:
    from networth.config import settings

    valuation = service.render_cached(portfolio, settings.base_currency)
"""
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    """
    Engine settings loaded from environment variables.

    Environment variables:
        - ENVIRONMENT: Runtime environment (development, test, production)
        - LOG_LEVEL: Logging level (default: "INFO")
        - LOG_FORMAT: Log output format, text or json (default: "text")
        - BASE_CURRENCY: Reporting currency (default: "GBP")

    Cache Settings:
        - CACHE_URL: SQLAlchemy URL for the persistent store (default: memory)
        - CACHE_CAPACITY_BYTES: Store size budget (default: 5 MiB)
        - STALE_FALLBACK_DAYS: Days scanned for a stale entry (default: 7)
    """

    environment: Literal["development", "test", "production"] = Field(
        default="development",
        description="Runtime environment (development, test, production)"
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    log_format: Literal["text", "json"] = Field(
        default="text",
        description="Log output format (text for humans, json for aggregation)"
    )

    base_currency: str = Field(
        default="GBP",
        min_length=3,
        max_length=3,
        description="ISO currency code all valuations are reported in"
    )

    # Price cache
    cache_url: str | None = Field(
        default=None,
        description="SQLAlchemy URL for a persistent cache (None = in-memory)"
    )

    cache_capacity_bytes: int = Field(
        default=5 * 1024 * 1024,
        ge=1024,
        description="Maximum size of cached values before eviction"
    )

    stale_fallback_days: int = Field(
        default=7,
        ge=1,
        le=30,
        description="Calendar days scanned backwards when a live fetch fails"
    )

    # Quote source
    quote_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout passed to the market data provider per request"
    )

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("base_currency")
    @classmethod
    def _upper_currency(cls, value: str) -> str:
        return value.upper()

    @property
    def is_test(self) -> bool:
        """Check if running in test mode."""
        return self.environment == "test"

    @property
    def uses_persistent_cache(self) -> bool:
        """Check if price cache entries survive process restarts."""
        return self.cache_url is not None and not self.is_test


settings = Settings()
