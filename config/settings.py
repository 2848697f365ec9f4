"""
Environment-driven settings.

Store credentials, the scheduling time zone and the fallback weekly
cutoff, and the tuning knobs of the order number allocator.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """
    Read from the environment or a .env file (names are case-insensitive).

    A missing SUPABASE_URL or SUPABASE_KEY fails at import time.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # ===================
    # SUPABASE
    # ===================
    supabase_url: str = Field(
        ...,
        description="Supabase project URL"
    )
    supabase_key: str = Field(
        ...,
        description="Supabase anon key"
    )
    supabase_service_key: Optional[str] = Field(
        None,
        description="Service role key, preferred over the anon key when set"
    )

    # ===================
    # SCHEDULING
    # ===================
    app_timezone: str = Field(
        default="America/New_York",
        description="Time zone used for 'today' in all order and delivery date logic"
    )
    default_weekly_cutoff_day: str = Field(
        default="Friday",
        description="Weekly cutoff weekday when the settings table has no value"
    )
    default_weekly_cutoff_time: str = Field(
        default="17:00",
        pattern=r"^\d{1,2}:\d{2}$",
        description="Weekly cutoff time (HH:MM) when the settings table has no value"
    )

    # ===================
    # ORDER NUMBERS
    # ===================
    order_number_floor: int = Field(
        default=100000,
        ge=1,
        description="Smallest order number ever issued"
    )
    order_number_retry_attempts: int = Field(
        default=3,
        ge=1,
        le=20,
        description="Increment-and-recheck attempts before the gap scan"
    )
    order_number_gap_scan: int = Field(
        default=20,
        ge=1,
        le=500,
        description="Candidates checked linearly after the retries are exhausted"
    )
    order_number_random_attempts: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Time-derived random candidates tried as a last resort"
    )

    # ===================
    # CACHING / BATCHING
    # ===================
    vendor_cache_ttl_seconds: int = Field(
        default=60,
        ge=0,
        le=3600,
        description="Vendor directory cache lifetime"
    )
    propagation_max_workers: int = Field(
        default=4,
        ge=1,
        le=32,
        description="Parallel clients during catalog propagation"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API host"
    )
    api_port: int = Field(
        default=8000,
        ge=1000,
        le=65535,
        description="API port"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"


@lru_cache()
def get_settings() -> Settings:
    """Settings loaded once per process; cache_clear() reloads them."""
    return Settings()


settings = get_settings()
