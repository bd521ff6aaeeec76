"""Application configuration settings."""
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional
from functools import lru_cache
from pricewatch.core.exceptions import ConfigurationError

DEFAULT_EXCLUDED_BRANDS = [
    "cuisine & co",
    "cuisine&co",
    "family care",
    "máxima",
    "maxima",
    "disco",
    "jumbo",
    "vea",
    "home care",
    "check",
]

class DatabaseSettings(BaseSettings):
    """Database settings, readable before the rest of the configuration is valid."""

    database_url: str = "sqlite:///data/pricewatch.db"

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

class Settings(DatabaseSettings):
    """Application settings."""

    # VTEX persisted query hash shared by every merchant
    vtex_sha256_hash: str

    # Notification settings
    webhook_url: Optional[str] = None
    notification_timeout_seconds: float = 10.0

    # Vendor query settings
    request_timeout_seconds: float = 15.0
    category_result_count: int = 50
    term_delay_seconds: float = 0.2

    # Price refresh settings
    refresh_batch_limit: int = 500
    refresh_group_size: int = 10
    refresh_delay_seconds: float = 0.5
    price_change_epsilon: float = 0.01

    # Job table settings
    job_retention_hours: int = 24
    job_cleanup_interval_seconds: int = 3600

    # Catalog settings
    excluded_brands: List[str] = DEFAULT_EXCLUDED_BRANDS
    product_codes: List[str] = []

    # Debug settings
    debug: bool = False

    @field_validator("vtex_sha256_hash")
    def validate_query_hash(cls, v):
        if not v or not v.strip():
            raise ValueError("VTEX_SHA256_HASH must not be empty")
        return v.strip()

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="allow")

@lru_cache()
def get_settings() -> Settings:
    """Get cached settings.

    Raises:
        ConfigurationError: If required settings are missing or invalid.
    """
    try:
        return Settings()
    except ValueError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
