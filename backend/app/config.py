"""Typed settings configuration - single source of truth."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str | None = None

    # Identity provider (plan lookup); unset means everyone resolves to the free tier
    plan_resolver_url: str | None = None
    plan_resolver_api_key: str = ""
    plan_resolver_timeout_s: float = 4.0

    # Billing periods are calendar months in this zone
    billing_timezone: str = "UTC"

    # Segmentation (words)
    segment_size: int = 500
    segment_overlap: int = 50

    # Search
    search_default_limit: int = 5
    search_max_limit: int = 20
    search_text_config: str = "english"

    # Logging
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
