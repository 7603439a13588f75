"""Application settings with environment variable support."""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from typing import Optional
from pathlib import Path


# Compute base_dir at module level
_BASE_DIR = Path(__file__).parent.parent.parent.resolve()


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="FEED_",  # FEED_CACHE_BACKEND, FEED_REDIS_URL, etc.
    )

    # Paths
    base_dir: Path = _BASE_DIR
    feeds_config_path: Optional[Path] = None

    # Cache
    cache_backend: str = "memory"  # "memory" or "redis"
    cache_ttl_seconds: float = 300.0
    cache_sweep_interval_seconds: float = 60.0
    redis_url: str = "redis://localhost:6379/0"
    redis_prefix: str = "feed-engine:"
    redis_connect_timeout_seconds: float = 5.0
    snapshot_ttl_hours: float = 36.0

    # Rate limiting
    rate_limit_seconds: float = 1.0  # Min delay between requests to the same host
    refresh_rate_limit_seconds: float = 120.0

    # Ingestion
    fetch_timeout_seconds: float = 30.0
    fetch_max_items: int = 50
    user_agent: str = "DroneNewsAggregator/1.0"

    # Aggregation
    refresh_timeout_seconds: float = 300.0
    refresh_interval_minutes: int = 15
    default_page_limit: int = 50
    max_page_limit: int = 500

    # Logging
    log_level: str = "info"
    log_json: bool = False

    @field_validator("cache_backend")
    @classmethod
    def _normalize_backend(cls, value: str) -> str:
        return value.strip().lower()


settings = Settings()
