"""Configuration for bridgewatch."""

import logging
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class Settings(BaseSettings):
    """Application settings, read from ``BRIDGEWATCH_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="BRIDGEWATCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Upstream API
    base_url: str = "https://api.wormhole.com"
    api_key: str = ""
    timeout: float = Field(default=10.0, ge=1.0, le=60.0)  # seconds per request

    # Rate limiting (None disables the limiter)
    max_requests_per_second: Optional[int] = Field(default=10, ge=1, le=100)

    # Retries
    retry_max_retries: int = Field(default=3, ge=0, le=10)
    retry_base_delay: float = 1.0  # seconds
    retry_max_delay: float = 10.0  # seconds

    # Circuit breaker
    circuit_failure_threshold: int = 5
    circuit_success_threshold: int = 2
    circuit_open_timeout: float = 60.0  # seconds
    circuit_reset_timeout: float = 300.0  # seconds

    # Caching
    cache_ttl: float = 60.0  # seconds

    # Logging
    log_level: str = "INFO"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with the standard format."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


settings = Settings()
