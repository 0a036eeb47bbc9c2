"""
Shared configuration management for the crate registry client.

Values are plain parameters for the core; loading them from files is the
caller's business. Environment variables use the ``CRATE_REGISTRY_`` prefix.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_API_URL = "https://crates.io/api/v1"
DEFAULT_USER_AGENT = "crate-registry-client/0.1.0"


class RegistryConfig(BaseSettings):
    """Configuration surface consumed by the registry client core."""

    model_config = SettingsConfigDict(
        env_prefix="CRATE_REGISTRY_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")
    log_json: bool = Field(default=True)

    # Upstream registry
    api_url: str = Field(default=DEFAULT_API_URL)
    user_agent: str = Field(default=DEFAULT_USER_AGENT)
    request_timeout: float = Field(default=30.0, gt=0)
    operation_timeout: Optional[float] = Field(default=None, gt=0)

    # Cache
    cache_enabled: bool = Field(default=True)
    cache_ttl_seconds: float = Field(default=300.0, gt=0)
    cache_max_entries: int = Field(default=1000, gt=0)

    # Rate limiting
    max_concurrent: int = Field(default=10, gt=0)
    requests_per_minute: Optional[int] = Field(default=None, gt=0)
    rate_limit_timeout: Optional[float] = Field(default=None, gt=0)

    # Retry
    retry_attempts: int = Field(default=3, ge=1)
    retry_base_delay: float = Field(default=0.5, ge=0)
    retry_max_delay: float = Field(default=10.0, ge=0)

    # Batch
    batch_max_concurrent: int = Field(default=10, gt=0)


def get_config(**overrides) -> RegistryConfig:
    """Build configuration from the environment plus explicit overrides."""
    return RegistryConfig(**overrides)
