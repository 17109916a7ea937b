"""
Shared configuration management for the Course Catalog service.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="CATALOG_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Record store
    postgres_dsn: str = Field(default="postgres://localhost:5432/catalog")
    postgres_min_pool_size: int = Field(default=2, ge=1)
    postgres_max_pool_size: int = Field(default=10, ge=1)
    postgres_command_timeout: float = Field(default=30.0, gt=0)

    # Cache layer
    redis_url: str = Field(default="redis://localhost:6379/0")
    redis_socket_timeout: float = Field(default=5.0, gt=0)
    cache_backend: Literal["redis", "memory", "none"] = Field(default="redis")
    cache_ttl_seconds: int = Field(default=300, ge=1)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str = "catalog"
    port: int = 8020
    host: str = "0.0.0.0"


def get_config(**overrides) -> ServiceConfig:
    """Get service configuration. Keyword overrides win over the environment."""
    return ServiceConfig(**overrides)
