"""Status registry backend configuration models."""

from typing import Literal

from pydantic import BaseModel, Field

RegistryBackendType = Literal["inmemory", "redis"]


class StatusRegistryConfig(BaseModel):
    """Configuration for the status registry backend.

    The Redis backend shares task status between API workers; the
    in-memory backend is only valid for a single process.
    """

    backend: RegistryBackendType = Field(
        default="inmemory",
        description="Backend type",
    )
    connection_url: str | None = Field(
        default=None,
        description="Redis connection URL (falls back to REDIS_URL env var)",
    )
    key_prefix: str = Field(
        default="migrun",
        description="Prefix for all Redis keys",
    )
    lock_timeout: int = Field(
        default=10,
        gt=0,
        description="Seconds before a registry lock auto-releases",
    )
    blocking_timeout: float = Field(
        default=5.0,
        gt=0,
        description="Seconds to wait when acquiring a registry lock",
    )


class StorageConfig(BaseModel):
    """Storage configuration."""

    status: StatusRegistryConfig = Field(
        default_factory=StatusRegistryConfig,
        description="Status registry backend",
    )
