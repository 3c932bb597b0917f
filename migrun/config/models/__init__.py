"""Configuration section models."""

from migrun.config.models.api import APIConfig
from migrun.config.models.execution import ExecutionConfig
from migrun.config.models.observability import (
    LoggingConfig,
    MetricsConfig,
    ObservabilityConfig,
    TracingConfig,
)
from migrun.config.models.storage import StatusRegistryConfig, StorageConfig

__all__ = [
    "APIConfig",
    "ExecutionConfig",
    "LoggingConfig",
    "MetricsConfig",
    "ObservabilityConfig",
    "StatusRegistryConfig",
    "StorageConfig",
    "TracingConfig",
]
