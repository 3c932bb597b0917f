"""API request and response models."""

from migrun.api.models.errors import ErrorBody, ErrorCode, ErrorDetail, ErrorResponse
from migrun.api.models.health import ComponentHealth, HealthResponse
from migrun.api.models.migrations import (
    ExecuteRequest,
    MigrationListResponse,
    MigrationStateResponse,
)

__all__ = [
    "ComponentHealth",
    "ErrorBody",
    "ErrorCode",
    "ErrorDetail",
    "ErrorResponse",
    "ExecuteRequest",
    "HealthResponse",
    "MigrationListResponse",
    "MigrationStateResponse",
]
