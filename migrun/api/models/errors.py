"""Error response models for consistent API error handling."""

from enum import Enum

from pydantic import BaseModel


class ErrorCode(str, Enum):
    """Standardized error codes for API responses.

    Migration error codes match `MigrationError.code` of the domain
    exception they come from.
    """

    INVALID_REQUEST = "INVALID_REQUEST"
    """Request validation failed (malformed JSON, wrong field types, etc.)."""

    MISSING_OPERATION = "MISSING_OPERATION"
    """No operation, or an unknown one, was selected."""

    INVALID_OPTION = "INVALID_OPTION"
    """An execution option could not be parsed."""

    TASK_BUSY = "TASK_BUSY"
    """Another import or rollback owns the migration."""

    UNKNOWN_TASK = "UNKNOWN_TASK"
    """The migration ID is not configured."""

    DEPENDENCIES_UNMET = "DEPENDENCIES_UNMET"
    """Required migrations have not completed their import."""

    PROCESSOR_NOT_FOUND = "PROCESSOR_NOT_FOUND"
    """The migration has no usable record processor."""

    REGISTRY_UNAVAILABLE = "REGISTRY_UNAVAILABLE"
    """The status registry backend could not be reached."""

    INTERNAL_ERROR = "INTERNAL_ERROR"
    """An unexpected internal error occurred."""


class ErrorDetail(BaseModel):
    """Field-level error information."""

    field: str | None = None
    """The field that caused the error, if applicable."""

    message: str
    """Human-readable error description."""


class ErrorBody(BaseModel):
    """Error body content for API error responses."""

    code: ErrorCode
    """Machine-readable error code."""

    message: str
    """Human-readable error message."""

    details: list[ErrorDetail] | None = None
    """Additional error details for validation failures."""

    task_id: str | None = None
    """Migration the error relates to, if any."""


class ErrorResponse(BaseModel):
    """Standard error response format for all API errors.

    Example:
        {
            "error": {
                "code": "TASK_BUSY",
                "message": "Migration 'users' is busy with another operation (importing)",
                "task_id": "users"
            }
        }
    """

    error: ErrorBody
