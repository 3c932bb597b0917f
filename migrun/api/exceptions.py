"""Mapping of migration errors onto HTTP responses."""

from migrun.api.models.errors import ErrorCode
from migrun.migration.exceptions import MigrationError

STATUS_CODES: dict[ErrorCode, int] = {
    ErrorCode.MISSING_OPERATION: 400,
    ErrorCode.INVALID_OPTION: 400,
    ErrorCode.UNKNOWN_TASK: 404,
    ErrorCode.TASK_BUSY: 409,
    ErrorCode.DEPENDENCIES_UNMET: 409,
    ErrorCode.PROCESSOR_NOT_FOUND: 500,
    ErrorCode.REGISTRY_UNAVAILABLE: 503,
}


def error_code_for(exc: MigrationError) -> ErrorCode:
    """Error code for a migration error, INTERNAL_ERROR if unmapped."""
    try:
        return ErrorCode(exc.code)
    except ValueError:
        return ErrorCode.INTERNAL_ERROR


def status_code_for(exc: MigrationError) -> int:
    """HTTP status for a migration error."""
    return STATUS_CODES.get(error_code_for(exc), 500)
