"""Migration error hierarchy.

Every error is recoverable and reported to the caller synchronously.
Each class carries a machine-readable `code` that the API layer maps to
an error response.
"""


class MigrationError(Exception):
    """Base exception for all migration errors."""

    code: str = "MIGRATION_ERROR"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class MissingOperationError(MigrationError):
    """Raised when no operation, or an unknown one, was selected."""

    code = "MISSING_OPERATION"

    def __init__(self, operation: object = None) -> None:
        if operation is None or operation == "":
            message = "Please select an operation."
        else:
            message = f"Unknown operation: {operation!r}"
        super().__init__(message)
        self.operation = operation


class InvalidOptionError(MigrationError):
    """Raised when a raw option value cannot be parsed."""

    code = "INVALID_OPTION"

    def __init__(self, field: str, value: object, reason: str) -> None:
        super().__init__(f"Invalid value for '{field}': {reason}")
        self.field = field
        self.value = value


class TaskBusyError(MigrationError):
    """Raised when a run is requested while another run owns the task."""

    code = "TASK_BUSY"

    def __init__(self, task_id: str, status: str) -> None:
        super().__init__(f"Migration '{task_id}' is busy with another operation ({status})")
        self.task_id = task_id
        self.status = status


class UnknownTaskError(MigrationError):
    """Raised when a task identifier is not a configured migration."""

    code = "UNKNOWN_TASK"

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Migration '{task_id}' does not exist")
        self.task_id = task_id


class DependenciesUnmetError(MigrationError):
    """Raised when an import is requested before its dependencies completed."""

    code = "DEPENDENCIES_UNMET"

    def __init__(self, task_id: str, unmet: list[str]) -> None:
        super().__init__(
            f"Migration '{task_id}' did not meet the requirements: "
            f"missing dependencies {', '.join(unmet)}"
        )
        self.task_id = task_id
        self.unmet = unmet


class ProcessorNotFoundError(MigrationError):
    """Raised when the engine has no record processor for a task."""

    code = "PROCESSOR_NOT_FOUND"

    def __init__(self, task_id: str, reason: str | None = None) -> None:
        message = f"No record processor available for migration '{task_id}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.task_id = task_id


class RegistryUnavailableError(MigrationError):
    """Raised when the status registry backend cannot be reached."""

    code = "REGISTRY_UNAVAILABLE"

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause
