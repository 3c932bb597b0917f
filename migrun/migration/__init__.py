"""Migration operations: status registry, option resolution and dispatch.

Usage:
    from migrun.migration import OperationDispatcher
    from migrun.migration.registry import InMemoryStatusRegistry

    dispatcher = OperationDispatcher(registry, engine)
    result = await dispatcher.dispatch("users", "import", {"limit": "10"})
"""

from migrun.migration.dispatcher import OperationDispatcher
from migrun.migration.enums import MigrationResult, MigrationStatus, Operation
from migrun.migration.exceptions import (
    DependenciesUnmetError,
    InvalidOptionError,
    MigrationError,
    MissingOperationError,
    ProcessorNotFoundError,
    RegistryUnavailableError,
    TaskBusyError,
    UnknownTaskError,
)
from migrun.migration.models import (
    DispatchResult,
    ExecutionOptions,
    MigrationTask,
    RunHandle,
    TaskState,
)
from migrun.migration.options import resolve_options

__all__ = [
    "DependenciesUnmetError",
    "DispatchResult",
    "ExecutionOptions",
    "InvalidOptionError",
    "MigrationError",
    "MigrationResult",
    "MigrationStatus",
    "MigrationTask",
    "MissingOperationError",
    "Operation",
    "OperationDispatcher",
    "ProcessorNotFoundError",
    "RegistryUnavailableError",
    "RunHandle",
    "TaskBusyError",
    "TaskState",
    "UnknownTaskError",
    "resolve_options",
]
