"""Operation dispatcher.

Single entry point for operator requests against a migration task.
Keeps the state machine guarantees in one place: one active run per
task, stop always accepted, reset never gated on the current status.
"""

import time
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from migrun.migration.engine.protocol import BatchEngine
from migrun.migration.enums import MigrationStatus, Operation
from migrun.migration.exceptions import MigrationError, TaskBusyError
from migrun.migration.models import DispatchResult, RunHandle
from migrun.migration.options import parse_operation, resolve_options
from migrun.migration.registry.store import StatusRegistry
from migrun.observability.logging import get_logger
from migrun.observability.metrics import DISPATCH_LATENCY, OPERATIONS_DISPATCHED

logger = get_logger(__name__)

DEFAULT_STOP_REASON = "user requested stop"

RawOptions = Mapping[str, Any]
Handler = Callable[[str, RawOptions], Awaitable[DispatchResult]]


class OperationDispatcher:
    """Routes import, rollback, stop and reset to their lifecycle action.

    Validation always precedes side effects: a request rejected for a
    missing operation, an invalid option or a busy task has not touched
    the registry or the engine.
    """

    def __init__(
        self,
        registry: StatusRegistry,
        engine: BatchEngine,
        stop_reason: str = DEFAULT_STOP_REASON,
    ) -> None:
        """Initialize dispatcher.

        Args:
            registry: Status registry holding the authoritative task status
            engine: Batch engine performing import and rollback runs
            stop_reason: Reason recorded with interrupts from the stop operation
        """
        self._registry = registry
        self._engine = engine
        self._stop_reason = stop_reason
        self._handlers: dict[Operation, Handler] = {
            Operation.IMPORT: self._import,
            Operation.ROLLBACK: self._rollback,
            Operation.STOP: self._stop,
            Operation.RESET: self._reset,
        }

    async def dispatch(
        self,
        task_id: str,
        operation: Operation | str | None,
        raw_options: RawOptions | None = None,
    ) -> DispatchResult:
        """Execute an operator request.

        Args:
            task_id: Configured migration task, already resolved by the caller
            operation: Requested operation (enum or its string value)
            raw_options: Raw `limit`, `update` and `force` values

        Returns:
            DispatchResult; for import and rollback it is returned once the
            run is initiated

        Raises:
            MissingOperationError: No operation, or an unknown one
            InvalidOptionError: The limit could not be parsed
            TaskBusyError: Import or rollback while a run owns the task
        """
        started = time.perf_counter()
        op_label = operation.value if isinstance(operation, Operation) else str(operation or "missing")

        try:
            op = parse_operation(operation)
            op_label = op.value
            result = await self._handlers[op](task_id, raw_options or {})
        except MigrationError as e:
            OPERATIONS_DISPATCHED.labels(operation=op_label, outcome=e.code.lower()).inc()
            logger.warning(
                "operation_rejected",
                task_id=task_id,
                operation=op_label,
                error_code=e.code,
                message=e.message,
            )
            raise
        finally:
            DISPATCH_LATENCY.labels(operation=op_label).observe(time.perf_counter() - started)

        OPERATIONS_DISPATCHED.labels(
            operation=op.value,
            outcome="accepted" if result.accepted else "noop",
        ).inc()
        logger.info(
            "operation_dispatched",
            task_id=task_id,
            operation=op.value,
            accepted=result.accepted,
            status=result.status.value,
            run_id=result.run_id,
        )
        return result

    async def _import(self, task_id: str, raw_options: RawOptions) -> DispatchResult:
        return await self._start_run(task_id, Operation.IMPORT, raw_options)

    async def _rollback(self, task_id: str, raw_options: RawOptions) -> DispatchResult:
        return await self._start_run(task_id, Operation.ROLLBACK, raw_options)

    async def _start_run(
        self,
        task_id: str,
        operation: Operation,
        raw_options: RawOptions,
    ) -> DispatchResult:
        options = resolve_options(raw_options)

        status = await self._registry.get_status(task_id)
        if status.is_active:
            raise TaskBusyError(task_id, status.value)

        # The engine moves the task to its run status itself, so a failure
        # before the run starts leaves the status untouched.
        handle: RunHandle
        if operation == Operation.IMPORT:
            handle = await self._engine.run_import(task_id, options)
        else:
            handle = await self._engine.run_rollback(task_id, options)

        return DispatchResult(
            task_id=task_id,
            operation=operation,
            accepted=True,
            status=await self._registry.get_status(task_id),
            run_id=handle.run_id,
            options=options,
            message=f"{operation.value.capitalize()} started",
        )

    async def _stop(self, task_id: str, raw_options: RawOptions) -> DispatchResult:  # noqa: ARG002
        # Returns without waiting; the run acknowledges at its next checkpoint
        recorded = await self._registry.request_interrupt(task_id, self._stop_reason)
        return DispatchResult(
            task_id=task_id,
            operation=Operation.STOP,
            accepted=True,
            status=await self._registry.get_status(task_id),
            message="Stop requested" if recorded else "No running operation to stop",
        )

    async def _reset(self, task_id: str, raw_options: RawOptions) -> DispatchResult:  # noqa: ARG002
        state = await self._registry.set_status(task_id, MigrationStatus.IDLE)
        return DispatchResult(
            task_id=task_id,
            operation=Operation.RESET,
            accepted=True,
            status=state.status,
            message="Status reset to idle",
        )
