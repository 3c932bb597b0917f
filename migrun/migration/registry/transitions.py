"""Status transition rules.

Pure functions over TaskState shared by every registry backend. A
function returning None means the write came from a run that no longer
owns the task and must be dropped.
"""

from migrun.migration.enums import (
    INTERRUPTIBLE_STATUSES,
    MigrationResult,
    MigrationStatus,
    Operation,
)
from migrun.migration.exceptions import TaskBusyError
from migrun.migration.models import TaskState, utc_now

RUN_STATUSES: dict[MigrationStatus, Operation] = {
    MigrationStatus.IMPORTING: Operation.IMPORT,
    MigrationStatus.ROLLING_BACK: Operation.ROLLBACK,
}


def start_run(state: TaskState, status: MigrationStatus, run_id: str) -> TaskState:
    """Idle -> Importing / RollingBack.

    Raises:
        TaskBusyError: If a run already owns the task
        ValueError: If status is not a run status
    """
    if status not in RUN_STATUSES:
        raise ValueError(f"{status.value} is not a run status")
    if state.status.is_active:
        raise TaskBusyError(state.task_id, state.status.value)

    return state.model_copy(
        update={
            "status": status,
            "run_id": run_id,
            "operation": RUN_STATUSES[status],
            "interrupt_requested": False,
            "interrupt_reason": None,
            "processed": 0,
            "failed": 0,
            "total": None,
            "updated_at": utc_now(),
        }
    )


def force_status(state: TaskState, status: MigrationStatus) -> TaskState:
    """Unconditional overwrite; forcing idle also releases run ownership."""
    update: dict[str, object] = {"status": status, "updated_at": utc_now()}
    if status == MigrationStatus.IDLE:
        update.update(
            run_id=None,
            operation=None,
            interrupt_requested=False,
            interrupt_reason=None,
        )
        # An abandoned rollback may have undone part of the import
        if state.operation == Operation.ROLLBACK:
            update["last_operation"] = Operation.ROLLBACK
    return state.model_copy(update=update)


def request_interrupt(state: TaskState, reason: str) -> tuple[TaskState, bool]:
    """Flag an interrupt for the owning run.

    Returns the new state and whether the flag was recorded. Tasks with
    no run to interrupt are returned unchanged.
    """
    if state.status not in INTERRUPTIBLE_STATUSES:
        return state, False

    return (
        state.model_copy(
            update={
                "interrupt_requested": True,
                "interrupt_reason": reason,
                "updated_at": utc_now(),
            }
        ),
        True,
    )


def acknowledge_interrupt(state: TaskState, run_id: str) -> TaskState | None:
    """Importing / RollingBack -> Stopped, once the run observed the flag."""
    if state.run_id != run_id:
        return None
    return state.model_copy(
        update={"status": MigrationStatus.STOPPED, "updated_at": utc_now()}
    )


def record_progress(
    state: TaskState,
    run_id: str,
    processed: int,
    failed: int,
    total: int | None,
) -> TaskState | None:
    """Update run counters."""
    if state.run_id != run_id:
        return None
    return state.model_copy(
        update={
            "processed": processed,
            "failed": failed,
            "total": total,
            "updated_at": utc_now(),
        }
    )


def finish_run(
    state: TaskState,
    run_id: str,
    result: MigrationResult,
) -> TaskState | None:
    """Any run status -> Idle, recording the terminal result and its operation."""
    if state.run_id != run_id:
        return None
    return state.model_copy(
        update={
            "status": MigrationStatus.IDLE,
            "run_id": None,
            "operation": None,
            "interrupt_requested": False,
            "interrupt_reason": None,
            "last_result": result,
            "last_operation": state.operation,
            "updated_at": utc_now(),
        }
    )
