"""Migration domain models."""

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field

from migrun.migration.enums import MigrationResult, MigrationStatus, Operation


def utc_now() -> datetime:
    """Return current UTC time."""
    return datetime.now(UTC)


class ExecutionOptions(BaseModel):
    """Validated options for an import or rollback run.

    Built only through the option resolver; immutable once created.
    """

    model_config = ConfigDict(frozen=True)

    limit: int = Field(default=0, ge=0, description="Max records to process, 0 = unbounded")
    update: bool = Field(
        default=False,
        description="Re-process previously imported records as well as new ones",
    )
    force: bool = Field(
        default=False,
        description="Ignore dependency ordering between migration tasks",
    )


class MigrationTask(BaseModel):
    """A configured migration.

    Loaded from the [[migrations]] tables of the TOML configuration.
    """

    id: str = Field(..., min_length=1, description="Stable task identifier")
    label: str | None = Field(default=None, description="Human readable name")
    dependencies: list[str] = Field(
        default_factory=list,
        description="Tasks whose import must have completed before this one runs",
    )
    processor: str | None = Field(
        default=None,
        description="Dotted path 'module:attribute' of the record processor factory",
    )


class TaskState(BaseModel):
    """Registry record for a migration task.

    Counters are written by the batch engine and are read-only for the
    dispatcher.
    """

    task_id: str
    status: MigrationStatus = MigrationStatus.IDLE
    run_id: str | None = Field(default=None, description="Token of the run owning the task")
    operation: Operation | None = Field(default=None, description="Operation of the owning run")
    interrupt_requested: bool = False
    interrupt_reason: str | None = None
    last_result: MigrationResult | None = None
    last_operation: Operation | None = Field(
        default=None,
        description="Operation of the run that recorded last_result",
    )
    processed: int = 0
    failed: int = 0
    total: int | None = None
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def import_completed(self) -> bool:
        """Whether the last finished run was an import that processed every record.

        A rollback, running or finished, even an interrupted one, clears this.
        """
        return (
            self.operation != Operation.ROLLBACK
            and self.last_operation == Operation.IMPORT
            and self.last_result == MigrationResult.COMPLETED
        )


@dataclass
class RunHandle:
    """Handle to a run the engine has initiated.

    The dispatcher never awaits it; callers that need the outcome (tests,
    shutdown) use `wait()`.
    """

    task_id: str
    run_id: str
    operation: Operation
    options: ExecutionOptions
    started_at: datetime = field(default_factory=utc_now)
    runner: asyncio.Task | None = field(default=None, repr=False)

    @property
    def done(self) -> bool:
        """Whether the background run has finished."""
        return self.runner is None or self.runner.done()

    async def wait(self) -> MigrationResult:
        """Wait for the run to finish and return its result."""
        if self.runner is None:
            raise RuntimeError(f"Run {self.run_id} has no background task")
        return await asyncio.shield(self.runner)


class DispatchResult(BaseModel):
    """Outcome of a dispatched operation.

    For import and rollback, `accepted` means the run was initiated, not
    that it finished.
    """

    task_id: str
    operation: Operation
    accepted: bool
    status: MigrationStatus
    run_id: str | None = None
    options: ExecutionOptions | None = None
    message: str = ""
