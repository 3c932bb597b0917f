"""Batch engine contracts.

The dispatcher depends on a batch engine only through `BatchEngine`.
The reference engine in turn drives a `RecordProcessor`, which owns the
actual reading of source records and writing of destination objects.
"""

from collections.abc import AsyncIterator
from typing import Protocol, runtime_checkable

from migrun.migration.enums import Operation
from migrun.migration.models import ExecutionOptions, RunHandle


@runtime_checkable
class BatchEngine(Protocol):
    """Engine that performs import and rollback runs.

    `run_import` and `run_rollback` must move the task to its run status
    at the start of the run (through `StatusRegistry.begin_run`) and
    back to idle when the run ends. They return as soon as the run is
    initiated. A failure raised before the run starts must leave the
    status untouched.
    """

    async def run_import(self, task_id: str, options: ExecutionOptions) -> RunHandle:
        """Start an import run."""
        ...

    async def run_rollback(self, task_id: str, options: ExecutionOptions) -> RunHandle:
        """Start a rollback run."""
        ...

    async def observe_interrupt(self, task_id: str) -> bool:
        """Whether the running batch has been asked to stop."""
        ...


@runtime_checkable
class RecordProcessor(Protocol):
    """Source/destination plugin for one migration task."""

    def pending(self, *, update: bool) -> AsyncIterator[str]:
        """Yield source IDs to import.

        Unprocessed records, plus previously imported ones when `update`
        is set.
        """
        ...

    def imported(self) -> AsyncIterator[str]:
        """Yield source IDs whose destination objects exist."""
        ...

    async def import_record(self, record_id: str, *, update: bool) -> None:
        """Import one record."""
        ...

    async def rollback_record(self, record_id: str) -> None:
        """Delete the destination object created for one record."""
        ...

    async def count(self, operation: Operation, *, update: bool) -> int | None:
        """Number of records the run would process, None if unknown."""
        ...
