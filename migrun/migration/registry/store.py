"""StatusRegistry abstract interface."""

from abc import ABC, abstractmethod
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from uuid import uuid4

from migrun.migration.enums import MigrationResult, MigrationStatus
from migrun.migration.models import TaskState
from migrun.migration.registry import transitions
from migrun.observability.logging import get_logger

logger = get_logger(__name__)


class StatusRegistry(ABC):
    """Authoritative status store for migration tasks.

    Every mutation is a read-modify-write performed while holding the
    task's lock, so a status check and the write that depends on it can
    never interleave with another writer. Backends provide the lock and
    the raw load/save; the transition rules live in `transitions`.

    The lock is held only for a single read-modify-write, never for the
    duration of a run, so stop and reset cannot be blocked by a run.
    """

    @abstractmethod
    def _lock(self, task_id: str) -> AbstractAsyncContextManager[None]:
        """Exclusive lock for one task's state."""

    @abstractmethod
    async def _load(self, task_id: str) -> TaskState | None:
        """Load the stored state, None if the task was never seen."""

    @abstractmethod
    async def _save(self, state: TaskState) -> None:
        """Persist a state."""

    @abstractmethod
    async def list_states(self) -> list[TaskState]:
        """List every known task state ordered by task_id."""

    async def get_state(self, task_id: str) -> TaskState:
        """Get the full state; tasks never seen are idle."""
        state = await self._load(task_id)
        return state or TaskState(task_id=task_id)

    async def get_status(self, task_id: str) -> MigrationStatus:
        """Get the current status. Never fails for an unseen task."""
        return (await self.get_state(task_id)).status

    async def set_status(self, task_id: str, status: MigrationStatus) -> TaskState:
        """Overwrite the status unconditionally.

        Forcing idle is the recovery path for a task wedged by an engine
        that never reported completion; it must not be gated on the
        current status.
        """
        async with self._lock(task_id):
            state = await self.get_state(task_id)
            new_state = transitions.force_status(state, status)
            await self._save(new_state)

        logger.info(
            "migration_status_forced",
            task_id=task_id,
            previous_status=state.status.value,
            status=status.value,
            orphaned_run_id=state.run_id if status == MigrationStatus.IDLE else None,
        )
        return new_state

    async def request_interrupt(self, task_id: str, reason: str) -> bool:
        """Ask the owning run to stop at its next checkpoint.

        Does not change the status. A task with nothing running is left
        untouched and False is returned.
        """
        async with self._lock(task_id):
            state = await self.get_state(task_id)
            new_state, recorded = transitions.request_interrupt(state, reason)
            if recorded:
                await self._save(new_state)

        if recorded:
            logger.info(
                "migration_interrupt_requested",
                task_id=task_id,
                run_id=state.run_id,
                reason=reason,
            )
        else:
            logger.info(
                "migration_interrupt_ignored",
                task_id=task_id,
                status=state.status.value,
            )
        return recorded

    async def observe_interrupt(self, task_id: str) -> bool:
        """Whether an interrupt is pending for the task."""
        return (await self.get_state(task_id)).interrupt_requested

    async def begin_run(self, task_id: str, status: MigrationStatus) -> str:
        """Atomically claim the task for a new run.

        Returns:
            Run token identifying the run as the task's owner

        Raises:
            TaskBusyError: If another run owns the task
        """
        run_id = uuid4().hex
        async with self._lock(task_id):
            state = await self.get_state(task_id)
            await self._save(transitions.start_run(state, status, run_id))

        logger.info(
            "migration_run_claimed",
            task_id=task_id,
            run_id=run_id,
            status=status.value,
        )
        return run_id

    async def acknowledge_interrupt(self, task_id: str, run_id: str) -> bool:
        """Record that the run observed its interrupt (status -> stopped)."""
        return await self._apply_run_write(
            task_id,
            run_id,
            lambda state: transitions.acknowledge_interrupt(state, run_id),
            "acknowledge_interrupt",
        )

    async def record_progress(
        self,
        task_id: str,
        run_id: str,
        processed: int,
        failed: int = 0,
        total: int | None = None,
    ) -> bool:
        """Update the run counters."""
        return await self._apply_run_write(
            task_id,
            run_id,
            lambda state: transitions.record_progress(state, run_id, processed, failed, total),
            "record_progress",
        )

    async def finish_run(
        self,
        task_id: str,
        run_id: str,
        result: MigrationResult,
    ) -> bool:
        """Release the task back to idle with the run's terminal result."""
        finished = await self._apply_run_write(
            task_id,
            run_id,
            lambda state: transitions.finish_run(state, run_id, result),
            "finish_run",
        )
        if finished:
            logger.info(
                "migration_run_released",
                task_id=task_id,
                run_id=run_id,
                result=result.value,
            )
        return finished

    async def is_current_run(self, task_id: str, run_id: str) -> bool:
        """Whether run_id still owns the task."""
        return (await self.get_state(task_id)).run_id == run_id

    async def _apply_run_write(
        self,
        task_id: str,
        run_id: str,
        transition: Callable[[TaskState], TaskState | None],
        action: str,
    ) -> bool:
        async with self._lock(task_id):
            new_state = transition(await self.get_state(task_id))
            if new_state is not None:
                await self._save(new_state)

        if new_state is None:
            logger.warning(
                "stale_run_write_ignored",
                task_id=task_id,
                run_id=run_id,
                action=action,
            )
            return False
        return True
