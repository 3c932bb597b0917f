"""In-memory implementation of StatusRegistry."""

import asyncio
from collections import defaultdict

from migrun.migration.models import TaskState
from migrun.migration.registry.store import StatusRegistry


class InMemoryStatusRegistry(StatusRegistry):
    """In-memory implementation of StatusRegistry for testing and development.

    Uses one asyncio.Lock per task. State is local to the process, so it
    is only valid with a single API worker.
    """

    def __init__(self) -> None:
        """Initialize empty storage."""
        self._states: dict[str, TaskState] = {}
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def _lock(self, task_id: str) -> asyncio.Lock:
        return self._locks[task_id]

    async def _load(self, task_id: str) -> TaskState | None:
        return self._states.get(task_id)

    async def _save(self, state: TaskState) -> None:
        self._states[state.task_id] = state

    async def list_states(self) -> list[TaskState]:
        """List every known task state ordered by task_id."""
        return [self._states[task_id] for task_id in sorted(self._states)]
