"""Migration catalog: the set of configured migration tasks."""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import TYPE_CHECKING

from migrun.migration.exceptions import UnknownTaskError
from migrun.migration.models import MigrationTask

if TYPE_CHECKING:
    from migrun.config.settings import Settings


class MigrationCatalog(ABC):
    """Abstract interface for looking up configured migrations.

    Resolving a task identifier here is the precondition for dispatching
    any operation against it.
    """

    @abstractmethod
    async def get(self, task_id: str) -> MigrationTask:
        """Get a task by ID.

        Raises:
            UnknownTaskError: If no migration with this ID is configured
        """
        pass

    @abstractmethod
    async def list(self) -> list[MigrationTask]:
        """List configured tasks ordered by ID."""
        pass

    @abstractmethod
    async def add(self, task: MigrationTask) -> None:
        """Add or replace a task definition."""
        pass


class InMemoryMigrationCatalog(MigrationCatalog):
    """Catalog backed by a dict, usually loaded from settings."""

    def __init__(self, tasks: Iterable[MigrationTask] = ()) -> None:
        self._tasks: dict[str, MigrationTask] = {task.id: task for task in tasks}

    @classmethod
    def from_settings(cls, settings: "Settings") -> "InMemoryMigrationCatalog":
        """Build the catalog from the [[migrations]] config tables."""
        return cls(settings.migrations)

    async def get(self, task_id: str) -> MigrationTask:
        task = self._tasks.get(task_id)
        if task is None:
            raise UnknownTaskError(task_id)
        return task

    async def list(self) -> list[MigrationTask]:
        return [self._tasks[task_id] for task_id in sorted(self._tasks)]

    async def add(self, task: MigrationTask) -> None:
        self._tasks[task.id] = task
