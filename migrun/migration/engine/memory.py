"""In-memory record processor for development and testing."""

from collections.abc import AsyncIterator, Callable, Mapping
from typing import Any

from migrun.migration.enums import Operation
from migrun.migration.models import MigrationTask


class InMemoryRecordProcessor:
    """Record processor over dict-based source and destination.

    Keeps an ID map of source IDs already imported, so a second import
    only picks up new records unless `update` is set.
    Not suitable for production use.
    """

    def __init__(
        self,
        source: Mapping[str, Any] | None = None,
        transform: Callable[[Any], Any] | None = None,
    ) -> None:
        self.source: dict[str, Any] = dict(source or {})
        self.destination: dict[str, Any] = {}
        self._transform = transform or (lambda row: row)

    @classmethod
    def for_task(cls, task: MigrationTask) -> "InMemoryRecordProcessor":
        """Processor factory usable as a task's `processor` path."""
        return cls()

    async def pending(self, *, update: bool) -> AsyncIterator[str]:
        for record_id in list(self.source):
            if update or record_id not in self.destination:
                yield record_id

    async def imported(self) -> AsyncIterator[str]:
        for record_id in list(self.destination):
            yield record_id

    async def import_record(self, record_id: str, *, update: bool) -> None:  # noqa: ARG002
        self.destination[record_id] = self._transform(self.source[record_id])

    async def rollback_record(self, record_id: str) -> None:
        self.destination.pop(record_id, None)

    async def count(self, operation: Operation, *, update: bool) -> int | None:
        if operation == Operation.ROLLBACK:
            return len(self.destination)
        if update:
            return len(self.source)
        return sum(1 for record_id in self.source if record_id not in self.destination)
