"""Migration operation request and response models."""

from typing import Any

from pydantic import BaseModel, Field

from migrun.migration.models import MigrationTask, TaskState


class ExecuteRequest(BaseModel):
    """Operator request to run an operation against a migration.

    Option values are kept raw; the dispatcher validates them so the
    error shape is the same for every client.
    """

    operation: str | None = Field(
        default=None,
        description="One of import, rollback, stop, reset",
    )
    limit: Any = Field(default=None, description="Max records to process; empty = unbounded")
    update: Any = Field(default=False, description="Also re-process previously imported records")
    force: Any = Field(default=False, description="Ignore dependencies between migrations")

    def raw_options(self) -> dict[str, Any]:
        """Raw option values for the option resolver."""
        return {"limit": self.limit, "update": self.update, "force": self.force}


class MigrationStateResponse(BaseModel):
    """A configured migration together with its current state."""

    migration: MigrationTask
    state: TaskState


class MigrationListResponse(BaseModel):
    """Every configured migration with its state."""

    items: list[MigrationStateResponse]
    total: int
