"""Enums for the migration domain."""

from enum import Enum


class Operation(str, Enum):
    """Operator-requested action against a migration task.

    - IMPORT: Process unprocessed records (and, with update, imported ones)
    - ROLLBACK: Delete destination objects created by the import
    - STOP: Cooperatively interrupt a running import or rollback
    - RESET: Force the status back to idle after a run failed to report
    """

    IMPORT = "import"
    ROLLBACK = "rollback"
    STOP = "stop"
    RESET = "reset"


class MigrationStatus(str, Enum):
    """Execution status of a migration task."""

    IDLE = "idle"
    IMPORTING = "importing"
    ROLLING_BACK = "rolling_back"
    STOPPED = "stopped"  # Interrupt observed, run winding down

    @property
    def is_active(self) -> bool:
        """True while a run owns the task."""
        return self in ACTIVE_STATUSES


ACTIVE_STATUSES: frozenset[MigrationStatus] = frozenset({
    MigrationStatus.IMPORTING,
    MigrationStatus.ROLLING_BACK,
    MigrationStatus.STOPPED,
})

# Statuses an interrupt request can target
INTERRUPTIBLE_STATUSES: frozenset[MigrationStatus] = frozenset({
    MigrationStatus.IMPORTING,
    MigrationStatus.ROLLING_BACK,
})


class MigrationResult(str, Enum):
    """Terminal result recorded by the batch engine when a run ends.

    - COMPLETED: Every record was processed
    - INCOMPLETE: The run ended early because the record limit was reached
    - STOPPED: The run honored an interrupt
    - FAILED: The run aborted on an unexpected error
    """

    COMPLETED = "completed"
    INCOMPLETE = "incomplete"
    STOPPED = "stopped"
    FAILED = "failed"
