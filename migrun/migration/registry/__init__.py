"""Status registry: authoritative per-task migration status."""

from migrun.migration.registry.inmemory import InMemoryStatusRegistry
from migrun.migration.registry.store import StatusRegistry

__all__ = ["InMemoryStatusRegistry", "StatusRegistry"]
