"""Tests for AsyncBatchEngine.

Tests cover:
- Import and rollback runs over the in-memory processor
- Record limit and update handling
- Cooperative interrupts and orphaned runs after a reset
- Dependency checks and processor resolution
- Shutdown of outstanding runs
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from migrun.config.models.execution import ExecutionConfig
from migrun.migration.catalog import InMemoryMigrationCatalog
from migrun.migration.engine import (
    AsyncBatchEngine,
    BatchEngine,
    InMemoryRecordProcessor,
    load_processor_factory,
)
from migrun.migration.enums import MigrationResult, MigrationStatus, Operation
from migrun.migration.exceptions import (
    DependenciesUnmetError,
    ProcessorNotFoundError,
    RegistryUnavailableError,
    TaskBusyError,
    UnknownTaskError,
)
from migrun.migration.models import ExecutionOptions, MigrationTask
from migrun.migration.registry import InMemoryStatusRegistry

MEMORY_PROCESSOR = "migrun.migration.engine.memory:InMemoryRecordProcessor.for_task"


class GatedProcessor(InMemoryRecordProcessor):
    """Processor that blocks inside every import until released."""

    def __init__(self, source) -> None:
        super().__init__(source)
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def import_record(self, record_id: str, *, update: bool) -> None:
        self.entered.set()
        await self.release.wait()
        await super().import_record(record_id, update=update)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def registry() -> InMemoryStatusRegistry:
    return InMemoryStatusRegistry()


@pytest.fixture
def catalog() -> InMemoryMigrationCatalog:
    return InMemoryMigrationCatalog(
        [
            MigrationTask(id="users"),
            MigrationTask(id="articles", dependencies=["users"]),
            MigrationTask(id="files", processor=MEMORY_PROCESSOR),
            MigrationTask(id="orphan"),
            MigrationTask(id="broken", processor="migrun.nowhere:factory"),
        ]
    )


@pytest.fixture
def users() -> InMemoryRecordProcessor:
    return InMemoryRecordProcessor({f"u{i}": {"name": f"user {i}"} for i in range(5)})


@pytest.fixture
def articles() -> InMemoryRecordProcessor:
    return InMemoryRecordProcessor({"a1": "first", "a2": "second"})


@pytest.fixture
def engine(registry, catalog, users, articles) -> AsyncBatchEngine:
    return AsyncBatchEngine(
        registry=registry,
        catalog=catalog,
        processors={"users": users, "articles": articles},
        config=ExecutionConfig(batch_size=2),
    )


# =============================================================================
# Tests: import and rollback runs
# =============================================================================


class TestImport:
    """Tests for run_import."""

    def test_satisfies_batch_engine_protocol(self, engine) -> None:
        assert isinstance(engine, BatchEngine)

    @pytest.mark.asyncio
    async def test_claims_task_on_start(self, engine, registry) -> None:
        """The task is importing as soon as run_import returns."""
        handle = await engine.run_import("users", ExecutionOptions())

        assert handle.operation == Operation.IMPORT
        assert await registry.get_status("users") == MigrationStatus.IMPORTING
        await handle.wait()

    @pytest.mark.asyncio
    async def test_full_import_completes(self, engine, registry, users) -> None:
        """Every record is imported and the task returns to idle."""
        handle = await engine.run_import("users", ExecutionOptions())

        assert await handle.wait() == MigrationResult.COMPLETED

        state = await registry.get_state("users")
        assert state.status == MigrationStatus.IDLE
        assert state.last_result == MigrationResult.COMPLETED
        assert (state.processed, state.failed, state.total) == (5, 0, 5)
        assert set(users.destination) == set(users.source)
        assert engine.active_runs == []

    @pytest.mark.asyncio
    async def test_limit_leaves_run_incomplete(self, engine, registry, users) -> None:
        """Reaching the limit with records left ends the run incomplete."""
        handle = await engine.run_import("users", ExecutionOptions(limit=2))

        assert await handle.wait() == MigrationResult.INCOMPLETE

        state = await registry.get_state("users")
        assert state.processed == 2
        assert state.total == 2
        assert len(users.destination) == 2

    @pytest.mark.asyncio
    async def test_limit_covering_all_records(self, engine, users) -> None:
        handle = await engine.run_import("users", ExecutionOptions(limit=5))

        assert await handle.wait() == MigrationResult.COMPLETED
        assert len(users.destination) == 5

    @pytest.mark.asyncio
    async def test_second_import_skips_imported(self, engine, registry) -> None:
        """Without update only unprocessed records are imported."""
        await (await engine.run_import("users", ExecutionOptions(limit=3))).wait()

        await (await engine.run_import("users", ExecutionOptions())).wait()

        assert (await registry.get_state("users")).processed == 2

    @pytest.mark.asyncio
    async def test_update_reprocesses_imported(self, engine, registry, users) -> None:
        """With update previously imported records are processed again."""
        await (await engine.run_import("users", ExecutionOptions())).wait()
        users.source["u0"] = {"name": "renamed"}

        await (await engine.run_import("users", ExecutionOptions(update=True))).wait()

        assert (await registry.get_state("users")).processed == 5
        assert users.destination["u0"] == {"name": "renamed"}

    @pytest.mark.asyncio
    async def test_record_failure_counted(self, registry, catalog) -> None:
        """A failing record is counted and the run carries on."""

        def transform(row):
            if row == "bad":
                raise ValueError("cannot transform")
            return row

        processor = InMemoryRecordProcessor({"a": "ok", "b": "bad", "c": "ok"}, transform)
        engine = AsyncBatchEngine(registry, catalog, {"users": processor})

        result = await (await engine.run_import("users", ExecutionOptions())).wait()

        assert result == MigrationResult.COMPLETED
        state = await registry.get_state("users")
        assert (state.processed, state.failed) == (3, 1)
        assert set(processor.destination) == {"a", "c"}

    @pytest.mark.asyncio
    async def test_unexpected_error_fails_run(self, engine, registry, users) -> None:
        """An error outside record processing fails the run and releases the task."""
        users.count = AsyncMock(side_effect=RuntimeError("source offline"))

        result = await (await engine.run_import("users", ExecutionOptions())).wait()

        assert result == MigrationResult.FAILED
        state = await registry.get_state("users")
        assert state.status == MigrationStatus.IDLE
        assert state.last_result == MigrationResult.FAILED

    @pytest.mark.asyncio
    async def test_busy_task_rejected(self, registry, catalog) -> None:
        """A second run on a running task is rejected."""
        processor = GatedProcessor({"a": 1})
        engine = AsyncBatchEngine(registry, catalog, {"users": processor})
        handle = await engine.run_import("users", ExecutionOptions())

        with pytest.raises(TaskBusyError):
            await engine.run_rollback("users", ExecutionOptions())

        assert await registry.get_status("users") == MigrationStatus.IMPORTING
        processor.release.set()
        await handle.wait()


class TestRollback:
    """Tests for run_rollback."""

    @pytest.mark.asyncio
    async def test_rollback_removes_destination(self, engine, registry, users) -> None:
        await (await engine.run_import("users", ExecutionOptions())).wait()

        handle = await engine.run_rollback("users", ExecutionOptions())

        assert handle.operation == Operation.ROLLBACK
        assert await handle.wait() == MigrationResult.COMPLETED
        assert users.destination == {}
        state = await registry.get_state("users")
        assert state.status == MigrationStatus.IDLE
        assert state.processed == 5

    @pytest.mark.asyncio
    async def test_rollback_ignores_dependencies(self, engine) -> None:
        """Dependencies only gate imports."""
        handle = await engine.run_rollback("articles", ExecutionOptions())

        assert await handle.wait() == MigrationResult.COMPLETED


# =============================================================================
# Tests: interrupts
# =============================================================================


class TestInterrupts:
    """Tests for cooperative interruption."""

    @pytest.mark.asyncio
    async def test_interrupt_stops_at_next_record(self, registry, catalog) -> None:
        """The run acknowledges the interrupt before the next record."""
        processor = GatedProcessor({"a": 1, "b": 2, "c": 3})
        engine = AsyncBatchEngine(registry, catalog, {"users": processor})
        registry.acknowledge_interrupt = AsyncMock(wraps=registry.acknowledge_interrupt)

        handle = await engine.run_import("users", ExecutionOptions())
        await processor.entered.wait()
        await registry.request_interrupt("users", "operator")
        assert await engine.observe_interrupt("users") is True

        processor.release.set()

        assert await handle.wait() == MigrationResult.STOPPED
        registry.acknowledge_interrupt.assert_awaited_once_with("users", handle.run_id)
        state = await registry.get_state("users")
        assert state.status == MigrationStatus.IDLE
        assert state.last_result == MigrationResult.STOPPED
        assert state.interrupt_requested is False
        assert list(processor.destination) == ["a"]

    @pytest.mark.asyncio
    async def test_reset_orphans_running_batch(self, registry, catalog) -> None:
        """A reset run stops at its next checkpoint without writing status."""
        processor = GatedProcessor({"a": 1, "b": 2})
        engine = AsyncBatchEngine(registry, catalog, {"users": processor})

        handle = await engine.run_import("users", ExecutionOptions())
        await processor.entered.wait()
        await registry.set_status("users", MigrationStatus.IDLE)
        processor.release.set()

        assert await handle.wait() == MigrationResult.STOPPED
        state = await registry.get_state("users")
        assert state.status == MigrationStatus.IDLE
        assert state.last_result is None

    @pytest.mark.asyncio
    async def test_import_after_reset(self, registry, catalog) -> None:
        """A fresh run can start once the task was reset."""
        processor = GatedProcessor({"a": 1})
        engine = AsyncBatchEngine(registry, catalog, {"users": processor})
        stuck = await engine.run_import("users", ExecutionOptions())
        await processor.entered.wait()

        await registry.set_status("users", MigrationStatus.IDLE)
        fresh = await engine.run_import("users", ExecutionOptions())

        assert fresh.run_id != stuck.run_id
        assert await registry.get_status("users") == MigrationStatus.IMPORTING
        processor.release.set()
        await stuck.wait()
        assert await fresh.wait() == MigrationResult.COMPLETED

    @pytest.mark.asyncio
    async def test_shutdown_cancels_runs(self, registry, catalog) -> None:
        """Shutdown cancels outstanding runs and releases their tasks."""
        processor = GatedProcessor({"a": 1})
        engine = AsyncBatchEngine(registry, catalog, {"users": processor})
        await engine.run_import("users", ExecutionOptions())
        await processor.entered.wait()

        await engine.shutdown()

        state = await registry.get_state("users")
        assert state.status == MigrationStatus.IDLE
        assert state.last_result == MigrationResult.STOPPED
        assert engine.active_runs == []


# =============================================================================
# Tests: preconditions
# =============================================================================


class TestPreconditions:
    """Tests for checks made before a run is claimed."""

    @pytest.mark.asyncio
    async def test_unknown_task(self, engine, registry) -> None:
        with pytest.raises(UnknownTaskError):
            await engine.run_import("missing", ExecutionOptions())

        assert await registry.list_states() == []

    @pytest.mark.asyncio
    async def test_dependencies_unmet(self, engine, registry) -> None:
        """Import is refused until dependencies completed; status untouched."""
        with pytest.raises(DependenciesUnmetError) as exc_info:
            await engine.run_import("articles", ExecutionOptions())

        assert exc_info.value.unmet == ["users"]
        assert await registry.get_status("articles") == MigrationStatus.IDLE
        assert await registry.list_states() == []

    @pytest.mark.asyncio
    async def test_incomplete_dependency_is_unmet(self, engine) -> None:
        """A dependency that stopped at its limit does not count as met."""
        await (await engine.run_import("users", ExecutionOptions(limit=1))).wait()

        with pytest.raises(DependenciesUnmetError):
            await engine.run_import("articles", ExecutionOptions())

    @pytest.mark.asyncio
    async def test_dependencies_met(self, engine) -> None:
        await (await engine.run_import("users", ExecutionOptions())).wait()

        handle = await engine.run_import("articles", ExecutionOptions())

        assert await handle.wait() == MigrationResult.COMPLETED

    @pytest.mark.asyncio
    async def test_rollback_unmeets_dependency(self, engine, registry, users) -> None:
        """A dependency whose import was rolled back no longer counts as met."""
        await (await engine.run_import("users", ExecutionOptions())).wait()
        await (await engine.run_rollback("users", ExecutionOptions())).wait()
        assert users.destination == {}

        with pytest.raises(DependenciesUnmetError) as exc_info:
            await engine.run_import("articles", ExecutionOptions())

        assert exc_info.value.unmet == ["users"]
        state = await registry.get_state("users")
        assert state.last_operation == Operation.ROLLBACK
        assert state.import_completed is False

    @pytest.mark.asyncio
    async def test_reimport_after_rollback_meets_dependency(self, engine) -> None:
        await (await engine.run_import("users", ExecutionOptions())).wait()
        await (await engine.run_rollback("users", ExecutionOptions())).wait()
        await (await engine.run_import("users", ExecutionOptions())).wait()

        handle = await engine.run_import("articles", ExecutionOptions())

        assert await handle.wait() == MigrationResult.COMPLETED

    @pytest.mark.asyncio
    async def test_force_ignores_dependencies(self, engine, articles) -> None:
        handle = await engine.run_import("articles", ExecutionOptions(force=True))

        assert await handle.wait() == MigrationResult.COMPLETED
        assert len(articles.destination) == 2

    @pytest.mark.asyncio
    async def test_processor_loaded_from_path(self, engine) -> None:
        """A task's processor path is imported and cached."""
        handle = await engine.run_import("files", ExecutionOptions())

        assert await handle.wait() == MigrationResult.COMPLETED

    @pytest.mark.asyncio
    async def test_processor_missing(self, engine, registry) -> None:
        with pytest.raises(ProcessorNotFoundError):
            await engine.run_import("orphan", ExecutionOptions())

        assert await registry.get_status("orphan") == MigrationStatus.IDLE

    @pytest.mark.asyncio
    async def test_processor_import_fails(self, engine) -> None:
        with pytest.raises(ProcessorNotFoundError, match="migrun.nowhere"):
            await engine.run_rollback("broken", ExecutionOptions())


class FaultyTeardownRegistry(InMemoryStatusRegistry):
    """Registry whose backend fails on selected run writes."""

    def __init__(self, fail_final_progress: bool = False, fail_finish: bool = False) -> None:
        super().__init__()
        self.fail_final_progress = fail_final_progress
        self.fail_finish = fail_finish

    async def record_progress(self, task_id, run_id, processed, failed=0, total=None) -> bool:
        if self.fail_final_progress and processed > 0:
            raise RegistryUnavailableError("connection reset")
        return await super().record_progress(task_id, run_id, processed, failed, total)

    async def finish_run(self, task_id, run_id, result) -> bool:
        if self.fail_finish:
            raise RegistryUnavailableError("connection reset")
        return await super().finish_run(task_id, run_id, result)


class TestRunTeardown:
    """Tests for releasing the task when the registry fails at run end."""

    @pytest.mark.asyncio
    async def test_final_progress_failure_still_releases(self, catalog) -> None:
        """A failed counter write does not leave the task in its run status."""
        registry = FaultyTeardownRegistry(fail_final_progress=True)
        processor = InMemoryRecordProcessor({"a": 1, "b": 2, "c": 3})
        engine = AsyncBatchEngine(registry, catalog, {"users": processor})

        result = await (await engine.run_import("users", ExecutionOptions())).wait()

        assert result == MigrationResult.COMPLETED
        state = await registry.get_state("users")
        assert state.status == MigrationStatus.IDLE
        assert state.last_result == MigrationResult.COMPLETED

    @pytest.mark.asyncio
    async def test_release_failure_recoverable_by_reset(self, catalog) -> None:
        """A failed release is logged, not raised; reset frees the task."""
        registry = FaultyTeardownRegistry(fail_finish=True)
        processor = InMemoryRecordProcessor({"a": 1})
        engine = AsyncBatchEngine(registry, catalog, {"users": processor})

        handle = await engine.run_import("users", ExecutionOptions())

        assert await handle.wait() == MigrationResult.COMPLETED
        assert await registry.get_status("users") == MigrationStatus.IMPORTING

        await registry.set_status("users", MigrationStatus.IDLE)
        registry.fail_finish = False
        again = await engine.run_import("users", ExecutionOptions(update=True))
        assert await again.wait() == MigrationResult.COMPLETED
        assert await registry.get_status("users") == MigrationStatus.IDLE


class TestLoadProcessorFactory:
    """Tests for load_processor_factory."""

    def test_resolves_nested_attribute(self) -> None:
        factory = load_processor_factory(MEMORY_PROCESSOR)

        assert isinstance(factory(MigrationTask(id="x")), InMemoryRecordProcessor)

    @pytest.mark.parametrize("path", ["no_colon", ":attr", "module:"])
    def test_malformed_path(self, path: str) -> None:
        with pytest.raises(ValueError):
            load_processor_factory(path)

    def test_missing_attribute(self) -> None:
        with pytest.raises(AttributeError):
            load_processor_factory("migrun.migration.engine.memory:Nope")
