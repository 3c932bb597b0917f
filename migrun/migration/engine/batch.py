"""Reference batch engine.

Runs imports and rollbacks as asyncio tasks that process one record at a
time, polling the status registry for interrupts before every record.

The engine:
1. Resolves the task's record processor and checks dependencies
2. Claims the task in the status registry (idle -> importing/rolling_back)
3. Schedules the run in the background and returns a RunHandle
4. Releases the task back to idle with a terminal result
"""

import asyncio
import importlib
import time
from collections.abc import Callable, Mapping

from migrun.config.models.execution import ExecutionConfig
from migrun.migration.catalog import MigrationCatalog
from migrun.migration.engine.protocol import RecordProcessor
from migrun.migration.enums import MigrationResult, MigrationStatus, Operation
from migrun.migration.exceptions import (
    DependenciesUnmetError,
    MigrationError,
    ProcessorNotFoundError,
)
from migrun.migration.models import ExecutionOptions, MigrationTask, RunHandle
from migrun.migration.registry.store import StatusRegistry
from migrun.observability.logging import get_logger
from migrun.observability.metrics import (
    ACTIVE_RUNS,
    RECORDS_PROCESSED,
    RUN_DURATION,
    RUNS_FINISHED,
)

logger = get_logger(__name__)

ProcessorFactory = Callable[[MigrationTask], RecordProcessor]


def load_processor_factory(path: str) -> ProcessorFactory:
    """Import a processor factory from a 'module:attribute' path.

    Raises:
        ValueError: If the path is malformed
        ImportError: If the module cannot be imported
        AttributeError: If the attribute does not exist
    """
    module_name, sep, attribute = path.partition(":")
    if not sep or not module_name or not attribute:
        raise ValueError(f"Processor path must look like 'module:attribute', got {path!r}")

    module = importlib.import_module(module_name)
    factory = module
    for part in attribute.split("."):
        factory = getattr(factory, part)
    return factory  # type: ignore[return-value]


class AsyncBatchEngine:
    """Batch engine running each import or rollback as an asyncio task.

    Interrupts are cooperative: the run checks the registry before every
    record and ends at that checkpoint. A run whose task was reset (and
    so lost its run token) stops the same way, without touching the
    status again.
    """

    def __init__(
        self,
        registry: StatusRegistry,
        catalog: MigrationCatalog,
        processors: Mapping[str, RecordProcessor] | None = None,
        config: ExecutionConfig | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            registry: Status registry shared with the dispatcher
            catalog: Catalog of configured tasks (dependencies, processors)
            processors: Record processors keyed by task ID
            config: Execution configuration
        """
        self._registry = registry
        self._catalog = catalog
        self._processors: dict[str, RecordProcessor] = dict(processors or {})
        self._config = config or ExecutionConfig()
        self._runs: dict[str, RunHandle] = {}

    def register_processor(self, task_id: str, processor: RecordProcessor) -> None:
        """Register the record processor for a task."""
        self._processors[task_id] = processor

    @property
    def active_runs(self) -> list[RunHandle]:
        """Runs started by this engine that have not finished."""
        return [handle for handle in self._runs.values() if not handle.done]

    async def run_import(self, task_id: str, options: ExecutionOptions) -> RunHandle:
        """Start an import run.

        Raises:
            UnknownTaskError: If the task is not in the catalog
            ProcessorNotFoundError: If the task has no record processor
            DependenciesUnmetError: If dependencies have not completed and
                `force` is not set
            TaskBusyError: If another run owns the task
        """
        task = await self._catalog.get(task_id)
        processor = self._resolve_processor(task)
        if not options.force:
            await self._check_dependencies(task)
        return await self._start(
            task_id, MigrationStatus.IMPORTING, Operation.IMPORT, options, processor
        )

    async def run_rollback(self, task_id: str, options: ExecutionOptions) -> RunHandle:
        """Start a rollback run.

        Raises:
            UnknownTaskError: If the task is not in the catalog
            ProcessorNotFoundError: If the task has no record processor
            TaskBusyError: If another run owns the task
        """
        task = await self._catalog.get(task_id)
        processor = self._resolve_processor(task)
        return await self._start(
            task_id, MigrationStatus.ROLLING_BACK, Operation.ROLLBACK, options, processor
        )

    async def observe_interrupt(self, task_id: str) -> bool:
        """Whether the task's run has been asked to stop."""
        return await self._registry.observe_interrupt(task_id)

    async def shutdown(self) -> None:
        """Cancel every outstanding run and wait for them to release their tasks."""
        runners = [handle.runner for handle in self.active_runs if handle.runner]
        for runner in runners:
            runner.cancel()
        if runners:
            await asyncio.gather(*runners, return_exceptions=True)
        logger.info("batch_engine_shutdown", cancelled_runs=len(runners))

    def _resolve_processor(self, task: MigrationTask) -> RecordProcessor:
        processor = self._processors.get(task.id)
        if processor is not None:
            return processor

        if not task.processor:
            raise ProcessorNotFoundError(task.id)

        try:
            factory = load_processor_factory(task.processor)
            processor = factory(task)
        except (ImportError, AttributeError, ValueError, TypeError) as e:
            logger.error(
                "processor_load_failed",
                task_id=task.id,
                processor=task.processor,
                error=str(e),
            )
            raise ProcessorNotFoundError(task.id, str(e)) from e

        self._processors[task.id] = processor
        return processor

    async def _check_dependencies(self, task: MigrationTask) -> None:
        unmet = []
        for dependency in task.dependencies:
            state = await self._registry.get_state(dependency)
            if not state.import_completed:
                unmet.append(dependency)

        if unmet:
            logger.warning("migration_dependencies_unmet", task_id=task.id, unmet=unmet)
            raise DependenciesUnmetError(task.id, unmet)

    async def _start(
        self,
        task_id: str,
        status: MigrationStatus,
        operation: Operation,
        options: ExecutionOptions,
        processor: RecordProcessor,
    ) -> RunHandle:
        run_id = await self._registry.begin_run(task_id, status)
        handle = RunHandle(
            task_id=task_id,
            run_id=run_id,
            operation=operation,
            options=options,
        )
        handle.runner = asyncio.create_task(
            self._execute(handle, processor),
            name=f"migrun-{operation.value}-{task_id}",
        )
        self._runs[run_id] = handle
        handle.runner.add_done_callback(lambda _: self._runs.pop(run_id, None))

        logger.info(
            "migration_run_started",
            task_id=task_id,
            run_id=run_id,
            operation=operation.value,
            limit=options.limit,
            update=options.update,
            force=options.force,
        )
        return handle

    async def _interrupted(self, task_id: str, run_id: str) -> bool:
        """Checkpoint: True if the run must stop before the next record."""
        state = await self._registry.get_state(task_id)

        if state.run_id != run_id:
            logger.warning("migration_run_orphaned", task_id=task_id, run_id=run_id)
            return True

        if state.interrupt_requested:
            await self._registry.acknowledge_interrupt(task_id, run_id)
            logger.info(
                "migration_interrupt_observed",
                task_id=task_id,
                run_id=run_id,
                reason=state.interrupt_reason,
            )
            return True

        return False

    async def _execute(self, handle: RunHandle, processor: RecordProcessor) -> MigrationResult:
        task_id = handle.task_id
        run_id = handle.run_id
        options = handle.options
        operation = handle.operation
        importing = operation == Operation.IMPORT

        processed = 0
        failed = 0
        total: int | None = None
        result = MigrationResult.FAILED
        started = time.monotonic()
        ACTIVE_RUNS.inc()

        try:
            total = await processor.count(operation, update=options.update)
            if total is not None and options.limit:
                total = min(total, options.limit)
            await self._registry.record_progress(task_id, run_id, 0, 0, total)

            records = processor.pending(update=options.update) if importing else processor.imported()
            result = MigrationResult.COMPLETED

            async for record_id in records:
                if await self._interrupted(task_id, run_id):
                    result = MigrationResult.STOPPED
                    break
                if options.limit and processed >= options.limit:
                    result = MigrationResult.INCOMPLETE
                    break

                try:
                    if importing:
                        await processor.import_record(record_id, update=options.update)
                    else:
                        await processor.rollback_record(record_id)
                except Exception as e:
                    failed += 1
                    RECORDS_PROCESSED.labels(operation=operation.value, outcome="failed").inc()
                    logger.warning(
                        "migration_record_failed",
                        task_id=task_id,
                        run_id=run_id,
                        record_id=record_id,
                        error=str(e),
                    )
                else:
                    RECORDS_PROCESSED.labels(operation=operation.value, outcome="success").inc()

                processed += 1
                if processed % self._config.batch_size == 0:
                    await self._registry.record_progress(task_id, run_id, processed, failed, total)
                    # Yield so stop/reset requests are served between chunks
                    await asyncio.sleep(0)

        except asyncio.CancelledError:
            result = MigrationResult.STOPPED
            logger.warning("migration_run_cancelled", task_id=task_id, run_id=run_id)
            raise
        except Exception as e:
            result = MigrationResult.FAILED
            logger.exception(
                "migration_run_failed",
                task_id=task_id,
                run_id=run_id,
                error=str(e),
                error_type=type(e).__name__,
            )
        finally:
            await self._release(task_id, run_id, result, processed, failed, total)

            duration = time.monotonic() - started
            ACTIVE_RUNS.dec()
            RUNS_FINISHED.labels(operation=operation.value, result=result.value).inc()
            RUN_DURATION.labels(operation=operation.value).observe(duration)
            logger.info(
                "migration_run_finished",
                task_id=task_id,
                run_id=run_id,
                operation=operation.value,
                result=result.value,
                processed=processed,
                failed=failed,
                duration_seconds=duration,
            )

        return result

    async def _release(
        self,
        task_id: str,
        run_id: str,
        result: MigrationResult,
        processed: int,
        failed: int,
        total: int | None,
    ) -> None:
        """Write final counters and hand the task back to idle.

        A failed counter write must not keep the task from being released.
        If the release itself fails the task stays in its run status until
        an operator resets it.
        """
        try:
            await self._registry.record_progress(task_id, run_id, processed, failed, total)
        except MigrationError as e:
            logger.error(
                "migration_final_progress_failed",
                task_id=task_id,
                run_id=run_id,
                error_code=e.code,
                error=e.message,
            )

        try:
            await self._registry.finish_run(task_id, run_id, result)
        except MigrationError as e:
            logger.error(
                "migration_release_failed",
                task_id=task_id,
                run_id=run_id,
                result=result.value,
                error_code=e.code,
                error=e.message,
            )
