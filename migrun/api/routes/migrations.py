"""Migration status and operation endpoints."""

from fastapi import APIRouter, status

from migrun.api.dependencies import CatalogDep, DispatcherDep, StatusRegistryDep
from migrun.api.models.migrations import (
    ExecuteRequest,
    MigrationListResponse,
    MigrationStateResponse,
)
from migrun.migration.models import DispatchResult
from migrun.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/migrations")


@router.get("", response_model=MigrationListResponse)
async def list_migrations(
    catalog: CatalogDep,
    registry: StatusRegistryDep,
) -> MigrationListResponse:
    """List configured migrations with their current state."""
    items = [
        MigrationStateResponse(migration=task, state=await registry.get_state(task.id))
        for task in await catalog.list()
    ]
    return MigrationListResponse(items=items, total=len(items))


@router.get("/{task_id}", response_model=MigrationStateResponse)
async def get_migration(
    task_id: str,
    catalog: CatalogDep,
    registry: StatusRegistryDep,
) -> MigrationStateResponse:
    """Get one migration with its current state.

    Poll this after stop to observe the run acknowledging the interrupt.
    """
    task = await catalog.get(task_id)
    return MigrationStateResponse(migration=task, state=await registry.get_state(task_id))


@router.post(
    "/{task_id}/execute",
    response_model=DispatchResult,
    status_code=status.HTTP_202_ACCEPTED,
)
async def execute_migration(
    task_id: str,
    request: ExecuteRequest,
    catalog: CatalogDep,
    dispatcher: DispatcherDep,
) -> DispatchResult:
    """Run import, rollback, stop or reset against a migration.

    Import and rollback return once the run has started. Stop returns
    once the interrupt request is recorded.
    """
    # Unknown migrations are rejected before anything is dispatched
    await catalog.get(task_id)

    logger.info("execute_requested", task_id=task_id, operation=request.operation)
    return await dispatcher.dispatch(task_id, request.operation, request.raw_options())
