"""Dependency injection for API routes.

Provides FastAPI dependencies for the status registry, catalog, batch
engine and dispatcher. Instances are created once and can be overridden
for testing.
"""

import os
from typing import Annotated

import redis.asyncio as redis
from fastapi import Depends

from migrun.config import Settings, get_settings
from migrun.migration.catalog import InMemoryMigrationCatalog, MigrationCatalog
from migrun.migration.dispatcher import OperationDispatcher
from migrun.migration.engine.batch import AsyncBatchEngine
from migrun.migration.registry import InMemoryStatusRegistry, StatusRegistry
from migrun.migration.registry.redis import RedisStatusRegistry
from migrun.observability.logging import get_logger

logger = get_logger(__name__)

_redis_client: redis.Redis | None = None
_status_registry: StatusRegistry | None = None
_catalog: MigrationCatalog | None = None
_batch_engine: AsyncBatchEngine | None = None
_dispatcher: OperationDispatcher | None = None


def get_redis_client(settings: Settings) -> redis.Redis:
    """Get the shared Redis client.

    Uses storage.status.connection_url, falling back to REDIS_URL.
    """
    global _redis_client
    if _redis_client is None:
        redis_url = settings.storage.status.connection_url or os.environ.get(
            "REDIS_URL", "redis://localhost:6379"
        )
        _redis_client = redis.from_url(redis_url, decode_responses=True)
        logger.info("redis_client_connected", url=redis_url)
    return _redis_client


def get_status_registry(
    settings: Annotated[Settings, Depends(get_settings)],
) -> StatusRegistry:
    """Get the StatusRegistry instance for the configured backend."""
    global _status_registry
    if _status_registry is None:
        config = settings.storage.status
        if config.backend == "redis":
            _status_registry = RedisStatusRegistry(get_redis_client(settings), config)
        else:
            _status_registry = InMemoryStatusRegistry()
        logger.info("status_registry_initialized", backend=config.backend)
    return _status_registry


def get_catalog(
    settings: Annotated[Settings, Depends(get_settings)],
) -> MigrationCatalog:
    """Get the MigrationCatalog built from the [[migrations]] config."""
    global _catalog
    if _catalog is None:
        _catalog = InMemoryMigrationCatalog.from_settings(settings)
        logger.info("migration_catalog_initialized", tasks=len(settings.migrations))
    return _catalog


def get_batch_engine(
    settings: Annotated[Settings, Depends(get_settings)],
    registry: Annotated[StatusRegistry, Depends(get_status_registry)],
    catalog: Annotated[MigrationCatalog, Depends(get_catalog)],
) -> AsyncBatchEngine:
    """Get the AsyncBatchEngine instance."""
    global _batch_engine
    if _batch_engine is None:
        _batch_engine = AsyncBatchEngine(
            registry=registry,
            catalog=catalog,
            config=settings.execution,
        )
        logger.info("batch_engine_initialized", batch_size=settings.execution.batch_size)
    return _batch_engine


def get_dispatcher(
    settings: Annotated[Settings, Depends(get_settings)],
    registry: Annotated[StatusRegistry, Depends(get_status_registry)],
    engine: Annotated[AsyncBatchEngine, Depends(get_batch_engine)],
) -> OperationDispatcher:
    """Get the OperationDispatcher instance."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = OperationDispatcher(
            registry=registry,
            engine=engine,
            stop_reason=settings.execution.stop_reason,
        )
        logger.info("dispatcher_initialized")
    return _dispatcher


# Type aliases for dependency injection
SettingsDep = Annotated[Settings, Depends(get_settings)]
StatusRegistryDep = Annotated[StatusRegistry, Depends(get_status_registry)]
CatalogDep = Annotated[MigrationCatalog, Depends(get_catalog)]
BatchEngineDep = Annotated[AsyncBatchEngine, Depends(get_batch_engine)]
DispatcherDep = Annotated[OperationDispatcher, Depends(get_dispatcher)]


async def reset_dependencies() -> None:
    """Reset all cached dependencies.

    Cancels outstanding runs and closes the Redis connection first.
    """
    global _redis_client, _status_registry, _catalog, _batch_engine, _dispatcher

    if _batch_engine is not None:
        await _batch_engine.shutdown()

    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None

    _status_registry = None
    _catalog = None
    _batch_engine = None
    _dispatcher = None
    get_settings.cache_clear()
