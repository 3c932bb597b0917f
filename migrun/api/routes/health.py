"""Health check and metrics endpoints."""

import time
from typing import Literal

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from migrun import __version__
from migrun.api.dependencies import BatchEngineDep, StatusRegistryDep
from migrun.api.models.health import ComponentHealth, HealthResponse
from migrun.migration.exceptions import RegistryUnavailableError
from migrun.migration.registry import StatusRegistry
from migrun.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


async def _check_registry_health(registry: StatusRegistry) -> ComponentHealth:
    """Check the status registry by listing states."""
    start = time.time()
    try:
        await registry.list_states()
    except RegistryUnavailableError as e:
        return ComponentHealth(
            name="status_registry",
            status="unhealthy",
            latency_ms=(time.time() - start) * 1000,
            message=e.message,
        )
    return ComponentHealth(
        name="status_registry",
        status="healthy",
        latency_ms=(time.time() - start) * 1000,
    )


@router.get("/health", response_model=HealthResponse)
async def health_check(
    registry: StatusRegistryDep,
    engine: BatchEngineDep,
) -> HealthResponse:
    """Check service health status."""
    logger.debug("health_check_request")

    components = [
        await _check_registry_health(registry),
        ComponentHealth(
            name="batch_engine",
            status="healthy",
            message=f"{len(engine.active_runs)} active runs",
        ),
    ]

    overall_status: Literal["healthy", "degraded", "unhealthy"] = "healthy"
    if any(c.status == "unhealthy" for c in components):
        overall_status = "unhealthy"

    return HealthResponse(
        status=overall_status,
        version=__version__,
        components=components,
    )


async def metrics() -> Response:
    """Prometheus metrics endpoint, mounted at observability.metrics.path."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
