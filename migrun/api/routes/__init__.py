"""API route registration."""

from fastapi import APIRouter, FastAPI

from migrun.observability.logging import get_logger

logger = get_logger(__name__)


def create_v1_router() -> APIRouter:
    """Create the v1 API router with all routes."""
    router = APIRouter(prefix="/v1")

    from migrun.api.routes.migrations import router as migrations_router

    router.include_router(migrations_router, tags=["Migrations"])

    logger.debug("v1_router_created", routes=["migrations"])
    return router


def register_routes(app: FastAPI) -> None:
    """Register all routes with the FastAPI application."""
    app.include_router(create_v1_router())

    from migrun.api.routes.health import router as health_router

    app.include_router(health_router, tags=["Health"])

    logger.info("routes_registered")
