"""FastAPI application factory.

Creates and configures the FastAPI application with middleware,
exception handlers, and route registration.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from migrun import __version__
from migrun.api.dependencies import reset_dependencies
from migrun.api.exceptions import error_code_for, status_code_for
from migrun.api.middleware.context import RequestContextMiddleware
from migrun.api.models.errors import ErrorBody, ErrorCode, ErrorDetail, ErrorResponse
from migrun.api.routes import register_routes
from migrun.api.routes.health import metrics
from migrun.config import get_settings
from migrun.migration.exceptions import InvalidOptionError, MigrationError
from migrun.observability.logging import get_logger, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Cancel outstanding runs and close connections on shutdown."""
    yield
    await reset_dependencies()
    logger.info("app_shutdown")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    This factory function creates a fully configured FastAPI app with:
    - Structured logging
    - CORS middleware
    - Request context middleware
    - Global exception handlers
    - Prometheus metrics endpoint
    - All API routes registered
    """
    settings = get_settings()
    log_config = settings.observability.logging
    setup_logging(
        level=log_config.level,
        format=log_config.format,
        redact_secrets=log_config.redact_secrets,
    )

    app = FastAPI(
        title="migrun API",
        description="Operator control of resumable data-migration jobs",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=settings.api.cors_allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestContextMiddleware)

    register_exception_handlers(app)
    register_routes(app)

    if settings.observability.metrics.enabled:
        app.add_api_route(
            settings.observability.metrics.path,
            metrics,
            methods=["GET"],
            include_in_schema=False,
        )

    if settings.observability.tracing.enabled:
        FastAPIInstrumentor.instrument_app(app)
        logger.info("opentelemetry_instrumentation_enabled")

    logger.info(
        "app_created",
        debug=settings.debug,
        registry_backend=settings.storage.status.backend,
        migrations=len(settings.migrations),
    )

    return app


def register_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(MigrationError)
    async def migration_error_handler(
        request: Request, exc: MigrationError
    ) -> JSONResponse:
        """Handle MigrationError and its subclasses."""
        code = error_code_for(exc)
        logger.warning(
            "api_error",
            error_code=code.value,
            message=exc.message,
            path=request.url.path,
        )

        error_body = ErrorBody(
            code=code,
            message=exc.message,
            task_id=getattr(exc, "task_id", None),
        )
        if isinstance(exc, InvalidOptionError):
            error_body.details = [ErrorDetail(field=exc.field, message=exc.message)]

        return JSONResponse(
            status_code=status_code_for(exc),
            content=ErrorResponse(error=error_body).model_dump(mode="json"),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle FastAPI request validation errors."""
        logger.warning(
            "validation_error",
            errors=exc.errors(),
            path=request.url.path,
        )

        details = [
            ErrorDetail(
                field=".".join(str(loc) for loc in error["loc"]),
                message=error["msg"],
            )
            for error in exc.errors()
        ]
        error_body = ErrorBody(
            code=ErrorCode.INVALID_REQUEST,
            message="Request validation failed",
            details=details,
        )

        return JSONResponse(
            status_code=400,
            content=ErrorResponse(error=error_body).model_dump(mode="json"),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception(
            "unexpected_error",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
        )

        error_body = ErrorBody(
            code=ErrorCode.INTERNAL_ERROR,
            message="An unexpected error occurred",
        )

        return JSONResponse(
            status_code=500,
            content=ErrorResponse(error=error_body).model_dump(mode="json"),
        )

    logger.debug("exception_handlers_registered")
