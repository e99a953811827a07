"""FastAPI application for hookrelay."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from hookrelay import __version__
from hookrelay.config import Settings
from hookrelay.exceptions import (
    AuthenticationError,
    NotFoundError,
    RelayError,
    ValidationError,
)
from hookrelay.logging import configure_logging, get_logger
from hookrelay.service import RelayService

from .dependencies import set_service
from .router import router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifespan.

    Initializes the RelayService on startup, optionally runs the worker
    pool in-process, and drains it on shutdown.
    """
    settings: Settings = app.state.settings

    configure_logging(level=settings.log_level, format=settings.log_format)
    logger.info(
        "Starting hookrelay API",
        env=settings.env,
        embedded_workers=settings.embedded_workers,
    )

    service = RelayService.create(settings)
    await service.initialize()
    set_service(service)

    if settings.embedded_workers:
        await service.start_workers()

    yield

    await service.close()
    set_service(None)


def register_exception_handlers(app: FastAPI) -> None:
    """Map hookrelay exceptions to HTTP responses."""

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Report malformed request bodies as 400, like service-level validation."""
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        error = ValidationError(field or "body", first.get("msg", "Invalid request"))
        logger.warning("Validation error", field=error.field, error=error.message)
        return JSONResponse(status_code=400, content=error.to_dict())

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        """Handle validation errors with 400 status."""
        logger.warning(
            "Validation error", field=exc.field, error=exc.message, path=str(request.url)
        )
        return JSONResponse(status_code=400, content=exc.to_dict())

    @app.exception_handler(NotFoundError)
    async def not_found_error_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        """Handle not found errors with 404 status."""
        logger.info(
            "Resource not found",
            resource_type=exc.resource_type,
            resource_id=exc.resource_id,
            path=str(request.url),
        )
        return JSONResponse(status_code=404, content=exc.to_dict())

    @app.exception_handler(AuthenticationError)
    async def authentication_error_handler(
        request: Request, exc: AuthenticationError
    ) -> JSONResponse:
        """Handle authentication errors with 401 status."""
        logger.warning("Authentication failed", error=exc.message, path=str(request.url))
        return JSONResponse(status_code=401, content=exc.to_dict())

    @app.exception_handler(RelayError)
    async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
        """Handle all other hookrelay errors with 500 status."""
        logger.error("Relay error", error=exc.message, code=exc.code, path=str(request.url))
        return JSONResponse(status_code=500, content=exc.to_dict())


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create a FastAPI application.

    Args:
        settings: Optional settings. Uses environment if None.

    Returns:
        Configured FastAPI application.

    Example:
        ```python
        from hookrelay.api import create_app

        app = create_app()
        # Run with: uvicorn hookrelay.api:app
        ```
    """
    if settings is None:
        settings = Settings()

    app = FastAPI(
        title="hookrelay",
        description="Reliable, signed webhook delivery.",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.settings = settings

    register_exception_handlers(app)
    app.include_router(router, prefix="/api")

    return app


# Default app instance for uvicorn
app = create_app()
