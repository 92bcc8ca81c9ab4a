"""FastAPI application entry-point for the Tweety canary."""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from canary_api import __version__
from canary_api.middleware.logging import RequestLoggingMiddleware
from canary_api.routers import canary, health
from canary_engine.config import CanarySettings, load_settings
from canary_engine.errors import CanaryBusyError, CheckNotFoundError
from canary_engine.http import create_executor
from canary_engine.lock import RunLock
from canary_engine.logging_config import configure_logging
from canary_engine.runner import create_default_runner
from canary_engine.service import CanaryService

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application startup / shutdown lifecycle.

    On startup, unless a service was injected into :func:`create_app`:
    - Build the HTTP executor from the settings.
    - Register the built-in checks and wrap them in a :class:`CanaryService`.

    On shutdown:
    - Close the executor's connection pool.
    """
    settings: CanarySettings = app.state.settings
    executor = None

    if app.state.service is None:
        executor = create_executor(settings)
        app.state.service = CanaryService(
            create_default_runner(settings, executor),
            RunLock(stale_after_ms=settings.lock_stale_after_ms),
        )
        logger.info(
            "Canary service initialised against %s (%d checks)",
            settings.api_url or "<unset>",
            len(app.state.service.list_check_names()),
        )

    yield

    if executor is not None:
        await executor.aclose()
    logger.info("Application shutdown complete")


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(
    settings: CanarySettings | None = None,
    service: CanaryService | None = None,
) -> FastAPI:
    """Construct and configure the FastAPI application.

    Parameters
    ----------
    settings:
        Canary settings; loaded from the environment when omitted.
    service:
        Pre-built service (tests); built during lifespan when omitted.
    """
    if settings is None:
        settings = load_settings()

    if settings.structured_logging:
        configure_logging(settings.log_level, structured=True)
        logger.info("Structured JSON logging enabled")

    app = FastAPI(
        title="Tweety",
        description="Continuous canary verification of the Kapable platform API.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.service = service
    app.state.started_at = time.monotonic()

    # -- Middleware ----------------------------------------------------------

    app.add_middleware(RequestLoggingMiddleware)

    # -- Routers -------------------------------------------------------------

    app.include_router(health.router)
    app.include_router(canary.router)

    # -- Exception handlers --------------------------------------------------

    @app.exception_handler(CanaryBusyError)
    async def busy_error_handler(request: Request, exc: CanaryBusyError) -> JSONResponse:
        logger.info("Rejected %s: run in progress for %dms", request.url.path, exc.held_for_ms)
        return JSONResponse(status_code=429, content={"error": str(exc)})

    @app.exception_handler(CheckNotFoundError)
    async def not_found_handler(request: Request, exc: CheckNotFoundError) -> JSONResponse:
        logger.warning("Unknown check requested: %s", exc.name)
        return JSONResponse(status_code=404, content={"error": str(exc)})

    return app


# Module-level application instance used by ``uvicorn canary_api.main:app``.
app = create_app()
