"""housemate - household task sharing backend."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from housemate.core.config import Settings, get_settings
from housemate.core.firebase_store import build_store
from housemate.core.logging import configure_logfire, instrument_fastapi, instrument_httpx
from housemate.interface.auth_router import router as auth_router
from housemate.interface.error_handlers import register_error_handlers
from housemate.interface.group_router import router as group_router
from housemate.interface.invite_router import router as invite_router
from housemate.interface.user_router import router as user_router
from housemate.services import Services, build_services


logger = logging.getLogger(__name__)


def validate_startup_configuration(settings: Settings) -> None:
    """Validate required credentials, exiting with a clear message if any are missing."""
    logger.info("startup_validation_begin")

    try:
        settings.require_credential("secret_key", "Session secret")
        if settings.store_backend == "firebase":
            settings.require_credential("firebase_url", "Firebase URL")
        logger.info("startup_validation", extra={"stage": "credentials", "status": "ok"})
    except ValueError as e:
        logger.error("startup_validation_failed", extra={"error": str(e)})
        print(f"\n❌ Startup validation failed: {e}\n", file=sys.stderr)  # noqa: T201
        sys.exit(1)


def create_app(
    settings: Settings | None = None,
    *,
    services: Services | None = None,
    instrument: bool = True,
) -> FastAPI:
    """Build the FastAPI application.

    When ``services`` is given it is used as-is (tests pass services built over
    a MemoryStore); otherwise the store and services are built from settings
    at startup and the store is closed at shutdown.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # Startup
        if instrument:
            configure_logfire(settings)
            instrument_httpx()
        validate_startup_configuration(settings)

        owns_services = getattr(app.state, "services", None) is None
        if owns_services:
            app.state.services = build_services(build_store(settings), settings)
            logger.info("Services initialized (store=%s)", settings.store_backend)
        yield
        # Shutdown
        if owns_services:
            await app.state.services.store.close()

    app = FastAPI(
        title="housemate",
        description="Household task sharing backend",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.services = services

    if instrument:
        instrument_fastapi(app)

    register_error_handlers(app)

    app.include_router(auth_router)
    app.include_router(user_router)
    app.include_router(group_router)
    app.include_router(invite_router)

    @app.get("/health")
    async def health_check() -> JSONResponse:
        """Health check endpoint."""
        return JSONResponse(content={"status": "healthy"}, status_code=200)

    return app
