from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from app.api.health import router as health_router
from app.api.router import api_router
from app.config import get_settings
from app.db import dispose_engine
from app.exceptions import setup_exception_handlers
from app.middleware import setup_middleware
from app.seed import seed_directory
from app.services.employee import InMemoryEmployeeService, get_employee_service
from app.worker import create_dispatcher

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from app.config import Settings

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    """Configure root logging once at startup."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )


@asynccontextmanager
async def lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager for startup and shutdown."""
    settings = get_settings()
    logger.info("Starting %s v%s [%s]", settings.app_name, settings.app_version, settings.environment)

    directory = get_employee_service()
    if settings.environment == "development" and isinstance(directory, InMemoryEmployeeService):
        seed_directory(directory)
        logger.info("Loaded demo roster into the in-memory employee directory")

    dispatcher = create_dispatcher()
    dispatcher.start()
    application.state.dispatcher = dispatcher
    try:
        yield
    finally:
        await dispatcher.stop(settings.notification_drain_timeout_seconds)
        await dispose_engine()
        logger.info("Shutting down %s", settings.app_name)


def create_app() -> FastAPI:
    """Application factory."""
    settings = get_settings()
    configure_logging(settings)

    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if settings.environment != "production" else None,
        redoc_url="/redoc" if settings.environment != "production" else None,
    )

    setup_middleware(application, settings)
    setup_exception_handlers(application)

    application.include_router(health_router)
    application.include_router(api_router)

    return application


app = create_app()
