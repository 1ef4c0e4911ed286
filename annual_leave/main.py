from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from annual_leave.api.health import router as health_router
from annual_leave.api.router import api_router
from annual_leave.config import configure_logging, get_settings
from annual_leave.db import dispose_engine
from annual_leave.exceptions import setup_exception_handlers
from annual_leave.middleware import setup_middleware

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)

OPENAPI_TAGS = [
    {"name": "policies", "description": "Tenure-based grant rules; exactly one is active."},
    {"name": "balances", "description": "Balances, grants and the ledger, plus admin grant operations."},
    {"name": "usage", "description": "FIFO consumption of grants and its reversal."},
    {"name": "daily-update", "description": "Due grants and expiries."},
]


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    configure_logging(settings)
    logger.info("Starting %s v%s [%s]", settings.app_name, settings.app_version, settings.environment)
    try:
        yield
    finally:
        logger.info("Shutting down %s", settings.app_name)
        await dispose_engine()


def create_app() -> FastAPI:
    """Build the API; interactive docs are disabled in production."""
    settings = get_settings()
    show_docs = settings.environment != "production"

    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Append-only annual leave ledger with FIFO grant consumption.",
        openapi_tags=OPENAPI_TAGS,
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if show_docs else None,
        redoc_url="/redoc" if show_docs else None,
    )

    setup_middleware(application, settings)
    setup_exception_handlers(application)

    application.include_router(health_router)
    application.include_router(api_router)
    return application


app = create_app()
