"""FastAPI application entry point for the marketplace escrow service.

Lifecycle:
    1. Startup: Initialize logging, database, Redis, create tables (dev mode).
    2. Running: Serve the REST API at /api/v1/*.
    3. Shutdown: Close database and Redis connections gracefully.

Run with:
    uv run uvicorn marketplace_escrow.main:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from marketplace_escrow.api.middleware import setup_middleware
from marketplace_escrow.api.routes.health import router as health_router
from marketplace_escrow.api.routes.listings import router as listings_router
from marketplace_escrow.api.routes.notifications import router as notifications_router
from marketplace_escrow.api.routes.offers import router as offers_router
from marketplace_escrow.api.routes.transactions import router as transactions_router
from marketplace_escrow.api.routes.wallets import router as wallets_router
from marketplace_escrow.config import get_settings
from marketplace_escrow.infrastructure.database.engine import close_db, init_db
from marketplace_escrow.infrastructure.redis_client import close_redis, init_redis
from marketplace_escrow.logging_config import get_logger, setup_logging

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle."""
    settings = get_settings()

    # 1. Setup structured logging
    setup_logging(
        log_level=settings.app_log_level,
        json_logs=not settings.is_development,
    )
    logger = get_logger(__name__)
    logger.info(
        "app.starting",
        env=settings.app_env,
        debug=settings.app_debug,
        notification_sink=settings.notification_sink,
    )

    # 2. Initialize database
    await init_db()

    # 3. Initialize Redis; purchases still work without it, minus idempotency keys
    try:
        await init_redis()
    except Exception as exc:
        logger.warning("app.redis_unavailable", error=str(exc))

    logger.info("app.started", host=settings.app_host, port=settings.app_port)

    yield

    # Shutdown
    logger.info("app.shutting_down")
    await close_db()
    await close_redis()
    logger.info("app.stopped")


def create_app() -> FastAPI:
    """Application factory — creates and configures the FastAPI app."""
    settings = get_settings()

    app = FastAPI(
        title="Marketplace Escrow",
        description=(
            "Second-hand marketplace core: listings, offer negotiation, "
            "and escrow-held payments."
        ),
        version="0.1.0",
        lifespan=lifespan,
        debug=settings.app_debug,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    setup_middleware(app)

    app.include_router(health_router)
    app.include_router(wallets_router)
    app.include_router(listings_router)
    app.include_router(offers_router)
    app.include_router(transactions_router)
    app.include_router(notifications_router)

    return app


# The app instance used by Uvicorn
app = create_app()
