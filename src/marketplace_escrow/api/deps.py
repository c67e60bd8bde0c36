"""FastAPI dependency injection providers.

These are used with Depends() in route handlers to inject database sessions,
the notification sink, Redis clients, and configuration.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace_escrow.config import Settings, get_settings
from marketplace_escrow.infrastructure.database.engine import session_scope
from marketplace_escrow.infrastructure.redis_client import get_redis
from marketplace_escrow.logging_config import get_logger
from marketplace_escrow.services.notification_service import build_notification_sink

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    import redis.asyncio as aioredis

    from marketplace_escrow.domain.events import NotificationSink

logger = get_logger(__name__)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session for a request."""
    async with session_scope() as session:
        yield session


async def get_notification_sink(
    session: AsyncSession = Depends(get_db_session),
) -> NotificationSink:
    """Provide the configured sink, bound to the request's session."""
    return build_notification_sink(session)


def get_redis_client() -> aioredis.Redis | None:
    """Provide the Redis client, or None when Redis was unavailable at startup."""
    try:
        return get_redis()
    except RuntimeError:
        logger.warning("redis.not_initialized")
        return None


def get_app_settings() -> Settings:
    """Provide the application settings."""
    return get_settings()
