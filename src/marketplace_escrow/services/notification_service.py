"""Notification sinks and the in-app notification inbox.

Sinks implement the NotificationSink protocol from domain/events.py:
    - LoggingNotificationSink:  writes each event to the structured log.
    - DatabaseNotificationSink: persists each event as a notifications row.

publish() is how the offer and escrow engines hand events over. Emission is
fire-and-forget: a failing sink is logged and the business action stands.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from marketplace_escrow.config import get_settings
from marketplace_escrow.infrastructure.database.orm_models import Notification
from marketplace_escrow.infrastructure.database.repositories import (
    NotificationRepository,
)
from marketplace_escrow.logging_config import get_logger

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from marketplace_escrow.domain.events import DomainEvent, NotificationSink

logger = get_logger(__name__)


class LoggingNotificationSink:
    """Writes events to the log. Used when no inbox is persisted."""

    async def emit(self, event: DomainEvent) -> None:
        logger.info("notification.emitted", **event.to_dict())


class DatabaseNotificationSink:
    """Persists events as in-app notifications in the caller's session.

    The row commits or rolls back together with the business action that
    produced it. The insert runs inside a SAVEPOINT, so a failed insert is
    rolled back on its own and the business action can still commit.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._repo = NotificationRepository(session)

    async def emit(self, event: DomainEvent) -> None:
        async with self._session.begin_nested():
            await self._repo.create(
                Notification(
                    recipient_id=event.recipient_id,
                    event_type=event.event_type.value,
                    category=event.category.value,
                    title=event.title,
                    body=event.body,
                    payload=event.payload,
                    created_at=event.occurred_at,
                )
            )


async def publish(sink: NotificationSink | None, event: DomainEvent) -> None:
    """Hand an event to the sink without letting delivery problems escape."""
    if sink is None:
        return
    try:
        await sink.emit(event)
    except Exception:
        logger.exception(
            "notification.emit_failed",
            event_type=event.event_type.value,
            recipient_id=event.recipient_id,
        )


def build_notification_sink(session: AsyncSession) -> NotificationSink:
    """Create the sink selected by settings.notification_sink."""
    if get_settings().notification_sink == "database":
        return DatabaseNotificationSink(session)
    return LoggingNotificationSink()


class NotificationService:
    """Read side of the in-app inbox written by DatabaseNotificationSink."""

    def __init__(self, session: AsyncSession) -> None:
        self._repo = NotificationRepository(session)

    async def list_for_user(
        self,
        recipient_id: uuid.UUID,
        unread_only: bool = False,
    ) -> list[Notification]:
        return await self._repo.get_by_recipient(recipient_id, unread_only=unread_only)

    async def mark_all_as_read(self, recipient_id: uuid.UUID) -> int:
        count = await self._repo.mark_all_read(recipient_id)
        logger.info("notification.marked_read", recipient_id=recipient_id, count=count)
        return count


def format_money(amount: object) -> str:
    """Render an amount for a notification body, e.g. 'NPR 1,000.00'."""
    return f"{get_settings().currency_symbol} {amount:,.2f}"
