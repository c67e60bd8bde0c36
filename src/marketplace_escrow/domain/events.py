"""Domain events and the Notification Sink protocol.

Services describe what happened as a DomainEvent and hand it to an injected
NotificationSink. Delivery (push, in-app panel, email) is entirely the
sink's concern. This is a Protocol so sinks only need to match the shape.

The domain layer has ZERO imports from SQLAlchemy, FastAPI, or structlog.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol, runtime_checkable

from marketplace_escrow.domain.enums import EventType, NotificationCategory


@dataclass(frozen=True)
class DomainEvent:
    """A notification-worthy fact emitted by the offer or escrow engine.

    Attributes:
        event_type: What happened (OFFER_CREATED, PAYMENT_RELEASED, ...).
        recipient_id: The user the notification is addressed to.
        title: Short headline.
        body: Human-readable detail.
        category: Grouping for the recipient's notification list.
        payload: Identifiers of the entities involved.
        occurred_at: When the event was raised (UTC).
    """

    event_type: EventType
    recipient_id: uuid.UUID
    title: str
    body: str = ""
    category: NotificationCategory = NotificationCategory.SYSTEM
    payload: dict = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict:
        """Serialize for logging or persistence."""
        return {
            "event_type": self.event_type.value,
            "recipient_id": str(self.recipient_id),
            "title": self.title,
            "body": self.body,
            "category": self.category.value,
            "payload": self.payload,
            "occurred_at": self.occurred_at.isoformat(),
        }


@runtime_checkable
class NotificationSink(Protocol):
    """Protocol that all notification sinks must satisfy.

    Concrete implementations:
        - services/notification_service.py LoggingNotificationSink
        - services/notification_service.py DatabaseNotificationSink
    """

    async def emit(self, event: DomainEvent) -> None:
        """Accept an event for delivery. Must not block on delivery."""
        ...
