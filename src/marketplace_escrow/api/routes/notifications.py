"""In-app notification routes.

Routes:
    GET    /api/v1/users/{user_id}/notifications        — List notifications
    POST   /api/v1/users/{user_id}/notifications/read   — Mark all as read
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace_escrow.api.deps import get_db_session
from marketplace_escrow.schemas.marketplace import MarkReadResponse, NotificationResponse
from marketplace_escrow.services.notification_service import NotificationService

router = APIRouter(prefix="/api/v1/users", tags=["Notifications"])


@router.get(
    "/{user_id}/notifications",
    response_model=list[NotificationResponse],
    summary="List a user's notifications, newest first",
)
async def list_notifications(
    user_id: uuid.UUID,
    unread_only: bool = Query(default=False),
    session: AsyncSession = Depends(get_db_session),
) -> list[NotificationResponse]:
    notifications = await NotificationService(session).list_for_user(
        user_id, unread_only=unread_only
    )
    return [NotificationResponse.model_validate(n) for n in notifications]


@router.post(
    "/{user_id}/notifications/read",
    response_model=MarkReadResponse,
    summary="Mark all notifications as read",
)
async def mark_all_read(
    user_id: uuid.UUID,
    session: AsyncSession = Depends(get_db_session),
) -> MarkReadResponse:
    marked = await NotificationService(session).mark_all_as_read(user_id)
    return MarkReadResponse(marked=marked)
