"""
Notification inbox endpoints.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from ..schemas.common import PaginationMeta
from ..schemas.notification import (
    MarkAllReadResponse,
    NotificationListResponse,
    NotificationResponse,
    UnreadCountResponse,
)
from ..services.notification_service import NotificationService
from ..utils.auth import Principal
from ..utils.dependencies import get_current_principal, get_notification_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    unread_only: bool = Query(False, alias="unreadOnly"),
    page: int = Query(1),
    limit: int = Query(20),
    principal: Principal = Depends(get_current_principal),
    notification_service: NotificationService = Depends(get_notification_service),
):
    """
    List the current user's notifications, newest first.

    - **unreadOnly**: only unread notifications
    - **page**: page number, starting at 1
    - **limit**: items per page, 1 to 50
    """
    result = await notification_service.list_notifications(
        user_id=principal.id,
        tenant_id=principal.tenant_id,
        unread_only=unread_only,
        page=page,
        limit=limit,
    )
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(item) for item in result.items],
        unread_count=result.unread_count,
        pagination=PaginationMeta(
            page=result.page,
            limit=result.limit,
            total=result.total,
            pages=result.pages,
        ),
    )


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(
    principal: Principal = Depends(get_current_principal),
    notification_service: NotificationService = Depends(get_notification_service),
):
    count = await notification_service.unread_count(principal.id, principal.tenant_id)
    return UnreadCountResponse(unread_count=count)


@router.post("/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(
    principal: Principal = Depends(get_current_principal),
    notification_service: NotificationService = Depends(get_notification_service),
):
    updated = await notification_service.mark_all_read(principal.id, principal.tenant_id)
    return MarkAllReadResponse(updated=updated)


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: UUID,
    principal: Principal = Depends(get_current_principal),
    notification_service: NotificationService = Depends(get_notification_service),
):
    """Mark one of the current user's notifications as read."""
    notification = await notification_service.mark_read(
        notification_id, principal.id, principal.tenant_id
    )
    return NotificationResponse.model_validate(notification)
