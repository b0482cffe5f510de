"""
Notification inbox: listing recorded notifications and marking them read.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, update, func

from ..config import Settings, get_settings
from ..database import DatabaseManager
from ..models.notification import Notification
from ..utils.exceptions import (
    AccessDeniedError,
    NotificationNotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationPage:
    items: List[Notification]
    total: int
    page: int
    limit: int
    unread_count: int

    @property
    def pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.total else 0


class NotificationService:
    """Read side of user notifications. Only ``read`` is ever changed."""

    def __init__(self, db: DatabaseManager, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()

    async def list_notifications(
        self,
        user_id: UUID,
        tenant_id: UUID,
        unread_only: bool = False,
        page: int = 1,
        limit: int = 20
    ) -> NotificationPage:
        """
        List a user's notifications, newest first.

        Raises:
            ValidationError: page below 1 or limit outside 1..notification_page_limit_max
        """
        max_limit = self.settings.notification_page_limit_max
        if page < 1:
            raise ValidationError("Invalid page number", field_errors={"page": ["must be >= 1"]})
        if limit < 1 or limit > max_limit:
            raise ValidationError(
                f"Invalid limit (must be between 1 and {max_limit})",
                field_errors={"limit": [f"must be between 1 and {max_limit}"]},
            )

        filters = [Notification.user_id == user_id, Notification.tenant_id == tenant_id]
        if unread_only:
            filters.append(Notification.read.is_(False))

        async with self.db.session() as session:
            total = await session.scalar(
                select(func.count(Notification.id)).where(*filters)
            )
            result = await session.execute(
                select(Notification)
                .where(*filters)
                .order_by(Notification.created_at.desc(), Notification.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
            items = list(result.scalars().all())
            unread = await self._unread_count(session, user_id, tenant_id)

        return NotificationPage(
            items=items,
            total=total or 0,
            page=page,
            limit=limit,
            unread_count=unread,
        )

    async def mark_read(self, notification_id: UUID, user_id: UUID, tenant_id: UUID) -> Notification:
        """
        Mark one notification as read.

        Raises:
            NotificationNotFoundError: absent, or owned by another tenant
            AccessDeniedError: owned by another user in the same tenant
        """
        async with self.db.session() as session:
            notification = await session.get(Notification, notification_id)
            if notification is None or notification.tenant_id != tenant_id:
                raise NotificationNotFoundError(str(notification_id))
            if notification.user_id != user_id:
                raise AccessDeniedError("You can only update your own notifications")

            notification.read = True

        logger.info(f"Notification {notification_id} marked read by user {user_id}")
        return notification

    async def mark_all_read(self, user_id: UUID, tenant_id: UUID) -> int:
        """Mark every unread notification of the user as read; returns how many changed."""
        async with self.db.session() as session:
            result = await session.execute(
                update(Notification)
                .where(
                    Notification.user_id == user_id,
                    Notification.tenant_id == tenant_id,
                    Notification.read.is_(False),
                )
                .values(read=True)
            )
            updated = result.rowcount or 0

        logger.info(f"Marked {updated} notifications read for user {user_id}")
        return updated

    async def unread_count(self, user_id: UUID, tenant_id: UUID) -> int:
        async with self.db.session() as session:
            return await self._unread_count(session, user_id, tenant_id)

    async def _unread_count(self, session, user_id: UUID, tenant_id: UUID) -> int:
        count = await session.scalar(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id,
                Notification.tenant_id == tenant_id,
                Notification.read.is_(False),
            )
        )
        return count or 0
