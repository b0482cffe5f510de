"""
Audit trail queries over the append-only booking log.
"""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select

from ..database import DatabaseManager
from ..models.booking import Booking
from ..models.booking_log import BookingLog
from ..models.event import Event
from ..utils.auth import Role
from ..utils.exceptions import AccessDeniedError, BookingNotFoundError

logger = logging.getLogger(__name__)


class AuditService:
    """Read access to booking audit entries."""

    RECENT_ACTIVITY_LIMIT = 5

    def __init__(self, db: DatabaseManager):
        self.db = db

    async def booking_history(
        self,
        booking_id: UUID,
        tenant_id: UUID,
        acting_user_id: UUID,
        acting_role: Role
    ) -> List[BookingLog]:
        """
        Audit entries for one booking in the order they were written.

        Visible to the booking's owner, the event's organizer and admins.
        """
        async with self.db.session() as session:
            booking = await session.get(Booking, booking_id)
            if booking is None or booking.tenant_id != tenant_id:
                raise BookingNotFoundError(str(booking_id))

            if acting_role == Role.ATTENDEE and booking.user_id != acting_user_id:
                raise AccessDeniedError()
            if acting_role == Role.ORGANIZER and booking.user_id != acting_user_id:
                event = await session.get(Event, booking.event_id)
                if event is None or event.organizer_id != acting_user_id:
                    raise AccessDeniedError()

            result = await session.execute(
                select(BookingLog)
                .where(BookingLog.booking_id == booking_id, BookingLog.tenant_id == tenant_id)
                .order_by(BookingLog.created_at.asc(), BookingLog.id.asc())
            )
            return list(result.scalars().all())

    async def recent_activity(
        self,
        tenant_id: UUID,
        limit: Optional[int] = None
    ) -> List[BookingLog]:
        """Newest audit entries across the tenant, for dashboards."""
        limit = limit or self.RECENT_ACTIVITY_LIMIT

        async with self.db.session() as session:
            result = await session.execute(
                select(BookingLog)
                .where(BookingLog.tenant_id == tenant_id)
                .order_by(BookingLog.created_at.desc(), BookingLog.id.desc())
                .limit(limit)
            )
            return list(result.scalars().all())
