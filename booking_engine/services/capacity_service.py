"""
Capacity accounting: per-event booking counts and waitlist lookups.

Counts are recomputed from committed rows on every call and never cached.
All reads run inside the caller's session so that, under the per-event
lock, they see every earlier commit.
"""

import asyncio
import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import and_, case, select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import Settings, get_settings
from ..models.booking import Booking, BookingStatus, ACTIVE_STATUSES
from ..models.event import Event
from ..utils.exceptions import CapacityUnavailableError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CapacityCounts:
    """Number of bookings per status for one event."""
    confirmed: int = 0
    waitlisted: int = 0
    canceled: int = 0

    def has_free_slot(self, capacity: int) -> bool:
        return self.confirmed < capacity


@dataclass(frozen=True)
class EventBookingStats:
    capacity: int
    confirmed: int
    waitlisted: int
    canceled: int
    available: int
    percentage_filled: int

    @classmethod
    def from_counts(cls, counts: CapacityCounts, capacity: int) -> "EventBookingStats":
        return cls(
            capacity=capacity,
            confirmed=counts.confirmed,
            waitlisted=counts.waitlisted,
            canceled=counts.canceled,
            available=max(0, capacity - counts.confirmed),
            percentage_filled=round(counts.confirmed / capacity * 100) if capacity > 0 else 0,
        )

    def to_dict(self) -> dict:
        return asdict(self)


class CapacityService:
    """Read-only queries over bookings used for capacity decisions."""

    def __init__(self, session: AsyncSession, settings: Optional[Settings] = None):
        self.session = session
        self.settings = settings or get_settings()

    async def get_event(self, event_id: UUID, lock: bool = False) -> Optional[Event]:
        """
        Load an event, optionally taking a row lock on it.

        The row lock serializes decide-and-write sequences for the event
        across processes; it is a no-op on SQLite.
        """
        stmt = select(Event).where(Event.id == event_id)
        if lock:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_counts(self, event_id: UUID, tenant_id: UUID) -> CapacityCounts:
        """
        Count bookings per status for an event within a tenant.

        Raises:
            CapacityUnavailableError: when the store fails or the read times out.
                The error carries zero counts for display-only callers.
        """
        stmt = (
            select(Booking.status, func.count(Booking.id))
            .where(
                Booking.event_id == event_id,
                Booking.tenant_id == tenant_id,
            )
            .group_by(Booking.status)
        )

        try:
            result = await asyncio.wait_for(
                self.session.execute(stmt),
                timeout=self.settings.capacity_query_timeout_seconds,
            )
            rows = result.all()
        except (SQLAlchemyError, asyncio.TimeoutError) as e:
            logger.error(f"Failed to count bookings for event {event_id}: {type(e).__name__}")
            raise CapacityUnavailableError(
                str(event_id), fallback_counts=CapacityCounts()
            ) from e

        by_status = {BookingStatus(status): count for status, count in rows}
        return CapacityCounts(
            confirmed=by_status.get(BookingStatus.CONFIRMED, 0),
            waitlisted=by_status.get(BookingStatus.WAITLISTED, 0),
            canceled=by_status.get(BookingStatus.CANCELED, 0),
        )

    async def find_oldest_waitlisted(
        self,
        event_id: UUID,
        tenant_id: UUID,
        lock: bool = False
    ) -> Optional[Booking]:
        """Oldest waitlisted booking by (created_at, id), optionally locked FOR UPDATE."""
        stmt = (
            select(Booking)
            .where(
                Booking.event_id == event_id,
                Booking.tenant_id == tenant_id,
                Booking.status == BookingStatus.WAITLISTED,
            )
            .order_by(Booking.created_at.asc(), Booking.id.asc())
            .limit(1)
        )
        if lock:
            stmt = stmt.with_for_update()

        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def has_active_booking(
        self,
        user_id: UUID,
        event_id: UUID,
        tenant_id: UUID
    ) -> Optional[Booking]:
        """Return the user's confirmed or waitlisted booking for the event, if any."""
        stmt = (
            select(Booking)
            .where(
                Booking.user_id == user_id,
                Booking.event_id == event_id,
                Booking.tenant_id == tenant_id,
                Booking.status.in_(ACTIVE_STATUSES),
            )
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_event_stats(self, event: Event) -> EventBookingStats:
        counts = await self.get_counts(event.id, event.tenant_id)
        return EventBookingStats.from_counts(counts, event.capacity)

    async def get_upcoming_event_counts(
        self,
        tenant_id: UUID,
        organizer_id: Optional[UUID] = None,
        since: Optional[datetime] = None
    ) -> List[Tuple[Event, CapacityCounts]]:
        """
        Counts per status for every upcoming event of the tenant, soonest first.

        One grouped query over events joined to their bookings; events
        without bookings get zero counts. With ``organizer_id`` only that
        organizer's events are included.

        Raises:
            CapacityUnavailableError: when the store fails or the read times out.
        """
        since = since or datetime.now(timezone.utc)

        def _count(status: BookingStatus):
            return func.count(case((Booking.status == status, 1)))

        stmt = (
            select(
                Event,
                _count(BookingStatus.CONFIRMED),
                _count(BookingStatus.WAITLISTED),
                _count(BookingStatus.CANCELED),
            )
            .outerjoin(
                Booking,
                and_(Booking.event_id == Event.id, Booking.tenant_id == Event.tenant_id),
            )
            .where(Event.tenant_id == tenant_id, Event.date >= since)
            .group_by(Event.id)
            .order_by(Event.date.asc(), Event.id.asc())
        )
        if organizer_id is not None:
            stmt = stmt.where(Event.organizer_id == organizer_id)

        try:
            result = await asyncio.wait_for(
                self.session.execute(stmt),
                timeout=self.settings.capacity_query_timeout_seconds,
            )
            rows = result.all()
        except (SQLAlchemyError, asyncio.TimeoutError) as e:
            logger.error(f"Failed to count bookings for tenant {tenant_id}: {type(e).__name__}")
            raise CapacityUnavailableError(str(tenant_id), fallback_counts=CapacityCounts()) from e

        return [
            (event, CapacityCounts(confirmed=confirmed, waitlisted=waitlisted, canceled=canceled))
            for event, confirmed, waitlisted, canceled in rows
        ]
