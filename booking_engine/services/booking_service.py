"""
Booking orchestrator.

Every write runs as explicit stages: validation and decision under the
per-event lock, persistence and commit, then side effects in their own
transaction, then the reconciliation hand-off.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..config import Settings, get_settings
from ..database import DatabaseManager
from ..models.base import as_utc
from ..models.booking import Booking, BookingStatus
from ..models.booking_log import BookingLog
from ..models.event import Event
from ..utils.auth import Role
from ..utils.exceptions import (
    AccessDeniedError,
    AlreadyCanceledError,
    BookingNotFoundError,
    CapacityUnavailableError,
    DuplicateBookingError,
    EventNotFoundError,
    PastEventError,
    TenantMismatchError,
)
from ..utils.logging_config import log_business_event
from ..utils.retry import RetryConfig, retry_async
from .audit_service import AuditService
from .booking_state_machine import (
    action_for,
    decide_initial_status,
    validate_patch,
    validate_transition,
)
from .capacity_service import CapacityCounts, CapacityService, EventBookingStats
from .event_lock import EventLockManager
from .side_effect_emitter import SideEffectEmitter, Transition
from .waitlist_reconciler import PromotionResult, WaitlistReconciler

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CancellationResult:
    """A canceled booking and, if one is queued, the booking expected to be promoted."""
    booking: Booking
    promotion_preview: Optional[Booking] = None


@dataclass(frozen=True)
class EventStatsResult:
    event: Event
    stats: EventBookingStats
    counts_available: bool = True


@dataclass(frozen=True)
class DashboardSummary:
    total_events: int
    total_confirmed: int
    total_waitlisted: int
    total_canceled: int
    total_bookings: int
    average_capacity_utilization: int

    @classmethod
    def from_events(cls, events: List[Tuple[Event, EventBookingStats]]) -> "DashboardSummary":
        confirmed = sum(stats.confirmed for _, stats in events)
        waitlisted = sum(stats.waitlisted for _, stats in events)
        canceled = sum(stats.canceled for _, stats in events)
        total_capacity = sum(stats.capacity for _, stats in events)
        return cls(
            total_events=len(events),
            total_confirmed=confirmed,
            total_waitlisted=waitlisted,
            total_canceled=canceled,
            total_bookings=confirmed + waitlisted + canceled,
            average_capacity_utilization=round(confirmed / total_capacity * 100) if total_capacity > 0 else 0,
        )


@dataclass(frozen=True)
class DashboardResult:
    """Upcoming events with their booking stats, tenant totals and latest activity."""
    events: List[Tuple[Event, EventBookingStats]]
    summary: DashboardSummary
    recent_activity: List[BookingLog]
    generated_at: datetime


class BookingService:
    """Service coordinating booking creation, cancellation and promotion."""

    def __init__(
        self,
        db: DatabaseManager,
        locks: EventLockManager,
        reconciler: WaitlistReconciler,
        dispatcher,
        emitter: Optional[SideEffectEmitter] = None,
        settings: Optional[Settings] = None
    ):
        self.db = db
        self.locks = locks
        self.reconciler = reconciler
        self.dispatcher = dispatcher
        self.emitter = emitter or SideEffectEmitter(db)
        self.settings = settings or get_settings()
        self.count_retry = RetryConfig(
            max_attempts=self.settings.count_retry_attempts,
            base_delay=self.settings.count_retry_base_delay,
            max_delay=self.settings.count_retry_max_delay,
        )

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_booking(self, user_id: UUID, event_id: UUID, tenant_id: UUID) -> Booking:
        """
        Create a booking, confirmed while a slot is free and waitlisted otherwise.

        Raises:
            EventNotFoundError, TenantMismatchError, PastEventError,
            DuplicateBookingError, UnavailableError
        """
        logger.info(f"Creating booking for user {user_id}, event {event_id}")

        booking, event_title = await retry_async(
            self._decide_and_persist_creation,
            self.count_retry,
            user_id,
            event_id,
            tenant_id,
            retryable_exceptions=(CapacityUnavailableError,),
        )

        await self.emitter.emit(Transition(
            booking_id=booking.id,
            event_id=booking.event_id,
            user_id=booking.user_id,
            tenant_id=booking.tenant_id,
            action=action_for(None, booking.status),
            event_title=event_title,
            prior_status=None,
            new_status=booking.status,
        ))

        log_business_event(
            "booking_created",
            {"booking_id": str(booking.id), "event_id": str(event_id), "status": booking.status.value},
            user_id=str(user_id),
        )
        return booking

    async def _decide_and_persist_creation(
        self,
        user_id: UUID,
        event_id: UUID,
        tenant_id: UUID
    ) -> Tuple[Booking, str]:
        async with self.locks.hold(event_id, tenant_id):
            async with self.db.session() as session:
                capacity_service = CapacityService(session, self.settings)

                # Validation
                event = await capacity_service.get_event(event_id, lock=True)
                self._validate_bookable(event, event_id, tenant_id)

                existing = await capacity_service.has_active_booking(user_id, event_id, tenant_id)
                if existing is not None:
                    raise DuplicateBookingError(
                        str(event_id), existing.status.value, str(existing.id)
                    )

                # Decision
                counts = await capacity_service.get_counts(event_id, tenant_id)
                status = decide_initial_status(counts, event.capacity)

                # Persistence
                booking = Booking(
                    event_id=event_id,
                    user_id=user_id,
                    tenant_id=tenant_id,
                    status=status,
                )
                session.add(booking)
                try:
                    await session.flush()
                except IntegrityError as e:
                    # Another writer got the active slot in first; report its booking
                    await session.rollback()
                    existing = await capacity_service.has_active_booking(user_id, event_id, tenant_id)
                    if existing is None:
                        raise DuplicateBookingError(str(event_id), "active") from e
                    raise DuplicateBookingError(
                        str(event_id), existing.status.value, str(existing.id)
                    ) from e

                logger.info(
                    f"Booking {booking.id} {status.value} "
                    f"({counts.confirmed}/{event.capacity} confirmed before)"
                )
                return booking, event.title

    def _validate_bookable(self, event: Optional[Event], event_id: UUID, tenant_id: UUID) -> None:
        if event is None:
            raise EventNotFoundError(str(event_id))
        if event.tenant_id != tenant_id:
            raise TenantMismatchError(str(event_id))
        if as_utc(event.date) <= datetime.now(timezone.utc):
            raise PastEventError(str(event_id))

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    async def cancel_booking(self, booking_id: UUID, user_id: UUID, tenant_id: UUID) -> CancellationResult:
        """
        Cancel the caller's own booking.

        Reconciliation is scheduled only when a confirmed booking was canceled.

        Raises:
            BookingNotFoundError, AccessDeniedError, AlreadyCanceledError
        """
        logger.info(f"Canceling booking {booking_id} for user {user_id}")

        async with self.db.session() as session:
            booking = await self._get_booking(session, booking_id, tenant_id)
            self._validate_cancellation(booking, user_id)
            event_id = booking.event_id

        async with self.locks.hold(event_id, tenant_id):
            async with self.db.session() as session:
                # Re-read under the lock; a concurrent change may have won
                booking = await self._get_booking(session, booking_id, tenant_id, lock=True)
                self._validate_cancellation(booking, user_id)

                prior_status = booking.status
                validate_transition(prior_status, BookingStatus.CANCELED)
                booking.status = BookingStatus.CANCELED

                preview = None
                if prior_status == BookingStatus.CONFIRMED:
                    preview = await CapacityService(session, self.settings).find_oldest_waitlisted(
                        event_id, tenant_id
                    )

                event_title = await self._event_title(session, event_id)

        await self._after_status_change(booking, prior_status, BookingStatus.CANCELED, event_title)

        log_business_event(
            "booking_canceled",
            {"booking_id": str(booking_id), "event_id": str(event_id), "prior_status": prior_status.value},
            user_id=str(user_id),
        )
        return CancellationResult(booking=booking, promotion_preview=preview)

    def _validate_cancellation(self, booking: Booking, user_id: UUID) -> None:
        if booking.user_id != user_id:
            raise AccessDeniedError("Access denied")
        if booking.status == BookingStatus.CANCELED:
            raise AlreadyCanceledError(str(booking.id))

    # ------------------------------------------------------------------
    # Promotion
    # ------------------------------------------------------------------

    async def promote_waitlist(
        self,
        event_id: UUID,
        tenant_id: UUID,
        acting_role: Role,
        acting_user_id: UUID
    ) -> PromotionResult:
        """
        Promote the oldest waitlisted booking for an event right away.

        Nothing to promote (no waitlist, or no free slot) is a successful no-op.
        """
        if acting_role not in (Role.ORGANIZER, Role.ADMIN):
            raise AccessDeniedError(
                "Only admins and organizers can promote waitlisted users",
                required_role=Role.ORGANIZER.value,
            )

        async with self.db.session() as session:
            event = await self._get_event_for_tenant(session, event_id, tenant_id)
            self._require_event_manager(event, acting_role, acting_user_id)

        return await self.reconciler.promote_next(event_id, tenant_id)

    # ------------------------------------------------------------------
    # Administrative updates
    # ------------------------------------------------------------------

    async def update_booking(
        self,
        booking_id: UUID,
        patch: Mapping[str, Any],
        tenant_id: UUID,
        acting_role: Role,
        acting_user_id: UUID
    ) -> Booking:
        """
        Apply a manual change to a booking.

        Immutable fields are rejected before the transition is checked; a
        manual confirmation needs a free slot.
        """
        if acting_role not in (Role.ORGANIZER, Role.ADMIN):
            raise AccessDeniedError("Only admins and organizers can update bookings",
                                    required_role=Role.ORGANIZER.value)

        async with self.db.session() as session:
            booking = await self._get_booking(session, booking_id, tenant_id)
            target = validate_patch(booking, patch)
            event = await self._get_event_for_tenant(session, booking.event_id, tenant_id)
            self._require_event_manager(event, acting_role, acting_user_id)
            event_id = booking.event_id

        if target is None:
            return booking

        booking, prior_status, event_title = await retry_async(
            self._apply_manual_transition,
            self.count_retry,
            booking_id,
            event_id,
            tenant_id,
            patch,
            retryable_exceptions=(CapacityUnavailableError,),
        )

        await self._after_status_change(booking, prior_status, booking.status, event_title)
        log_business_event(
            "booking_updated",
            {
                "booking_id": str(booking_id),
                "event_id": str(event_id),
                "prior_status": prior_status.value,
                "status": booking.status.value,
            },
            user_id=str(acting_user_id),
        )
        return booking

    async def _apply_manual_transition(
        self,
        booking_id: UUID,
        event_id: UUID,
        tenant_id: UUID,
        patch: Mapping[str, Any]
    ) -> Tuple[Booking, BookingStatus, str]:
        async with self.locks.hold(event_id, tenant_id):
            async with self.db.session() as session:
                capacity_service = CapacityService(session, self.settings)
                event = await capacity_service.get_event(event_id, lock=True)
                booking = await self._get_booking(session, booking_id, tenant_id, lock=True)

                target = validate_patch(booking, patch)
                prior_status = booking.status
                if target is None:
                    return booking, prior_status, event.title

                counts: Optional[CapacityCounts] = None
                if target == BookingStatus.CONFIRMED:
                    counts = await capacity_service.get_counts(event_id, tenant_id)

                validate_transition(
                    prior_status,
                    target,
                    counts=counts,
                    capacity=event.capacity,
                    event_id=event_id,
                )
                booking.status = target
                return booking, prior_status, event.title

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_user_bookings(
        self,
        user_id: UUID,
        tenant_id: UUID,
        status: Optional[BookingStatus] = None
    ) -> List[Booking]:
        """The user's bookings in this tenant, newest first."""
        stmt = (
            select(Booking)
            .options(selectinload(Booking.event))
            .where(Booking.user_id == user_id, Booking.tenant_id == tenant_id)
            .order_by(Booking.created_at.desc(), Booking.id.desc())
        )
        if status is not None:
            stmt = stmt.where(Booking.status == status)

        async with self.db.session() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def list_event_bookings(
        self,
        event_id: UUID,
        tenant_id: UUID,
        acting_user_id: UUID,
        acting_role: Role
    ) -> List[Booking]:
        """All bookings for an event, oldest first. Organizer of the event or admin only."""
        if acting_role not in (Role.ORGANIZER, Role.ADMIN):
            raise AccessDeniedError(required_role=Role.ORGANIZER.value)

        async with self.db.session() as session:
            event = await self._get_event_for_tenant(session, event_id, tenant_id)
            self._require_event_manager(event, acting_role, acting_user_id)

            result = await session.execute(
                select(Booking)
                .where(Booking.event_id == event_id, Booking.tenant_id == tenant_id)
                .order_by(Booking.created_at.asc(), Booking.id.asc())
            )
            return list(result.scalars().all())

    async def get_event_stats(self, event_id: UUID, tenant_id: UUID) -> EventStatsResult:
        """
        Booking statistics for an event.

        This is a display read: if counts stay unavailable after retrying,
        zero counts are returned with ``counts_available=False``.
        """
        async with self.db.session() as session:
            event = await self._get_event_for_tenant(session, event_id, tenant_id)

        async def _read_stats() -> EventBookingStats:
            async with self.db.session() as session:
                return await CapacityService(session, self.settings).get_event_stats(event)

        try:
            stats = await retry_async(
                _read_stats,
                self.count_retry,
                retryable_exceptions=(CapacityUnavailableError,),
            )
        except CapacityUnavailableError as e:
            logger.warning(f"Showing fallback counts for event {event_id}")
            return EventStatsResult(
                event=event,
                stats=EventBookingStats.from_counts(e.fallback_counts or CapacityCounts(), event.capacity),
                counts_available=False,
            )

        return EventStatsResult(event=event, stats=stats)

    async def dashboard(self, organizer_id: UUID, tenant_id: UUID, acting_role: Role) -> DashboardResult:
        """
        Organizer overview of upcoming events.

        Organizers see their own events; admins see every upcoming event of
        the tenant. Recent activity covers the whole tenant.
        """
        if acting_role not in (Role.ORGANIZER, Role.ADMIN):
            raise AccessDeniedError(
                "Access denied. Organizer or admin role required.",
                required_role=Role.ORGANIZER.value,
            )

        owner = organizer_id if acting_role == Role.ORGANIZER else None

        async def _read_counts() -> List[Tuple[Event, CapacityCounts]]:
            async with self.db.session() as session:
                return await CapacityService(session, self.settings).get_upcoming_event_counts(
                    tenant_id, organizer_id=owner
                )

        rows = await retry_async(
            _read_counts,
            self.count_retry,
            retryable_exceptions=(CapacityUnavailableError,),
        )
        events = [(event, EventBookingStats.from_counts(counts, event.capacity)) for event, counts in rows]

        recent_activity = await AuditService(self.db).recent_activity(tenant_id)

        return DashboardResult(
            events=events,
            summary=DashboardSummary.from_events(events),
            recent_activity=recent_activity,
            generated_at=datetime.now(timezone.utc),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _after_status_change(
        self,
        booking: Booking,
        prior_status: BookingStatus,
        new_status: BookingStatus,
        event_title: str
    ) -> None:
        """Side effects, then the reconciliation hand-off for a freed slot."""
        await self.emitter.emit(Transition(
            booking_id=booking.id,
            event_id=booking.event_id,
            user_id=booking.user_id,
            tenant_id=booking.tenant_id,
            action=action_for(prior_status, new_status),
            event_title=event_title,
            prior_status=prior_status,
            new_status=new_status,
        ))

        if prior_status == BookingStatus.CONFIRMED and new_status == BookingStatus.CANCELED:
            await self.dispatcher.dispatch(booking.event_id, booking.tenant_id, booking.id)

    async def _get_booking(
        self,
        session: AsyncSession,
        booking_id: UUID,
        tenant_id: UUID,
        lock: bool = False
    ) -> Booking:
        stmt = select(Booking).where(Booking.id == booking_id)
        if lock:
            stmt = stmt.with_for_update()
        result = await session.execute(stmt)
        booking = result.scalar_one_or_none()

        # Bookings of other tenants are indistinguishable from missing ones
        if booking is None or booking.tenant_id != tenant_id:
            raise BookingNotFoundError(str(booking_id))
        return booking

    async def _get_event_for_tenant(self, session: AsyncSession, event_id: UUID, tenant_id: UUID) -> Event:
        event = await session.get(Event, event_id)
        if event is None:
            raise EventNotFoundError(str(event_id))
        if event.tenant_id != tenant_id:
            raise TenantMismatchError(str(event_id))
        return event

    async def _event_title(self, session: AsyncSession, event_id: UUID) -> str:
        result = await session.execute(select(Event.title).where(Event.id == event_id))
        return result.scalar_one()

    def _require_event_manager(self, event: Event, acting_role: Role, acting_user_id: UUID) -> None:
        if acting_role == Role.ORGANIZER and event.organizer_id != acting_user_id:
            raise AccessDeniedError("You can only manage bookings for your own events")
