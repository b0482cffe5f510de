"""
Waitlist promotion reconciler and the hand-off that schedules it.

A reconciliation run promotes at most one waitlisted booking for an event,
and only when a confirmed slot is free. It is triggered after a confirmed
booking has been canceled and that cancellation has committed.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Set
from uuid import UUID

from sqlalchemy import select

from ..config import Settings, get_settings
from ..database import DatabaseManager
from ..models.booking import Booking, BookingStatus
from ..models.booking_log import BookingAction
from ..utils.logging_config import log_business_event
from .booking_state_machine import validate_transition
from .capacity_service import CapacityService
from .event_lock import EventLockManager
from .side_effect_emitter import SideEffectEmitter, Transition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PromotionResult:
    """Outcome of one promotion attempt."""
    promoted: Optional[Booking]
    reason: str
    available_spots: int = 0

    @property
    def was_promoted(self) -> bool:
        return self.promoted is not None


class WaitlistReconciler:
    """Promotes the oldest waitlisted booking when capacity allows."""

    def __init__(
        self,
        db: DatabaseManager,
        locks: EventLockManager,
        emitter: Optional[SideEffectEmitter] = None,
        settings: Optional[Settings] = None
    ):
        self.db = db
        self.locks = locks
        self.emitter = emitter or SideEffectEmitter(db)
        self.settings = settings or get_settings()

    async def run(
        self,
        event_id: UUID,
        tenant_id: UUID,
        trigger_booking_id: Optional[UUID] = None
    ) -> PromotionResult:
        """
        Best-effort reconciliation for one event.

        Never raises: failures are logged and the attempt ends.
        """
        try:
            if trigger_booking_id is not None:
                if not await self._wait_for_cancellation(trigger_booking_id):
                    logger.warning(
                        f"Cancellation of booking {trigger_booking_id} not visible, "
                        f"skipping reconciliation for event {event_id}"
                    )
                    return PromotionResult(None, "trigger_not_visible")

            result = await self.promote_next(event_id, tenant_id)
            logger.info(f"Reconciliation for event {event_id} finished: {result.reason}")
            return result

        except Exception:
            logger.exception(f"Waitlist reconciliation failed for event {event_id}")
            return PromotionResult(None, "failed")

    async def promote_next(self, event_id: UUID, tenant_id: UUID) -> PromotionResult:
        """
        Promote the oldest waitlisted booking if a slot is free.

        Runs under the per-event lock in a single transaction. Errors
        propagate to the caller.
        """
        async with self.locks.hold(event_id, tenant_id):
            async with self.db.session() as session:
                capacity_service = CapacityService(session, self.settings)

                event = await capacity_service.get_event(event_id, lock=True)
                if event is None or event.tenant_id != tenant_id:
                    return PromotionResult(None, "event_not_found")

                counts = await capacity_service.get_counts(event_id, tenant_id)
                if counts.confirmed >= event.capacity:
                    logger.info(f"Event {event_id} is at capacity, nothing to promote")
                    return PromotionResult(None, "at_capacity", 0)

                candidate = await capacity_service.find_oldest_waitlisted(
                    event_id, tenant_id, lock=True
                )
                available_spots = event.capacity - counts.confirmed
                if candidate is None:
                    return PromotionResult(None, "no_waitlist", available_spots)

                validate_transition(candidate.status, BookingStatus.CONFIRMED, automated=True)
                candidate.status = BookingStatus.CONFIRMED
                event_title = event.title

        transition = Transition(
            booking_id=candidate.id,
            event_id=candidate.event_id,
            user_id=candidate.user_id,
            tenant_id=candidate.tenant_id,
            action=BookingAction.PROMOTE_FROM_WAITLIST,
            event_title=event_title,
            prior_status=BookingStatus.WAITLISTED,
            new_status=BookingStatus.CONFIRMED,
        )
        await self.emitter.emit(transition)

        log_business_event(
            "booking_promoted",
            {"booking_id": str(candidate.id), "event_id": str(event_id), "tenant_id": str(tenant_id)},
            user_id=str(candidate.user_id),
        )

        return PromotionResult(candidate, "promoted", available_spots - 1)

    async def _wait_for_cancellation(self, booking_id: UUID) -> bool:
        """Poll until the triggering booking reads back as canceled."""
        attempts = max(1, self.settings.reconcile_visibility_attempts)

        for attempt in range(attempts):
            async with self.db.session() as session:
                result = await session.execute(
                    select(Booking.status).where(Booking.id == booking_id)
                )
                status = result.scalar_one_or_none()

            if status == BookingStatus.CANCELED:
                return True

            if attempt < attempts - 1:
                await asyncio.sleep(self.settings.reconcile_visibility_delay_seconds)

        return False


class InProcessDispatcher:
    """Runs reconciliation as a tracked background task in this event loop."""

    def __init__(self, reconciler: WaitlistReconciler):
        self.reconciler = reconciler
        self._tasks: Set[asyncio.Task] = set()

    async def dispatch(self, event_id: UUID, tenant_id: UUID, trigger_booking_id: UUID) -> None:
        task = asyncio.create_task(
            self.reconciler.run(event_id, tenant_id, trigger_booking_id),
            name=f"reconcile-{event_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every scheduled reconciliation, including ones scheduled meanwhile."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class CeleryDispatcher:
    """Enqueues reconciliation on the Celery broker."""

    async def dispatch(self, event_id: UUID, tenant_id: UUID, trigger_booking_id: UUID) -> None:
        try:
            from ..tasks.reconciliation_tasks import reconcile_waitlist_task
            reconcile_waitlist_task.apply_async(
                args=[str(event_id), str(tenant_id), str(trigger_booking_id)],
            )
            logger.info(f"Waitlist reconciliation queued for event {event_id}")
        except Exception as e:
            logger.error(f"Failed to queue waitlist reconciliation for event {event_id}: {e}")

    async def drain(self) -> None:
        return None


def create_dispatcher(settings: Settings, reconciler: WaitlistReconciler):
    """Build the reconciliation dispatcher selected by configuration."""
    if settings.reconciliation_dispatcher == "celery":
        return CeleryDispatcher()
    return InProcessDispatcher(reconciler)
