"""
Celery task running waitlist reconciliation outside the API process.
"""

import asyncio
import logging
from uuid import UUID

from .celery_app import celery_app
from ..cache import RedisCache
from ..config import get_settings
from ..database import DatabaseManager

logger = logging.getLogger(__name__)


async def _reconcile(event_id: UUID, tenant_id: UUID, trigger_booking_id: UUID) -> dict:
    # Imported here to keep worker start-up light
    from ..services.engine import BookingEngine

    settings = get_settings()
    db = DatabaseManager(settings=settings)
    cache = RedisCache(settings)

    await db.initialize(create_tables=False)
    try:
        if settings.event_lock_backend == "redis":
            await cache.initialize()

        engine = BookingEngine(db, settings, cache)
        result = await engine.reconciler.run(event_id, tenant_id, trigger_booking_id)
        return {
            "event_id": str(event_id),
            "reason": result.reason,
            "promoted_booking_id": str(result.promoted.id) if result.promoted else None,
        }
    finally:
        await cache.close()
        await db.close()


@celery_app.task(bind=True, name="reconcile_waitlist_task")
def reconcile_waitlist_task(self, event_id: str, tenant_id: str, trigger_booking_id: str):
    """
    Promote the oldest waitlisted booking after a confirmed booking was canceled.

    Best-effort: the reconciler logs failures and never raises, so the task
    is not retried.
    """
    logger.info(f"Reconciling waitlist for event {event_id} (trigger {trigger_booking_id})")

    # Each run gets its own event loop and store handle
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(
            _reconcile(UUID(event_id), UUID(tenant_id), UUID(trigger_booking_id))
        )
    finally:
        loop.close()
