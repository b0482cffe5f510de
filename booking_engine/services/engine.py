"""
Wiring of the booking engine's long-lived parts.

One ``BookingEngine`` exists per process (API server, Celery worker, test).
Request-scoped services are built from it on demand.
"""

import logging
from typing import Optional

from ..cache import RedisCache
from ..config import Settings, get_settings
from ..database import DatabaseManager
from .audit_service import AuditService
from .booking_service import BookingService
from .event_lock import EventLockManager
from .notification_service import NotificationService
from .side_effect_emitter import SideEffectEmitter
from .waitlist_reconciler import WaitlistReconciler, create_dispatcher

logger = logging.getLogger(__name__)


class BookingEngine:
    """Holds the store handle, per-event locks, emitter, reconciler and dispatcher."""

    def __init__(
        self,
        db: DatabaseManager,
        settings: Optional[Settings] = None,
        cache: Optional[RedisCache] = None
    ):
        self.settings = settings or get_settings()
        self.db = db
        self.locks = EventLockManager(self.settings, cache)
        self.emitter = SideEffectEmitter(db)
        self.reconciler = WaitlistReconciler(db, self.locks, self.emitter, self.settings)
        self.dispatcher = create_dispatcher(self.settings, self.reconciler)

    def booking_service(self) -> BookingService:
        return BookingService(
            self.db,
            self.locks,
            self.reconciler,
            self.dispatcher,
            emitter=self.emitter,
            settings=self.settings,
        )

    def notification_service(self) -> NotificationService:
        return NotificationService(self.db, self.settings)

    def audit_service(self) -> AuditService:
        return AuditService(self.db)

    async def drain(self) -> None:
        """Wait for in-flight background reconciliations."""
        await self.dispatcher.drain()
