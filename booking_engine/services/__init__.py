"""Business logic services for the booking engine."""

from .booking_service import BookingService
from .capacity_service import CapacityService, CapacityCounts
from .engine import BookingEngine
from .notification_service import NotificationService
from .audit_service import AuditService
from .waitlist_reconciler import WaitlistReconciler

__all__ = [
    "BookingService",
    "CapacityService",
    "CapacityCounts",
    "BookingEngine",
    "NotificationService",
    "AuditService",
    "WaitlistReconciler",
]
