"""
Database models for the booking engine.
"""

from .base import Base, new_id
from .event import Event
from .booking import Booking, BookingStatus, ACTIVE_STATUSES
from .booking_log import BookingLog, BookingAction
from .notification import Notification, NotificationType

__all__ = [
    "Base",
    "new_id",
    "Event",
    "Booking",
    "BookingStatus",
    "ACTIVE_STATUSES",
    "BookingLog",
    "BookingAction",
    "Notification",
    "NotificationType",
]
