"""
Side-effect emitter: audit log entry and user notification per transition.

Emission runs after the booking transition has committed, in its own
transaction. A failure here is logged and swallowed; it never undoes the
booking change.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple
from uuid import UUID

from ..database import DatabaseManager
from ..models.booking import BookingStatus
from ..models.booking_log import BookingAction, BookingLog
from ..models.notification import Notification, NotificationType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Transition:
    """A committed booking status change."""
    booking_id: UUID
    event_id: UUID
    user_id: UUID
    tenant_id: UUID
    action: BookingAction
    event_title: str
    prior_status: Optional[BookingStatus]
    new_status: BookingStatus


@dataclass(frozen=True)
class NotificationTemplate:
    type: NotificationType
    title: str
    message: str


NOTIFICATION_TEMPLATES = {
    BookingAction.CREATE_REQUEST: NotificationTemplate(
        NotificationType.BOOKING_REQUESTED,
        "Booking Request Received",
        'We received your booking request for "{title}". You will be notified once it is processed.',
    ),
    BookingAction.AUTO_CONFIRM: NotificationTemplate(
        NotificationType.BOOKING_CONFIRMED,
        "Booking Confirmed! 🎉",
        'Great news! Your booking for "{title}" has been confirmed. We look forward to seeing you there!',
    ),
    BookingAction.AUTO_WAITLIST: NotificationTemplate(
        NotificationType.WAITLISTED,
        "Added to Waitlist ⏳",
        'You\'ve been added to the waitlist for "{title}". We\'ll notify you immediately if a spot opens up.',
    ),
    BookingAction.PROMOTE_FROM_WAITLIST: NotificationTemplate(
        NotificationType.WAITLIST_PROMOTED,
        "Promoted from Waitlist! 🎉",
        'Excellent news! A spot opened up and your booking for "{title}" is now confirmed. See you there!',
    ),
    BookingAction.CANCEL_CONFIRMED: NotificationTemplate(
        NotificationType.BOOKING_CANCELED,
        "Booking Canceled ❌",
        'Your booking for "{title}" has been canceled. If this was a mistake, please contact the organizer.',
    ),
}


def audit_note(transition: Transition) -> str:
    """Human-readable note stored on the audit entry."""
    title = transition.event_title
    if transition.prior_status is None:
        if transition.new_status == BookingStatus.CONFIRMED:
            return f"Booking confirmed for event: {title}"
        if transition.new_status == BookingStatus.WAITLISTED:
            return f"Booking added to waitlist for event: {title}"
        return f"Booking requested for event: {title}"
    return (
        f"Booking status changed from {transition.prior_status.value} "
        f"to {transition.new_status.value} for event: {title}"
    )


def build(transition: Transition) -> Tuple[BookingLog, Notification]:
    """Render the audit entry and notification for a transition without persisting them."""
    template = NOTIFICATION_TEMPLATES[transition.action]

    log_entry = BookingLog(
        booking_id=transition.booking_id,
        event_id=transition.event_id,
        user_id=transition.user_id,
        tenant_id=transition.tenant_id,
        action=transition.action,
        note=audit_note(transition),
    )

    notification = Notification(
        user_id=transition.user_id,
        booking_id=transition.booking_id,
        tenant_id=transition.tenant_id,
        type=template.type,
        title=template.title,
        message=template.message.format(title=transition.event_title),
        read=False,
    )

    return log_entry, notification


class SideEffectEmitter:
    """Persists side effects for committed transitions."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    async def emit(self, transition: Transition) -> Optional[Tuple[BookingLog, Notification]]:
        """
        Record the audit entry and notification for a transition.

        Returns the persisted pair, or None if recording failed.
        """
        try:
            log_entry, notification = build(transition)
            async with self.db.session() as session:
                session.add(log_entry)
                session.add(notification)
            logger.info(
                f"Recorded {transition.action.value} side effects for booking {transition.booking_id}"
            )
            return log_entry, notification
        except Exception:
            logger.exception(
                f"Failed to record side effects for booking {transition.booking_id} "
                f"({transition.action.value})"
            )
            return None
