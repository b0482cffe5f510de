"""
Booking model for managing event reservations.
"""

import enum
import uuid
from typing import List, TYPE_CHECKING

from sqlalchemy import Enum, ForeignKey, Index, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

if TYPE_CHECKING:
    from .event import Event
    from .booking_log import BookingLog


class BookingStatus(str, enum.Enum):
    """Enumeration for booking status."""
    CONFIRMED = "confirmed"
    WAITLISTED = "waitlisted"
    CANCELED = "canceled"


ACTIVE_STATUSES = (BookingStatus.CONFIRMED, BookingStatus.WAITLISTED)

_ACTIVE_STATUS_CLAUSE = text("status IN ('confirmed', 'waitlisted')")


class Booking(Base):
    """Booking model. Rows are never deleted; cancellation is a status."""

    __tablename__ = "bookings"

    # Foreign key relationships
    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("events.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, index=True)
    tenant_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, index=True)

    status: Mapped[BookingStatus] = mapped_column(
        Enum(
            BookingStatus,
            name="booking_status",
            values_callable=lambda statuses: [status.value for status in statuses],
        ),
        nullable=False,
        index=True
    )

    # Relationships
    event: Mapped["Event"] = relationship("Event", back_populates="bookings")

    logs: Mapped[List["BookingLog"]] = relationship(
        "BookingLog",
        back_populates="booking",
        order_by="BookingLog.created_at",
    )

    __table_args__ = (
        Index("ix_bookings_event_tenant_status", "event_id", "tenant_id", "status"),
        # One active booking per user and event
        Index(
            "uq_bookings_active_user_event",
            "user_id",
            "event_id",
            unique=True,
            postgresql_where=_ACTIVE_STATUS_CLAUSE,
            sqlite_where=_ACTIVE_STATUS_CLAUSE,
        ),
    )

    @property
    def is_active(self) -> bool:
        """Check if the booking holds or waits for a slot."""
        return self.status in ACTIVE_STATUSES

    def __repr__(self) -> str:
        """String representation of the booking."""
        return (
            f"<Booking(id={self.id}, user_id={self.user_id}, "
            f"event_id={self.event_id}, status={self.status.value})>"
        )
