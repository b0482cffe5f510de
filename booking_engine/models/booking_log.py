"""
BookingLog model for the append-only booking audit trail.
"""

import enum
import uuid
from typing import Optional, TYPE_CHECKING

from sqlalchemy import Enum, ForeignKey, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

if TYPE_CHECKING:
    from .booking import Booking


class BookingAction(str, enum.Enum):
    """Enumeration for audited booking actions."""
    CREATE_REQUEST = "create_request"
    AUTO_WAITLIST = "auto_waitlist"
    AUTO_CONFIRM = "auto_confirm"
    PROMOTE_FROM_WAITLIST = "promote_from_waitlist"
    CANCEL_CONFIRMED = "cancel_confirmed"


class BookingLog(Base):
    """One audit entry per booking status change."""

    __tablename__ = "booking_logs"

    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("bookings.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    event_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, index=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    tenant_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, index=True)

    action: Mapped[BookingAction] = mapped_column(
        Enum(
            BookingAction,
            name="booking_action",
            values_callable=lambda actions: [action.value for action in actions],
        ),
        nullable=False,
        index=True
    )

    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Relationships
    booking: Mapped["Booking"] = relationship("Booking", back_populates="logs")

    def __repr__(self) -> str:
        """String representation of the audit entry."""
        return (
            f"<BookingLog(id={self.id}, booking_id={self.booking_id}, "
            f"action={self.action.value}, created_at={self.created_at})>"
        )
