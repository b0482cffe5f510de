"""
Booking state machine.

Pure functions only: nothing here touches the store. Callers supply the
current counts read under the per-event lock.
"""

from typing import Any, Mapping, Optional
from uuid import UUID

from ..models.booking import Booking, BookingStatus
from ..models.booking_log import BookingAction
from ..utils.exceptions import (
    CapacityExceededError,
    ImmutableFieldViolationError,
    InvalidTransitionError,
)
from .capacity_service import CapacityCounts


ALLOWED_TRANSITIONS = {
    BookingStatus.CONFIRMED: frozenset({BookingStatus.CANCELED}),
    BookingStatus.WAITLISTED: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELED}),
    BookingStatus.CANCELED: frozenset(),
}

IMMUTABLE_FIELDS = ("event_id", "user_id", "tenant_id")


def decide_initial_status(counts: CapacityCounts, capacity: int) -> BookingStatus:
    """Confirmed while a slot is free, waitlisted otherwise."""
    if counts.confirmed < capacity:
        return BookingStatus.CONFIRMED
    return BookingStatus.WAITLISTED


def validate_patch(booking: Booking, patch: Mapping[str, Any]) -> Optional[BookingStatus]:
    """
    Check a requested change against an existing booking.

    Immutable fields are checked before anything else. Returns the target
    status when the patch changes it, None otherwise.
    """
    for field in IMMUTABLE_FIELDS:
        if field in patch and patch[field] is not None:
            if _as_uuid(patch[field]) != getattr(booking, field):
                raise ImmutableFieldViolationError(field)

    target = patch.get("status")
    if target is None:
        return None

    target = BookingStatus(target)
    if target == booking.status:
        return None
    return target


def validate_transition(
    current: BookingStatus,
    target: BookingStatus,
    counts: Optional[CapacityCounts] = None,
    capacity: Optional[int] = None,
    automated: bool = False,
    event_id: Optional[UUID] = None,
) -> None:
    """
    Raise unless ``current -> target`` is allowed.

    A manual move to confirmed also needs a free slot. Reconciler promotions
    pass ``automated=True`` because they checked capacity just before.
    """
    if target not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransitionError(current.value, target.value)

    if target == BookingStatus.CONFIRMED and not automated:
        if counts is None or capacity is None:
            raise ValueError("counts and capacity are required for a manual confirmation")
        if counts.confirmed >= capacity:
            raise CapacityExceededError(str(event_id), counts.confirmed, capacity)


def action_for(prior: Optional[BookingStatus], new: BookingStatus) -> BookingAction:
    """Audit action recorded for a status change; ``prior`` is None on creation."""
    if new == BookingStatus.CANCELED:
        return BookingAction.CANCEL_CONFIRMED
    if prior is None:
        if new == BookingStatus.CONFIRMED:
            return BookingAction.AUTO_CONFIRM
        return BookingAction.AUTO_WAITLIST
    if prior == BookingStatus.WAITLISTED and new == BookingStatus.CONFIRMED:
        return BookingAction.PROMOTE_FROM_WAITLIST
    raise InvalidTransitionError(prior.value, new.value)


def _as_uuid(value: Any) -> Any:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return value
