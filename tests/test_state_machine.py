"""
Tests for booking status decisions, transitions and patch validation.
"""

from uuid import uuid4

import pytest

from booking_engine.models import Booking, BookingAction, BookingStatus, new_id
from booking_engine.services.booking_state_machine import (
    action_for,
    decide_initial_status,
    validate_patch,
    validate_transition,
)
from booking_engine.services.capacity_service import CapacityCounts
from booking_engine.utils.exceptions import (
    CapacityExceededError,
    ImmutableFieldViolationError,
    InvalidTransitionError,
)


def _booking(status: BookingStatus) -> Booking:
    return Booking(
        id=new_id(),
        event_id=uuid4(),
        user_id=uuid4(),
        tenant_id=uuid4(),
        status=status,
    )


def test_confirmed_while_slots_remain():
    assert decide_initial_status(CapacityCounts(confirmed=1), capacity=2) == BookingStatus.CONFIRMED


def test_waitlisted_when_full():
    assert decide_initial_status(CapacityCounts(confirmed=2), capacity=2) == BookingStatus.WAITLISTED


def test_waitlisted_and_canceled_do_not_use_capacity():
    counts = CapacityCounts(confirmed=1, waitlisted=5, canceled=7)
    assert decide_initial_status(counts, capacity=2) == BookingStatus.CONFIRMED


def test_cancel_confirmed_allowed():
    validate_transition(BookingStatus.CONFIRMED, BookingStatus.CANCELED)


def test_cancel_waitlisted_allowed():
    validate_transition(BookingStatus.WAITLISTED, BookingStatus.CANCELED)


@pytest.mark.parametrize("target", [BookingStatus.CONFIRMED, BookingStatus.WAITLISTED])
def test_canceled_is_terminal(target):
    with pytest.raises(InvalidTransitionError):
        validate_transition(BookingStatus.CANCELED, target, CapacityCounts(), capacity=10)


def test_confirmed_cannot_go_back_to_waitlist():
    with pytest.raises(InvalidTransitionError):
        validate_transition(BookingStatus.CONFIRMED, BookingStatus.WAITLISTED)


def test_manual_confirmation_needs_free_slot():
    with pytest.raises(CapacityExceededError) as exc_info:
        validate_transition(
            BookingStatus.WAITLISTED,
            BookingStatus.CONFIRMED,
            counts=CapacityCounts(confirmed=3),
            capacity=3,
        )
    assert exc_info.value.details["capacity"] == 3


def test_manual_confirmation_with_free_slot():
    validate_transition(
        BookingStatus.WAITLISTED,
        BookingStatus.CONFIRMED,
        counts=CapacityCounts(confirmed=2),
        capacity=3,
    )


def test_automated_promotion_skips_capacity_check():
    validate_transition(BookingStatus.WAITLISTED, BookingStatus.CONFIRMED, automated=True)


def test_patch_without_status_is_no_change():
    booking = _booking(BookingStatus.CONFIRMED)
    assert validate_patch(booking, {}) is None


def test_patch_with_same_status_is_no_change():
    booking = _booking(BookingStatus.WAITLISTED)
    assert validate_patch(booking, {"status": "waitlisted"}) is None


def test_patch_returns_target_status():
    booking = _booking(BookingStatus.WAITLISTED)
    assert validate_patch(booking, {"status": "confirmed"}) == BookingStatus.CONFIRMED


def test_patch_repeating_immutable_values_is_allowed():
    booking = _booking(BookingStatus.CONFIRMED)
    patch = {"event_id": str(booking.event_id), "user_id": booking.user_id, "status": "canceled"}
    assert validate_patch(booking, patch) == BookingStatus.CANCELED


@pytest.mark.parametrize("field", ["event_id", "user_id", "tenant_id"])
def test_patch_changing_immutable_field_rejected(field):
    booking = _booking(BookingStatus.CONFIRMED)
    with pytest.raises(ImmutableFieldViolationError) as exc_info:
        validate_patch(booking, {field: uuid4()})
    assert exc_info.value.details["field"] == field


def test_immutable_field_checked_before_transition():
    """A canceled booking with a moved event reports the field, not the transition."""
    booking = _booking(BookingStatus.CANCELED)
    with pytest.raises(ImmutableFieldViolationError):
        validate_patch(booking, {"event_id": uuid4(), "status": "confirmed"})


@pytest.mark.parametrize(
    "prior,new,expected",
    [
        (None, BookingStatus.CONFIRMED, BookingAction.AUTO_CONFIRM),
        (None, BookingStatus.WAITLISTED, BookingAction.AUTO_WAITLIST),
        (BookingStatus.WAITLISTED, BookingStatus.CONFIRMED, BookingAction.PROMOTE_FROM_WAITLIST),
        (BookingStatus.CONFIRMED, BookingStatus.CANCELED, BookingAction.CANCEL_CONFIRMED),
        (BookingStatus.WAITLISTED, BookingStatus.CANCELED, BookingAction.CANCEL_CONFIRMED),
    ],
)
def test_audit_action_for_transition(prior, new, expected):
    assert action_for(prior, new) == expected
