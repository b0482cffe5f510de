"""
Tests for audit entries and notifications recorded per transition.
"""

from uuid import uuid4

import pytest
from sqlalchemy import select

from booking_engine.database import DatabaseManager
from booking_engine.models import (
    BookingAction,
    BookingLog,
    BookingStatus,
    Notification,
    NotificationType,
)
from booking_engine.services.side_effect_emitter import (
    SideEffectEmitter,
    Transition,
    audit_note,
    build,
)


def _transition(action, prior, new, title="Jazz Night") -> Transition:
    return Transition(
        booking_id=uuid4(),
        event_id=uuid4(),
        user_id=uuid4(),
        tenant_id=uuid4(),
        action=action,
        event_title=title,
        prior_status=prior,
        new_status=new,
    )


def test_build_confirmation():
    transition = _transition(BookingAction.AUTO_CONFIRM, None, BookingStatus.CONFIRMED)
    log_entry, notification = build(transition)

    assert log_entry.action == BookingAction.AUTO_CONFIRM
    assert log_entry.note == "Booking confirmed for event: Jazz Night"
    assert log_entry.tenant_id == transition.tenant_id
    assert notification.type == NotificationType.BOOKING_CONFIRMED
    assert notification.user_id == transition.user_id
    assert '"Jazz Night"' in notification.message
    assert notification.read is False


def test_build_waitlist_entry():
    transition = _transition(BookingAction.AUTO_WAITLIST, None, BookingStatus.WAITLISTED)
    log_entry, notification = build(transition)

    assert log_entry.note == "Booking added to waitlist for event: Jazz Night"
    assert notification.type == NotificationType.WAITLISTED


@pytest.mark.parametrize(
    "action,prior,new,expected_type",
    [
        (BookingAction.PROMOTE_FROM_WAITLIST, BookingStatus.WAITLISTED, BookingStatus.CONFIRMED,
         NotificationType.WAITLIST_PROMOTED),
        (BookingAction.CANCEL_CONFIRMED, BookingStatus.CONFIRMED, BookingStatus.CANCELED,
         NotificationType.BOOKING_CANCELED),
        (BookingAction.CREATE_REQUEST, None, BookingStatus.WAITLISTED,
         NotificationType.BOOKING_REQUESTED),
    ],
)
def test_notification_type_per_action(action, prior, new, expected_type):
    _, notification = build(_transition(action, prior, new))
    assert notification.type == expected_type


def test_status_change_note():
    transition = _transition(BookingAction.CANCEL_CONFIRMED, BookingStatus.CONFIRMED, BookingStatus.CANCELED)
    assert audit_note(transition) == "Booking status changed from confirmed to canceled for event: Jazz Night"


@pytest.mark.asyncio
async def test_creation_records_one_log_and_one_notification(db, booking_service, test_event, attendee, tenant_id):
    booking = await booking_service.create_booking(attendee.id, test_event.id, tenant_id)

    async with db.session() as session:
        logs = (await session.execute(
            select(BookingLog).where(BookingLog.booking_id == booking.id)
        )).scalars().all()
        notifications = (await session.execute(
            select(Notification).where(Notification.booking_id == booking.id)
        )).scalars().all()

    assert [log.action for log in logs] == [BookingAction.AUTO_CONFIRM]
    assert [n.type for n in notifications] == [NotificationType.BOOKING_CONFIRMED]
    assert notifications[0].user_id == attendee.id
    assert notifications[0].tenant_id == tenant_id


@pytest.mark.asyncio
async def test_emit_failure_is_swallowed(settings):
    # Never initialized, so opening a session fails
    emitter = SideEffectEmitter(DatabaseManager(settings=settings))
    transition = _transition(BookingAction.AUTO_CONFIRM, None, BookingStatus.CONFIRMED)

    assert await emitter.emit(transition) is None


@pytest.mark.asyncio
async def test_emit_failure_keeps_booking(db, engine, test_event, attendee, tenant_id, monkeypatch):
    def failing_build(transition):
        raise RuntimeError("render failed")

    monkeypatch.setattr("booking_engine.services.side_effect_emitter.build", failing_build)

    booking = await engine.booking_service().create_booking(attendee.id, test_event.id, tenant_id)

    assert booking.status == BookingStatus.CONFIRMED
    async with db.session() as session:
        logs = (await session.execute(
            select(BookingLog).where(BookingLog.booking_id == booking.id)
        )).scalars().all()
    assert logs == []
