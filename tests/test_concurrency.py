"""
Concurrency scenarios: simultaneous bookings must never overbook an event.
"""

import asyncio

import pytest

from booking_engine.models import BookingStatus
from booking_engine.services.capacity_service import CapacityService
from booking_engine.utils.exceptions import DuplicateBookingError


@pytest.mark.asyncio
async def test_simultaneous_bookings_respect_capacity(booking_service, make_event, make_principal, tenant_id):
    event = await make_event(capacity=3)
    users = [make_principal() for _ in range(10)]

    bookings = await asyncio.gather(
        *(booking_service.create_booking(user.id, event.id, tenant_id) for user in users)
    )

    statuses = [b.status for b in bookings]
    assert statuses.count(BookingStatus.CONFIRMED) == 3
    assert statuses.count(BookingStatus.WAITLISTED) == 7


@pytest.mark.asyncio
async def test_simultaneous_duplicates_create_one_booking(db, booking_service, test_event, attendee, tenant_id):
    results = await asyncio.gather(
        *(booking_service.create_booking(attendee.id, test_event.id, tenant_id) for _ in range(5)),
        return_exceptions=True,
    )

    created = [r for r in results if not isinstance(r, Exception)]
    rejected = [r for r in results if isinstance(r, DuplicateBookingError)]
    assert len(created) == 1
    assert len(rejected) == 4

    async with db.session() as session:
        counts = await CapacityService(session).get_counts(test_event.id, tenant_id)
    assert counts.confirmed == 1


@pytest.mark.asyncio
async def test_cancellations_racing_new_bookings(db, engine, booking_service, make_event, make_principal,
                                                 tenant_id):
    event = await make_event(capacity=2)
    holders = [make_principal() for _ in range(2)]
    held = [await booking_service.create_booking(h.id, event.id, tenant_id) for h in holders]
    newcomers = [make_principal() for _ in range(4)]

    await asyncio.gather(
        *(booking_service.cancel_booking(b.id, h.id, tenant_id) for b, h in zip(held, holders)),
        *(booking_service.create_booking(n.id, event.id, tenant_id) for n in newcomers),
    )
    await engine.drain()

    async with db.session() as session:
        counts = await CapacityService(session).get_counts(event.id, tenant_id)

    # Every freed slot ends up filled, and never more than capacity
    assert counts.confirmed == 2
    assert counts.waitlisted == 2
    assert counts.canceled == 2
