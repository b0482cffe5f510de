#!/usr/bin/env python3
"""
Development helper: create an event and print bearer tokens to try the API with.

Events are normally owned by the catalogue service; this script writes one
directly so a local engine has something to book.
"""

import asyncio
import sys
from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

from sqlalchemy import select

from booking_engine.database import DatabaseManager
from booking_engine.models import Event
from booking_engine.services.capacity_service import CapacityService
from booking_engine.utils.auth import Principal, Role, create_access_token


def _ask(prompt: str, default: str) -> str:
    value = input(f"{prompt} [{default}]: ").strip()
    return value or default


async def seed_event():
    """Create an event interactively and print one token per role."""
    print("🔧 Booking Engine - Seed Event")
    print("=" * 40)

    title = _ask("Event title", "Local Test Concert")
    try:
        capacity = int(_ask("Capacity", "2"))
        days_ahead = int(_ask("Days from now", "30"))
        tenant_id = UUID(_ask("Tenant ID", str(uuid4())))
    except ValueError as e:
        print(f"❌ Invalid input: {e}")
        return

    if capacity < 1:
        print("❌ Capacity must be at least 1!")
        return

    organizer = Principal(id=uuid4(), role=Role.ORGANIZER, tenant_id=tenant_id)
    db = DatabaseManager()

    try:
        print("\n🔄 Initializing database connection...")
        await db.initialize()

        event = Event(
            title=title,
            venue="Local Venue",
            date=datetime.now(timezone.utc) + timedelta(days=days_ahead),
            capacity=capacity,
            tenant_id=tenant_id,
            organizer_id=organizer.id,
        )
        async with db.session() as session:
            session.add(event)

        print("✅ Event created successfully!")
        print(f"   ID: {event.id}")
        print(f"   Title: {event.title}")
        print(f"   Capacity: {event.capacity}")
        print(f"   Tenant: {tenant_id}")
        print()

        for principal in (
            organizer,
            Principal(id=uuid4(), role=Role.ATTENDEE, tenant_id=tenant_id),
            Principal(id=uuid4(), role=Role.ADMIN, tenant_id=tenant_id),
        ):
            print(f"🔑 {principal.role.value} ({principal.id})")
            print(f"   Bearer {create_access_token(principal, expires_delta=timedelta(days=1))}")
            print()

    finally:
        await db.close()


async def list_events():
    """List events with their current booking counts."""
    print("📅 Events")
    print("=" * 30)

    db = DatabaseManager()
    try:
        await db.initialize(create_tables=False)

        async with db.session() as session:
            events = (await session.execute(select(Event).order_by(Event.date))).scalars().all()

            if not events:
                print("No events found.")

            for event in events:
                counts = await CapacityService(session).get_counts(event.id, event.tenant_id)
                print(f"🎫 {event.title}")
                print(f"   ID: {event.id}")
                print(f"   Tenant: {event.tenant_id}")
                print(f"   Confirmed: {counts.confirmed}/{event.capacity}")
                print(f"   Waitlisted: {counts.waitlisted}")
                print()

    finally:
        await db.close()


async def main():
    """Main function."""
    if len(sys.argv) > 1 and sys.argv[1] == "list":
        await list_events()
    else:
        await seed_event()


if __name__ == "__main__":
    print("Usage:")
    print("  python miscellaneous/seed_event.py        # Create an event and print tokens")
    print("  python miscellaneous/seed_event.py list   # List events with booking counts")
    print()

    asyncio.run(main())
