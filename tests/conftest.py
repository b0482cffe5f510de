"""
Pytest fixtures for the store, engine, seeded events, principals and HTTP client.

Every test gets its own SQLite file so runs stay isolated, with process-local
event locks and in-process reconciliation.
"""

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Awaitable, Callable, Optional
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from booking_engine.config import Settings
from booking_engine.database import DatabaseManager
from booking_engine.main import app
from booking_engine.models import Event
from booking_engine.services.engine import BookingEngine
from booking_engine.utils.auth import Principal, Role, create_access_token
from booking_engine.utils.dependencies import get_engine


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings pointing at a throwaway SQLite database."""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'booking_engine_test.db'}",
        event_lock_backend="local",
        event_lock_timeout_seconds=10,
        reconciliation_dispatcher="in_process",
        count_retry_attempts=3,
        count_retry_base_delay=0.01,
        count_retry_max_delay=0.02,
        reconcile_visibility_attempts=3,
        reconcile_visibility_delay_seconds=0.01,
        debug=False,
    )


@pytest_asyncio.fixture
async def db(settings: Settings) -> AsyncGenerator[DatabaseManager, None]:
    """Initialized store handle with all tables created."""
    manager = DatabaseManager(settings=settings)
    await manager.initialize(create_tables=True)
    yield manager
    await manager.close()


@pytest_asyncio.fixture
async def engine(db: DatabaseManager, settings: Settings) -> AsyncGenerator[BookingEngine, None]:
    booking_engine = BookingEngine(db, settings)
    yield booking_engine
    # Let background reconciliations finish before the store closes
    await booking_engine.drain()


@pytest.fixture
def booking_service(engine: BookingEngine):
    return engine.booking_service()


@pytest.fixture
def notification_service(engine: BookingEngine):
    return engine.notification_service()


@pytest.fixture
def audit_service(engine: BookingEngine):
    return engine.audit_service()


# ----------------------------------------------------------------------
# Tenants and principals
# ----------------------------------------------------------------------


@pytest.fixture
def tenant_id() -> UUID:
    return uuid4()


@pytest.fixture
def other_tenant_id() -> UUID:
    return uuid4()


@pytest.fixture
def make_principal(tenant_id: UUID) -> Callable[..., Principal]:
    def _make(role: Role = Role.ATTENDEE, tenant: Optional[UUID] = None) -> Principal:
        return Principal(id=uuid4(), role=role, tenant_id=tenant or tenant_id)
    return _make


@pytest.fixture
def organizer(make_principal) -> Principal:
    return make_principal(Role.ORGANIZER)


@pytest.fixture
def admin(make_principal) -> Principal:
    return make_principal(Role.ADMIN)


@pytest.fixture
def attendee(make_principal) -> Principal:
    return make_principal(Role.ATTENDEE)


@pytest.fixture
def second_attendee(make_principal) -> Principal:
    return make_principal(Role.ATTENDEE)


@pytest.fixture
def auth_headers() -> Callable[[Principal], dict]:
    """Authorization headers with a Bearer token for a principal."""
    def _headers(principal: Principal) -> dict:
        return {"Authorization": f"Bearer {create_access_token(principal)}"}
    return _headers


# ----------------------------------------------------------------------
# Events
# ----------------------------------------------------------------------


@pytest.fixture
def make_event(db: DatabaseManager, tenant_id: UUID, organizer: Principal) -> Callable[..., Awaitable[Event]]:
    """Factory inserting an event the way the catalogue would."""

    async def _make(
        capacity: int = 2,
        days_ahead: int = 30,
        tenant: Optional[UUID] = None,
        organizer_id: Optional[UUID] = None,
        title: str = "Test Concert",
    ) -> Event:
        event = Event(
            title=title,
            description="A test event",
            venue="Test Venue",
            date=datetime.now(timezone.utc) + timedelta(days=days_ahead),
            capacity=capacity,
            tenant_id=tenant or tenant_id,
            organizer_id=organizer_id or organizer.id,
        )
        async with db.session() as session:
            session.add(event)
        return event

    return _make


@pytest_asyncio.fixture
async def test_event(make_event) -> Event:
    """Future event with two slots."""
    return await make_event(capacity=2)


@pytest_asyncio.fixture
async def single_slot_event(make_event) -> Event:
    return await make_event(capacity=1, title="Intimate Gig")


@pytest_asyncio.fixture
async def past_event(make_event) -> Event:
    return await make_event(capacity=10, days_ahead=-1, title="Yesterday's Show")


@pytest_asyncio.fixture
async def foreign_event(make_event, other_tenant_id: UUID) -> Event:
    """Event owned by another tenant."""
    return await make_event(capacity=10, tenant=other_tenant_id, organizer_id=uuid4(), title="Elsewhere")


@pytest.fixture
def set_capacity(db: DatabaseManager) -> Callable[[UUID, int], Awaitable[None]]:
    """Change an event's capacity directly, as an organizer edit would."""

    async def _set(event_id: UUID, capacity: int) -> None:
        async with db.session() as session:
            event = await session.get(Event, event_id)
            event.capacity = capacity

    return _set


# ----------------------------------------------------------------------
# HTTP client
# ----------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(engine: BookingEngine) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that routes every service dependency to the test engine."""
    app.dependency_overrides[get_engine] = lambda: engine

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
