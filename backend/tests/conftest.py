"""
Pytest fixtures for test database, client, and seeded flight inventory.

Every test gets its own SQLite file database (aiosqlite) created from the
models and discarded afterwards. Sessions from `session_factory` open separate
connections, which is what the concurrency tests use.
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./flightbook_test.db"
os.environ["REDIS_ENABLED"] = "false"
os.environ["HOLD_SWEEP_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "test"

from datetime import timedelta
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from flightbook.main import app
from flightbook.db.base import Base, utcnow
from flightbook.db.session import build_engine, build_session_factory, get_db
from flightbook.models import Flight, FlightTicketClass, TicketClass
from flightbook.schemas.booking import BookingCreate, PassengerIn
from flightbook.schemas.flight import FlightCreate, InventoryCreate, TicketClassCreate
from flightbook.services import seat_ledger
from flightbook.services.flight_service import create_flight, create_ticket_class
from flightbook.services.notifications import BookingNotifier
from flightbook.services.parameter_service import BookingParameters, ParameterProvider


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Fresh database file per test."""
    test_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'flightbook.db'}")
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(engine)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


class RecordingNotifier(BookingNotifier):
    """Notifier that keeps every event it was asked to send."""

    def __init__(self):
        super().__init__()
        self.events: list[tuple[str, dict]] = []
        self.subscribe(self._record)

    async def _record(self, event: str, payload: dict) -> None:
        self.events.append((event, payload))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def parameter_provider() -> ParameterProvider:
    # No caching: tests change parameters between calls
    return ParameterProvider(ttl_seconds=0)


@pytest_asyncio.fixture(scope="function")
async def client(
    db_session: AsyncSession,
    parameter_provider: ParameterProvider,
    notifier: RecordingNotifier,
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the DB dependency with the test session."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    original_provider = app.state.parameter_provider
    original_notifier = app.state.notifier
    app.state.parameter_provider = parameter_provider
    app.state.notifier = notifier

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    app.state.parameter_provider = original_provider
    app.state.notifier = original_notifier


@pytest.fixture
def params() -> BookingParameters:
    """1 hour minimum advance booking, 24 hour unpaid hold."""
    return BookingParameters.from_minutes(60, 1440)


@pytest_asyncio.fixture
async def economy(db_session: AsyncSession) -> TicketClass:
    ticket_class = await create_ticket_class(
        db_session, TicketClassCreate(name="Economy", seat_prefix="E")
    )
    await db_session.commit()
    return ticket_class


@pytest_asyncio.fixture
async def business(db_session: AsyncSession) -> TicketClass:
    ticket_class = await create_ticket_class(
        db_session, TicketClassCreate(name="Business", seat_prefix="B")
    )
    await db_session.commit()
    return ticket_class


@pytest_asyncio.fixture
async def flight(db_session: AsyncSession) -> Flight:
    """A flight departing in 30 days."""
    created = await create_flight(
        db_session,
        FlightCreate(flight_code="VN123", departure_time=utcnow() + timedelta(days=30)),
    )
    await db_session.commit()
    return created


@pytest_asyncio.fixture
async def inventory(
    db_session: AsyncSession, flight: Flight, economy: TicketClass
) -> FlightTicketClass:
    """5 economy seats at 100.00."""
    created = await seat_ledger.create_inventory(
        db_session,
        flight.id,
        InventoryCreate(ticket_class_id=economy.id, total_tickets=5, fare=Decimal("100.00")),
    )
    await db_session.commit()
    return created


def _make_booking(
    flight_id: int,
    ticket_class_id: int,
    passengers: int = 1,
    seat_numbers=None,
    citizen_prefix: str = "C",
) -> BookingCreate:
    """Booking request with generated passengers C-0, C-1, ..."""
    return BookingCreate(
        flight_id=flight_id,
        ticket_class_id=ticket_class_id,
        customer_id=1,
        passengers=[
            PassengerIn(full_name=f"Passenger {i}", citizen_id=f"{citizen_prefix}-{i}")
            for i in range(passengers)
        ],
        seat_numbers=seat_numbers,
    )


@pytest.fixture
def booking_request():
    """Factory for BookingCreate payloads with generated passengers."""
    return _make_booking
