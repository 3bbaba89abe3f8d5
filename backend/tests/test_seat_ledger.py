"""
Tests for the seat ledger: guarded reserve/release and inventory management.
"""

from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from flightbook.core.exceptions import (
    DuplicateInventory,
    FlightNotFound,
    InsufficientInventory,
    InternalConsistencyError,
    InvalidBookingRequest,
    TicketClassNotFound,
)
from flightbook.schemas.flight import InventoryCreate
from flightbook.services import seat_ledger


@pytest.mark.asyncio
async def test_create_inventory_starts_full(db_session: AsyncSession, inventory):
    """A new inventory row has every ticket sellable."""
    assert inventory.total_tickets == 5
    assert inventory.remaining_tickets == 5
    assert inventory.fare == Decimal("100.00")
    assert inventory.ticket_class_name == "Economy"


@pytest.mark.asyncio
async def test_create_inventory_twice_rejected(db_session: AsyncSession, flight, economy, inventory):
    """The same class cannot be added to a flight twice."""
    with pytest.raises(DuplicateInventory):
        await seat_ledger.create_inventory(
            db_session,
            flight.id,
            InventoryCreate(ticket_class_id=economy.id, total_tickets=10, fare=Decimal("50")),
        )


@pytest.mark.asyncio
async def test_create_inventory_unknown_flight(db_session: AsyncSession, economy):
    with pytest.raises(FlightNotFound):
        await seat_ledger.create_inventory(
            db_session,
            99999,
            InventoryCreate(ticket_class_id=economy.id, total_tickets=10, fare=Decimal("50")),
        )


@pytest.mark.asyncio
async def test_reserve_and_release(db_session: AsyncSession, flight, economy, inventory):
    """Reserve takes units, release gives them back."""
    await seat_ledger.reserve(db_session, flight.id, economy.id, 3)
    current = await seat_ledger.get_inventory(db_session, flight.id, economy.id)
    assert current.remaining_tickets == 2

    await seat_ledger.release(db_session, flight.id, economy.id, 2)
    current = await seat_ledger.get_inventory(db_session, flight.id, economy.id)
    assert current.remaining_tickets == 4


@pytest.mark.asyncio
async def test_reserve_more_than_remaining(db_session: AsyncSession, flight, economy, inventory):
    """Reserving past zero is rejected and changes nothing."""
    await seat_ledger.reserve(db_session, flight.id, economy.id, 4)

    with pytest.raises(InsufficientInventory) as exc_info:
        await seat_ledger.reserve(db_session, flight.id, economy.id, 2)
    assert "Requested: 2, Available: 1" in exc_info.value.message

    current = await seat_ledger.get_inventory(db_session, flight.id, economy.id)
    assert current.remaining_tickets == 1


@pytest.mark.asyncio
async def test_reserve_exact_remaining(db_session: AsyncSession, flight, economy, inventory):
    await seat_ledger.reserve(db_session, flight.id, economy.id, 5)
    current = await seat_ledger.get_inventory(db_session, flight.id, economy.id)
    assert current.remaining_tickets == 0


@pytest.mark.asyncio
async def test_reserve_non_positive_count(db_session: AsyncSession, flight, economy, inventory):
    with pytest.raises(InvalidBookingRequest):
        await seat_ledger.reserve(db_session, flight.id, economy.id, 0)


@pytest.mark.asyncio
async def test_release_past_total_is_reported(db_session: AsyncSession, flight, economy, inventory):
    """Releasing more than was reserved is a consistency error, never clamped."""
    await seat_ledger.reserve(db_session, flight.id, economy.id, 1)

    with pytest.raises(InternalConsistencyError):
        await seat_ledger.release(db_session, flight.id, economy.id, 2)

    current = await seat_ledger.get_inventory(db_session, flight.id, economy.id)
    assert current.remaining_tickets == 4


@pytest.mark.asyncio
async def test_reserve_unknown_class(db_session: AsyncSession, flight, business, inventory):
    """A class that was never added to the flight is not found."""
    with pytest.raises(TicketClassNotFound):
        await seat_ledger.reserve(db_session, flight.id, business.id, 1)


@pytest.mark.asyncio
async def test_deleted_inventory_not_sellable(db_session: AsyncSession, flight, economy, inventory):
    """Soft-deleted inventory rejects reservations but still accepts releases."""
    await seat_ledger.reserve(db_session, flight.id, economy.id, 1)
    await seat_ledger.delete_inventory(db_session, flight.id, economy.id)

    with pytest.raises(TicketClassNotFound):
        await seat_ledger.reserve(db_session, flight.id, economy.id, 1)

    await seat_ledger.release(db_session, flight.id, economy.id, 1)
    current = await seat_ledger.get_inventory(db_session, flight.id, economy.id, include_deleted=True)
    assert current.remaining_tickets == 5
    assert await seat_ledger.list_inventory(db_session, flight.id) == []


@pytest.mark.asyncio
async def test_update_fare(db_session: AsyncSession, flight, economy, inventory):
    await seat_ledger.update_fare(db_session, flight.id, economy.id, Decimal("120.50"))
    assert await seat_ledger.get_fare(db_session, flight.id, economy.id) == Decimal("120.50")


@pytest.mark.asyncio
async def test_list_available_inventory(db_session: AsyncSession, flight, economy, business, inventory):
    """Sold-out classes drop out of the available listing but stay in the full one."""
    await seat_ledger.create_inventory(
        db_session, flight.id, InventoryCreate(ticket_class_id=business.id, total_tickets=2, fare=Decimal("400"))
    )
    await seat_ledger.reserve(db_session, flight.id, economy.id, 5)

    available = await seat_ledger.list_inventory(db_session, flight.id, available_only=True)
    assert [i.ticket_class_id for i in available] == [business.id]
    assert len(await seat_ledger.list_inventory(db_session, flight.id)) == 2
