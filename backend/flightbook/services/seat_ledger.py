"""
Seat ledger: per (flight, ticket class) counters of sellable seats.

CONCURRENCY STRATEGY: Guarded Conditional Update
================================================

Problem:
  Two bookings read remaining_tickets=1 and both decrement it.
  Result: oversell.

Solution:
  Every mutation of remaining_tickets is a single UPDATE whose WHERE clause
  carries the guard:

    reserve:  UPDATE ... SET remaining = remaining - :n
              WHERE key AND remaining >= :n AND deleted_at IS NULL
    release:  UPDATE ... SET remaining = remaining + :n
              WHERE key AND remaining + :n <= total

  If rows_affected == 0 the guard failed. No read-modify-write window exists,
  so concurrent reservations can never drive remaining below zero. On
  PostgreSQL the UPDATE row lock is held until commit, which also serializes
  the rest of a booking transaction per (flight, class).

  CHECK constraints on the table are the final safety net.

Only the booking service and the hold-expiry sweeper call reserve/release.
"""

from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from flightbook.core.exceptions import (
    DuplicateInventory,
    InsufficientInventory,
    InternalConsistencyError,
    InvalidBookingRequest,
    TicketClassNotFound,
)
from flightbook.core.logging import get_logger
from flightbook.core.metrics import record_ledger_operation
from flightbook.db.base import utcnow
from flightbook.models.inventory import FlightTicketClass
from flightbook.schemas.flight import InventoryCreate
from flightbook.services.flight_service import get_flight, get_ticket_class

logger = get_logger(__name__)


def _key(flight_id: int, ticket_class_id: int):
    return (
        FlightTicketClass.flight_id == flight_id,
        FlightTicketClass.ticket_class_id == ticket_class_id,
    )


async def get_inventory(
    db: AsyncSession,
    flight_id: int,
    ticket_class_id: int,
    include_deleted: bool = False,
) -> FlightTicketClass:
    """Fresh read of one inventory row (bypasses identity-map state)."""
    query = (
        select(FlightTicketClass)
        .where(*_key(flight_id, ticket_class_id))
        .execution_options(populate_existing=True)
    )
    if not include_deleted:
        query = query.where(FlightTicketClass.deleted_at.is_(None))

    result = await db.execute(query)
    inventory = result.scalar_one_or_none()
    if not inventory:
        raise TicketClassNotFound(
            f"Ticket class {ticket_class_id} is not offered on flight {flight_id}"
        )
    return inventory


async def list_inventory(
    db: AsyncSession, flight_id: int, available_only: bool = False
) -> list[FlightTicketClass]:
    """Active classes on a flight; with available_only, just those with seats left."""
    query = select(FlightTicketClass).where(
        FlightTicketClass.flight_id == flight_id, FlightTicketClass.deleted_at.is_(None)
    )
    if available_only:
        query = query.where(FlightTicketClass.remaining_tickets > 0)
    result = await db.execute(
        query
        .order_by(FlightTicketClass.ticket_class_id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().unique().all())


async def get_fare(db: AsyncSession, flight_id: int, ticket_class_id: int) -> Decimal:
    """Current fare, for display. Bookings snapshot it onto each ticket."""
    inventory = await get_inventory(db, flight_id, ticket_class_id)
    return inventory.fare


async def create_inventory(
    db: AsyncSession,
    flight_id: int,
    data: InventoryCreate,
) -> FlightTicketClass:
    """Offer a ticket class on a flight. All tickets start out sellable."""
    await get_flight(db, flight_id)
    await get_ticket_class(db, data.ticket_class_id)

    existing = await db.execute(
        select(FlightTicketClass).where(*_key(flight_id, data.ticket_class_id))
    )
    if existing.scalars().first():
        raise DuplicateInventory(
            f"Ticket class {data.ticket_class_id} has already been added to flight {flight_id}"
        )

    inventory = FlightTicketClass(
        flight_id=flight_id,
        ticket_class_id=data.ticket_class_id,
        total_tickets=data.total_tickets,
        remaining_tickets=data.total_tickets,
        fare=data.fare,
    )
    db.add(inventory)
    await db.flush()

    logger.info(
        "inventory_created",
        flight_id=flight_id,
        ticket_class_id=data.ticket_class_id,
        total=data.total_tickets,
        fare=str(data.fare),
    )
    return await get_inventory(db, flight_id, data.ticket_class_id)


async def update_fare(
    db: AsyncSession,
    flight_id: int,
    ticket_class_id: int,
    fare: Decimal,
) -> FlightTicketClass:
    """Change the fare for future bookings. Issued tickets keep their snapshot."""
    inventory = await get_inventory(db, flight_id, ticket_class_id)
    old_fare = inventory.fare
    inventory.fare = fare
    await db.flush()

    logger.info(
        "inventory_fare_updated",
        flight_id=flight_id,
        ticket_class_id=ticket_class_id,
        old_fare=str(old_fare),
        new_fare=str(fare),
    )
    return inventory


async def delete_inventory(db: AsyncSession, flight_id: int, ticket_class_id: int) -> None:
    """Soft delete: the class stops being sellable, existing tickets stay valid."""
    inventory = await get_inventory(db, flight_id, ticket_class_id)
    inventory.deleted_at = utcnow()
    await db.flush()
    logger.info("inventory_deleted", flight_id=flight_id, ticket_class_id=ticket_class_id)


async def reserve(db: AsyncSession, flight_id: int, ticket_class_id: int, count: int) -> None:
    """
    Atomically take `count` units from remaining_tickets.
    Raises InsufficientInventory when fewer than `count` remain.
    """
    if count <= 0:
        raise InvalidBookingRequest("Reservation count must be positive")

    result = await db.execute(
        update(FlightTicketClass)
        .where(
            *_key(flight_id, ticket_class_id),
            FlightTicketClass.deleted_at.is_(None),
            FlightTicketClass.remaining_tickets >= count,
        )
        .values(remaining_tickets=FlightTicketClass.remaining_tickets - count)
        .execution_options(synchronize_session=False)
    )

    if result.rowcount == 0:
        record_ledger_operation("reserve", ok=False)
        # Raises TicketClassNotFound if the row itself is gone
        inventory = await get_inventory(db, flight_id, ticket_class_id)
        logger.warning(
            "ledger_reserve_rejected",
            flight_id=flight_id,
            ticket_class_id=ticket_class_id,
            requested=count,
            available=inventory.remaining_tickets,
        )
        raise InsufficientInventory(
            f"Not enough tickets available. Requested: {count}, "
            f"Available: {inventory.remaining_tickets}"
        )

    record_ledger_operation("reserve", ok=True)
    logger.debug(
        "ledger_reserved", flight_id=flight_id, ticket_class_id=ticket_class_id, count=count
    )


async def release(db: AsyncSession, flight_id: int, ticket_class_id: int, count: int) -> None:
    """
    Return `count` units to remaining_tickets.

    A release that would push remaining above total means a ticket was
    released twice or never reserved. That is reported, never clamped.
    Releases apply to soft-deleted inventory too.
    """
    if count <= 0:
        raise InvalidBookingRequest("Release count must be positive")

    result = await db.execute(
        update(FlightTicketClass)
        .where(
            *_key(flight_id, ticket_class_id),
            FlightTicketClass.remaining_tickets + count <= FlightTicketClass.total_tickets,
        )
        .values(remaining_tickets=FlightTicketClass.remaining_tickets + count)
        .execution_options(synchronize_session=False)
    )

    if result.rowcount == 0:
        record_ledger_operation("release", ok=False)
        logger.critical(
            "ledger_release_overflow",
            flight_id=flight_id,
            ticket_class_id=ticket_class_id,
            count=count,
        )
        raise InternalConsistencyError(
            f"Release of {count} seat(s) on flight {flight_id} class {ticket_class_id} "
            f"would exceed total or inventory is missing"
        )

    record_ledger_operation("release", ok=True)
    logger.debug(
        "ledger_released", flight_id=flight_id, ticket_class_id=ticket_class_id, count=count
    )
