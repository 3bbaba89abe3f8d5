"""
Flight and ticket-class service handling configuration lookups.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from flightbook.core.exceptions import FlightNotFound, InvalidBookingRequest, TicketClassNotFound
from flightbook.core.logging import get_logger
from flightbook.db.base import utcnow
from flightbook.models.flight import Flight, TicketClass
from flightbook.schemas.flight import FlightCreate, TicketClassCreate

logger = get_logger(__name__)


async def create_flight(
    db: AsyncSession,
    flight_data: FlightCreate,
    now: Optional[datetime] = None,
) -> Flight:
    """Create a flight departing in the future."""
    now = now or utcnow()
    if flight_data.departure_time <= now:
        raise InvalidBookingRequest("Departure time must be in the future")

    flight = Flight(
        flight_code=flight_data.flight_code,
        departure_time=flight_data.departure_time,
    )
    db.add(flight)
    await db.flush()
    await db.refresh(flight)

    logger.info("flight_created", flight_id=flight.id, code=flight.flight_code)
    return flight


async def get_flight(db: AsyncSession, flight_id: int) -> Flight:
    """Get a single active flight by ID."""
    result = await db.execute(
        select(Flight).where(Flight.id == flight_id, Flight.deleted_at.is_(None))
    )
    flight = result.scalar_one_or_none()

    if not flight:
        raise FlightNotFound(f"Flight {flight_id} not found")
    return flight


async def create_ticket_class(db: AsyncSession, class_data: TicketClassCreate) -> TicketClass:
    existing = await db.execute(
        select(TicketClass).where(
            (TicketClass.name == class_data.name) | (TicketClass.seat_prefix == class_data.seat_prefix)
        )
    )
    if existing.scalars().first():
        raise InvalidBookingRequest("Ticket class name or seat prefix already in use")

    ticket_class = TicketClass(name=class_data.name, seat_prefix=class_data.seat_prefix)
    db.add(ticket_class)
    await db.flush()
    await db.refresh(ticket_class)

    logger.info("ticket_class_created", ticket_class_id=ticket_class.id, name=ticket_class.name)
    return ticket_class


async def get_ticket_class(db: AsyncSession, ticket_class_id: int) -> TicketClass:
    result = await db.execute(
        select(TicketClass).where(TicketClass.id == ticket_class_id, TicketClass.deleted_at.is_(None))
    )
    ticket_class = result.scalar_one_or_none()

    if not ticket_class:
        raise TicketClassNotFound(f"Ticket class {ticket_class_id} not found")
    return ticket_class


async def list_ticket_classes(db: AsyncSession) -> list[TicketClass]:
    result = await db.execute(
        select(TicketClass).where(TicketClass.deleted_at.is_(None)).order_by(TicketClass.id)
    )
    return list(result.scalars().all())
