"""
Ticket endpoints: filtered listings, lookup, payment and cancellation.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from flightbook.api.deps import get_notifier
from flightbook.db.session import get_db
from flightbook.models.ticket import TicketStatus
from flightbook.schemas.booking import PaymentRequest, TicketResponse
from flightbook.services.booking_service import (
    cancel_ticket,
    get_ticket,
    get_tickets_by_customer,
    get_tickets_by_flight,
    get_tickets_by_passenger,
    get_tickets_by_status,
    pay_ticket,
)
from flightbook.services.cache_service import invalidate_inventory_cache
from flightbook.services.notifications import BOOKING_PAID, TICKET_CANCELLED, BookingNotifier

router = APIRouter(prefix="/tickets", tags=["Tickets"])


@router.get("/", response_model=list[TicketResponse])
async def list_tickets_by_status(
    ticket_status: TicketStatus = Query(..., alias="status"),
    db: AsyncSession = Depends(get_db),
):
    return await get_tickets_by_status(db, ticket_status)


@router.get("/flight/{flight_id}", response_model=list[TicketResponse])
async def list_flight_tickets(flight_id: int, db: AsyncSession = Depends(get_db)):
    """Every ticket issued on a flight, closed ones included."""
    return await get_tickets_by_flight(db, flight_id)


@router.get("/customer/{customer_id}", response_model=list[TicketResponse])
async def list_customer_tickets(customer_id: int, db: AsyncSession = Depends(get_db)):
    return await get_tickets_by_customer(db, customer_id)


@router.get("/passenger/{passenger_id}", response_model=list[TicketResponse])
async def list_passenger_tickets(passenger_id: int, db: AsyncSession = Depends(get_db)):
    return await get_tickets_by_passenger(db, passenger_id)


@router.get("/{ticket_id}", response_model=TicketResponse)
async def get_ticket_endpoint(ticket_id: int, db: AsyncSession = Depends(get_db)):
    return await get_ticket(db, ticket_id)


@router.post("/{ticket_id}/pay", response_model=TicketResponse)
async def pay_ticket_endpoint(
    ticket_id: int,
    payment: PaymentRequest,
    db: AsyncSession = Depends(get_db),
    notifier: BookingNotifier = Depends(get_notifier),
):
    ticket = await pay_ticket(db, ticket_id, payment.order_id)
    await db.commit()
    await notifier.notify(BOOKING_PAID, ticket_id=ticket.id, order_id=payment.order_id)
    return ticket


@router.post("/{ticket_id}/cancel", response_model=TicketResponse)
async def cancel_ticket_endpoint(
    ticket_id: int,
    db: AsyncSession = Depends(get_db),
    notifier: BookingNotifier = Depends(get_notifier),
):
    """Cancel an UNPAID or PAID ticket. Repeating the call is harmless."""
    ticket = await cancel_ticket(db, ticket_id)
    await db.commit()
    await notifier.notify(TICKET_CANCELLED, ticket_id=ticket.id, confirmation_code=ticket.confirmation_code)
    await invalidate_inventory_cache(ticket.flight_id)
    return ticket
