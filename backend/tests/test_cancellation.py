"""
Tests for ticket and booking cancellation and seat release.
"""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from flightbook.core.exceptions import ConfirmationCodeNotFound, TicketNotFound
from flightbook.models import TicketStatus
from flightbook.services import seat_ledger
from flightbook.services.booking_service import (
    book_tickets,
    cancel_booking,
    cancel_ticket,
    is_seat_available,
    pay_booking,
)


async def _remaining(db: AsyncSession, flight_id: int, ticket_class_id: int) -> int:
    current = await seat_ledger.get_inventory(db, flight_id, ticket_class_id)
    return current.remaining_tickets


@pytest.mark.asyncio
async def test_cancel_unpaid_ticket(db_session: AsyncSession, flight, economy, inventory, params, booking_request):
    """Cancelling releases the seat unit and the seat number."""
    booking = await book_tickets(db_session, booking_request(flight.id, economy.id), params)
    assert await _remaining(db_session, flight.id, economy.id) == 4

    ticket = await cancel_ticket(db_session, booking.tickets[0].id)

    assert ticket.status == TicketStatus.CANCELLED
    assert ticket.closed_at is not None
    assert await _remaining(db_session, flight.id, economy.id) == 5
    assert await is_seat_available(db_session, flight.id, "E01")


@pytest.mark.asyncio
async def test_cancel_paid_ticket(db_session: AsyncSession, flight, economy, inventory, params, booking_request):
    booking = await book_tickets(db_session, booking_request(flight.id, economy.id), params)
    await pay_booking(db_session, booking.confirmation_code, "ORD-1")

    ticket = await cancel_ticket(db_session, booking.tickets[0].id)

    assert ticket.status == TicketStatus.CANCELLED
    assert await _remaining(db_session, flight.id, economy.id) == 5


@pytest.mark.asyncio
async def test_cancel_twice_releases_once(
    db_session: AsyncSession, flight, economy, inventory, params, booking_request
):
    """A second cancel is a no-op and does not release again."""
    first = await book_tickets(db_session, booking_request(flight.id, economy.id, citizen_prefix="A"), params)
    await book_tickets(db_session, booking_request(flight.id, economy.id, citizen_prefix="B"), params)

    await cancel_ticket(db_session, first.tickets[0].id)
    ticket = await cancel_ticket(db_session, first.tickets[0].id)

    assert ticket.status == TicketStatus.CANCELLED
    assert await _remaining(db_session, flight.id, economy.id) == 4


@pytest.mark.asyncio
async def test_released_seat_can_be_rebooked(
    db_session: AsyncSession, flight, economy, inventory, params, booking_request
):
    booking = await book_tickets(
        db_session, booking_request(flight.id, economy.id, seat_numbers=["E03"], citizen_prefix="A"), params
    )
    await cancel_ticket(db_session, booking.tickets[0].id)

    rebooked = await book_tickets(
        db_session, booking_request(flight.id, economy.id, seat_numbers=["E03"], citizen_prefix="B"), params
    )
    assert rebooked.tickets[0].seat_number == "E03"
    assert await _remaining(db_session, flight.id, economy.id) == 4


@pytest.mark.asyncio
async def test_cancel_booking(db_session: AsyncSession, flight, economy, inventory, params, booking_request):
    """Cancelling a booking closes every live ticket in it."""
    booking = await book_tickets(db_session, booking_request(flight.id, economy.id, passengers=3), params)
    await cancel_ticket(db_session, booking.tickets[0].id)

    tickets = await cancel_booking(db_session, booking.confirmation_code)

    assert all(t.status == TicketStatus.CANCELLED for t in tickets)
    assert await _remaining(db_session, flight.id, economy.id) == 5

    # Repeating it changes nothing
    await cancel_booking(db_session, booking.confirmation_code)
    assert await _remaining(db_session, flight.id, economy.id) == 5


@pytest.mark.asyncio
async def test_cancel_unknown(db_session: AsyncSession, inventory):
    with pytest.raises(TicketNotFound):
        await cancel_ticket(db_session, 99999)
    with pytest.raises(ConfirmationCodeNotFound):
        await cancel_booking(db_session, "FMS-20260101-NOPE00")
