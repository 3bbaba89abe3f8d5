"""
Tests for payment: UNPAID -> PAID by booking or by ticket, and idempotency.
"""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from flightbook.core.exceptions import (
    ConfirmationCodeNotFound,
    InvalidStateTransition,
    TicketNotFound,
)
from flightbook.db.base import utcnow
from flightbook.models import TicketStatus
from flightbook.services import seat_ledger
from flightbook.services.booking_service import (
    book_tickets,
    cancel_ticket,
    get_booking_tickets,
    pay_booking,
    pay_ticket,
)


@pytest.mark.asyncio
async def test_pay_booking(db_session: AsyncSession, flight, economy, inventory, params, booking_request):
    """Paying a booking marks every ticket PAID with the order id."""
    booking = await book_tickets(db_session, booking_request(flight.id, economy.id, passengers=2), params)
    paid_at = utcnow()

    tickets = await pay_booking(db_session, booking.confirmation_code, "ORD-1", now=paid_at)

    assert [t.status for t in tickets] == [TicketStatus.PAID, TicketStatus.PAID]
    assert all(t.order_id == "ORD-1" for t in tickets)
    assert all(t.payment_time == paid_at for t in tickets)
    # Payment does not move the ledger
    current = await seat_ledger.get_inventory(db_session, flight.id, economy.id)
    assert current.remaining_tickets == 3


@pytest.mark.asyncio
async def test_pay_booking_twice_same_order_is_noop(
    db_session: AsyncSession, flight, economy, inventory, params, booking_request
):
    """A redelivered payment callback changes nothing."""
    booking = await book_tickets(db_session, booking_request(flight.id, economy.id), params)
    first = await pay_booking(db_session, booking.confirmation_code, "ORD-1")
    second = await pay_booking(db_session, booking.confirmation_code, "ORD-1")

    assert second[0].status == TicketStatus.PAID
    assert second[0].payment_time == first[0].payment_time


@pytest.mark.asyncio
async def test_pay_booking_twice_different_order_rejected(
    db_session: AsyncSession, flight, economy, inventory, params, booking_request
):
    booking = await book_tickets(db_session, booking_request(flight.id, economy.id), params)
    await pay_booking(db_session, booking.confirmation_code, "ORD-1")

    with pytest.raises(InvalidStateTransition):
        await pay_booking(db_session, booking.confirmation_code, "ORD-2")


@pytest.mark.asyncio
async def test_pay_unknown_booking(db_session: AsyncSession, inventory):
    with pytest.raises(ConfirmationCodeNotFound):
        await pay_booking(db_session, "FMS-20260101-NOPE00", "ORD-1")


@pytest.mark.asyncio
async def test_pay_cancelled_booking_rejected(
    db_session: AsyncSession, flight, economy, inventory, params, booking_request
):
    """A booking whose tickets were all cancelled cannot be paid."""
    booking = await book_tickets(db_session, booking_request(flight.id, economy.id), params)
    await cancel_ticket(db_session, booking.tickets[0].id)

    with pytest.raises(InvalidStateTransition):
        await pay_booking(db_session, booking.confirmation_code, "ORD-1")


@pytest.mark.asyncio
async def test_pay_booking_skips_closed_tickets(
    db_session: AsyncSession, flight, economy, inventory, params, booking_request
):
    """Only the tickets still UNPAID are paid; cancelled ones stay cancelled."""
    booking = await book_tickets(db_session, booking_request(flight.id, economy.id, passengers=2), params)
    await cancel_ticket(db_session, booking.tickets[0].id)

    tickets = await pay_booking(db_session, booking.confirmation_code, "ORD-1")
    assert [t.status for t in tickets] == [TicketStatus.CANCELLED, TicketStatus.PAID]


@pytest.mark.asyncio
async def test_pay_ticket(db_session: AsyncSession, flight, economy, inventory, params, booking_request):
    booking = await book_tickets(db_session, booking_request(flight.id, economy.id, passengers=2), params)

    ticket = await pay_ticket(db_session, booking.tickets[1].id, "ORD-9")
    assert ticket.status == TicketStatus.PAID

    tickets = await get_booking_tickets(db_session, booking.confirmation_code)
    assert [t.status for t in tickets] == [TicketStatus.UNPAID, TicketStatus.PAID]

    again = await pay_ticket(db_session, booking.tickets[1].id, "ORD-9")
    assert again.payment_time == ticket.payment_time


@pytest.mark.asyncio
async def test_pay_cancelled_ticket(
    db_session: AsyncSession, flight, economy, inventory, params, booking_request
):
    """A ticket that is no longer UNPAID cannot be paid."""
    booking = await book_tickets(db_session, booking_request(flight.id, economy.id), params)
    await cancel_ticket(db_session, booking.tickets[0].id)

    with pytest.raises(InvalidStateTransition):
        await pay_ticket(db_session, booking.tickets[0].id, "ORD-1")


@pytest.mark.asyncio
async def test_pay_unknown_ticket(db_session: AsyncSession, inventory):
    with pytest.raises(TicketNotFound):
        await pay_ticket(db_session, 99999, "ORD-1")
