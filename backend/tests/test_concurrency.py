"""
Concurrent bookings on separate sessions: no oversell, no shared seats.
"""

import asyncio
from collections import Counter

import pytest
from sqlalchemy import select

from flightbook.core.exceptions import BookingError, InsufficientInventory, SeatConflict
from flightbook.models import Ticket, TicketStatus
from flightbook.services import seat_ledger
from flightbook.services.booking_service import book_tickets, cancel_ticket


async def _attempt(session_factory, request, params):
    """One booking in its own session and transaction, like one API request."""
    async with session_factory() as db:
        try:
            result = await book_tickets(db, request, params)
            await db.commit()
            return result
        except BookingError as e:
            await db.rollback()
            return e


@pytest.mark.asyncio
async def test_concurrent_bookings_never_oversell(
    session_factory, flight, economy, inventory, params, booking_request
):
    """8 single-seat bookings race for 5 seats: exactly 5 win."""
    requests = [booking_request(flight.id, economy.id, citizen_prefix=f"P{i}") for i in range(8)]

    outcomes = await asyncio.gather(*(_attempt(session_factory, r, params) for r in requests))

    failures = [o for o in outcomes if isinstance(o, BookingError)]
    successes = [o for o in outcomes if not isinstance(o, BookingError)]
    assert len(successes) == 5
    assert all(isinstance(f, InsufficientInventory) for f in failures)

    async with session_factory() as db:
        current = await seat_ledger.get_inventory(db, flight.id, economy.id)
        assert current.remaining_tickets == 0
        result = await db.execute(select(Ticket.seat_number).where(Ticket.status == TicketStatus.UNPAID))
        seats = list(result.scalars().all())

    assert sorted(seats) == ["E01", "E02", "E03", "E04", "E05"]


@pytest.mark.asyncio
async def test_concurrent_multi_passenger_bookings(
    session_factory, flight, economy, inventory, params, booking_request
):
    """Bookings of 2 race for 5 seats: two win, the rest get nothing at all."""
    requests = [
        booking_request(flight.id, economy.id, passengers=2, citizen_prefix=f"P{i}") for i in range(4)
    ]

    outcomes = await asyncio.gather(*(_attempt(session_factory, r, params) for r in requests))

    successes = [o for o in outcomes if not isinstance(o, BookingError)]
    assert len(successes) == 2

    async with session_factory() as db:
        current = await seat_ledger.get_inventory(db, flight.id, economy.id)
        result = await db.execute(select(Ticket.confirmation_code))
        codes = Counter(result.scalars().all())

    assert current.remaining_tickets == 1
    # Every booking that left tickets behind left both of them
    assert sorted(codes.values()) == [2, 2]


@pytest.mark.asyncio
async def test_concurrent_requests_for_same_seat(
    session_factory, flight, economy, inventory, params, booking_request
):
    """Two bookings asking for E03: one gets it, the other is a conflict."""
    requests = [
        booking_request(flight.id, economy.id, seat_numbers=["E03"], citizen_prefix=f"P{i}") for i in range(2)
    ]

    outcomes = await asyncio.gather(*(_attempt(session_factory, r, params) for r in requests))

    assert sum(isinstance(o, SeatConflict) for o in outcomes) == 1
    async with session_factory() as db:
        current = await seat_ledger.get_inventory(db, flight.id, economy.id)
    assert current.remaining_tickets == 4


@pytest.mark.asyncio
async def test_ledger_matches_live_tickets_after_mixed_traffic(
    session_factory, flight, economy, inventory, params, booking_request
):
    """remaining == total - live tickets after bookings and cancellations interleave."""
    first = await _attempt(session_factory, booking_request(flight.id, economy.id, passengers=2, citizen_prefix="A"), params)

    async def cancel(ticket_id):
        async with session_factory() as db:
            await cancel_ticket(db, ticket_id)
            await db.commit()

    await asyncio.gather(
        cancel(first.tickets[0].id),
        cancel(first.tickets[0].id),
        _attempt(session_factory, booking_request(flight.id, economy.id, passengers=3, citizen_prefix="B"), params),
        _attempt(session_factory, booking_request(flight.id, economy.id, citizen_prefix="C"), params),
    )

    async with session_factory() as db:
        current = await seat_ledger.get_inventory(db, flight.id, economy.id)
        result = await db.execute(
            select(Ticket.id).where(Ticket.status.in_([TicketStatus.UNPAID, TicketStatus.PAID]))
        )
        live = len(result.scalars().all())

    assert current.remaining_tickets == current.total_tickets - live
