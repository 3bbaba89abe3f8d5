"""
Booking service: seat allocation, ticket issue, payment and cancellation.

TRANSACTION STRATEGY: One Savepoint per Booking
===============================================

A booking is:
  1. validate (flight, booking window, class inventory, requested seats)
  2. reserve N units in the seat ledger (guarded conditional UPDATE)
  3. generate one confirmation code
  4. insert N UNPAID tickets, each with a seat and the current fare

Steps 2-4 run inside a SAVEPOINT. Any failure rolls back the ledger
decrement together with every ticket already inserted, so a booking either
fully happens or leaves no trace, even when the caller keeps using the
session afterwards.

Seat uniqueness is enforced by a partial unique index over live tickets on
(flight_id, seat_number). Each ticket insert runs in its own nested
SAVEPOINT: if a concurrent booking wins the seat, the index violation is
caught and an auto-allocated seat is retried with a fresh candidate
(SEAT_CONFLICT_RETRIES times). A caller-chosen seat is never substituted.

Status changes are conditional UPDATEs on the current status, so payment,
cancellation and the hold-expiry sweeper can race freely: exactly one of them
moves a given ticket, and only the one that moved it releases its seat.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from flightbook.core.config import get_settings
from flightbook.core.exceptions import (
    BookingError,
    BookingWindowViolation,
    ConfirmationCodeNotFound,
    InternalConsistencyError,
    InvalidBookingRequest,
    InvalidStateTransition,
    SeatConflict,
    TicketNotFound,
)
from flightbook.core.logging import get_logger
from flightbook.core.metrics import (
    booking_latency,
    record_booking_attempt,
    record_transition,
    seat_conflicts,
)
from flightbook.db.base import utcnow
from flightbook.models.flight import Flight, TicketClass
from flightbook.models.inventory import FlightTicketClass
from flightbook.models.ticket import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    Passenger,
    Ticket,
    TicketStatus,
)
from flightbook.schemas.booking import BookingCreate, PassengerIn
from flightbook.services import seat_ledger
from flightbook.services.confirmation_code import generate_confirmation_code
from flightbook.services.flight_service import get_flight
from flightbook.services.parameter_service import BookingParameters

logger = get_logger(__name__)
settings = get_settings()


@dataclass
class BookingResult:
    confirmation_code: str
    tickets: list[Ticket] = field(default_factory=list)

    @property
    def total_fare(self) -> Decimal:
        return sum((t.fare for t in self.tickets), Decimal("0"))


def seat_labels(ticket_class: TicketClass, total_tickets: int) -> list[str]:
    """Seat labels of a class in allocation order: E01, E02, ..."""
    return [ticket_class.seat_label(i) for i in range(1, total_tickets + 1)]


async def _occupied_seats(
    db: AsyncSession,
    flight_id: int,
    seat_numbers: Optional[Iterable[str]] = None,
) -> set[str]:
    query = select(Ticket.seat_number).where(
        Ticket.flight_id == flight_id,
        Ticket.status.in_(ACTIVE_STATUSES),
    )
    if seat_numbers is not None:
        query = query.where(Ticket.seat_number.in_(list(seat_numbers)))
    result = await db.execute(query)
    return set(result.scalars().all())


async def is_seat_available(db: AsyncSession, flight_id: int, seat_number: str) -> bool:
    """True when no UNPAID/PAID ticket holds the seat on this flight."""
    occupied = await _occupied_seats(db, flight_id, [seat_number.strip().upper()])
    return not occupied


async def _next_free_seat(
    db: AsyncSession,
    flight_id: int,
    inventory: FlightTicketClass,
    excluded: set[str],
) -> str:
    """Lowest free label in the class range that this call has not used yet."""
    occupied = await _occupied_seats(db, flight_id)
    for label in seat_labels(inventory.ticket_class, inventory.total_tickets):
        if label not in occupied and label not in excluded:
            return label

    # A successful reservation guarantees a free label unless the ledger drifted
    logger.critical(
        "seat_range_exhausted",
        flight_id=flight_id,
        ticket_class_id=inventory.ticket_class_id,
        remaining=inventory.remaining_tickets,
    )
    raise InternalConsistencyError(
        f"No free seat label left on flight {flight_id} class {inventory.ticket_class_id}"
    )


async def _get_or_create_passenger(db: AsyncSession, data: PassengerIn) -> Passenger:
    result = await db.execute(select(Passenger).where(Passenger.citizen_id == data.citizen_id))
    passenger = result.scalar_one_or_none()
    if passenger:
        return passenger

    passenger = Passenger(**data.model_dump())
    try:
        async with db.begin_nested():
            db.add(passenger)
            await db.flush()
    except IntegrityError:
        # Created by a concurrent booking in the meantime
        result = await db.execute(select(Passenger).where(Passenger.citizen_id == data.citizen_id))
        return result.scalar_one()
    return passenger


async def _issue_ticket(
    db: AsyncSession,
    flight: Flight,
    inventory: FlightTicketClass,
    passenger: Passenger,
    customer_id: Optional[int],
    confirmation_code: str,
    requested_seat: Optional[str],
    excluded: set[str],
    now: datetime,
) -> Ticket:
    conflicts = 0
    while True:
        seat = requested_seat or await _next_free_seat(db, flight.id, inventory, excluded)
        ticket = Ticket(
            flight_id=flight.id,
            ticket_class_id=inventory.ticket_class_id,
            passenger_id=passenger.id,
            booking_customer_id=customer_id,
            seat_number=seat,
            status=TicketStatus.UNPAID,
            fare=inventory.fare,
            confirmation_code=confirmation_code,
            booked_at=now,
        )
        try:
            async with db.begin_nested():
                db.add(ticket)
                await db.flush()
        except IntegrityError:
            if requested_seat is not None or conflicts >= settings.SEAT_CONFLICT_RETRIES:
                seat_conflicts.labels(outcome="surfaced").inc()
                logger.warning("seat_conflict", flight_id=flight.id, seat=seat)
                raise SeatConflict(
                    f"Seat {seat} on flight {flight.id} was taken by a concurrent booking"
                )
            conflicts += 1
            excluded.add(seat)
            seat_conflicts.labels(outcome="retried").inc()
            logger.info("seat_conflict_retry", flight_id=flight.id, seat=seat, attempt=conflicts)
            continue

        excluded.add(seat)
        return ticket


async def _validate_requested_seats(
    db: AsyncSession,
    flight_id: int,
    inventory: FlightTicketClass,
    seat_numbers: list[str],
) -> None:
    valid = set(seat_labels(inventory.ticket_class, inventory.total_tickets))
    outside = [seat for seat in seat_numbers if seat not in valid]
    if outside:
        raise InvalidBookingRequest(
            f"Seat(s) {', '.join(outside)} do not belong to ticket class "
            f"{inventory.ticket_class_id} on flight {flight_id}"
        )

    taken = await _occupied_seats(db, flight_id, seat_numbers)
    if taken:
        raise SeatConflict(f"Seat(s) {', '.join(sorted(taken))} already taken")


async def book_tickets(
    db: AsyncSession,
    request: BookingCreate,
    params: BookingParameters,
    now: Optional[datetime] = None,
) -> BookingResult:
    """
    Book one ticket per passenger on a flight/class, all-or-nothing.

    Raises FlightNotFound, TicketClassNotFound, BookingWindowViolation,
    InvalidBookingRequest, SeatConflict or InsufficientInventory. None of
    them leave a ledger decrement or ticket behind.
    """
    now = now or utcnow()
    start_time = time.perf_counter()
    try:
        result = await _book(db, request, params, now)
    except BookingError:
        record_booking_attempt("rejected")
        raise
    except Exception:
        record_booking_attempt("error")
        raise

    record_booking_attempt("success")
    booking_latency.observe(time.perf_counter() - start_time)
    return result


async def _book(
    db: AsyncSession,
    request: BookingCreate,
    params: BookingParameters,
    now: datetime,
) -> BookingResult:
    passenger_count = len(request.passengers)
    if passenger_count < 1:
        raise InvalidBookingRequest("At least one passenger is required")

    flight = await get_flight(db, request.flight_id)
    booking_deadline = flight.departure_time - params.min_booking_in_advance
    if now >= booking_deadline:
        raise BookingWindowViolation(
            f"Flight {flight.id} departs at {flight.departure_time.isoformat()}; bookings close "
            f"{params.min_booking_in_advance_duration} minutes before departure"
        )

    inventory = await seat_ledger.get_inventory(db, flight.id, request.ticket_class_id)

    seat_numbers = request.seat_numbers or None
    if seat_numbers:
        await _validate_requested_seats(db, flight.id, inventory, seat_numbers)

    async with db.begin_nested():
        await seat_ledger.reserve(db, flight.id, request.ticket_class_id, passenger_count)
        confirmation_code = await generate_confirmation_code(db, now)

        excluded: set[str] = set(seat_numbers or [])
        tickets: list[Ticket] = []
        for index, passenger_data in enumerate(request.passengers):
            passenger = await _get_or_create_passenger(db, passenger_data)
            ticket = await _issue_ticket(
                db,
                flight,
                inventory,
                passenger,
                request.customer_id,
                confirmation_code,
                seat_numbers[index] if seat_numbers else None,
                excluded,
                now,
            )
            tickets.append(ticket)

    record_transition(TicketStatus.UNPAID.value, len(tickets))
    logger.info(
        "booking_created",
        confirmation_code=confirmation_code,
        flight_id=flight.id,
        ticket_class_id=request.ticket_class_id,
        customer_id=request.customer_id,
        seats=[t.seat_number for t in tickets],
    )
    return BookingResult(confirmation_code=confirmation_code, tickets=tickets)


async def get_ticket(db: AsyncSession, ticket_id: int) -> Ticket:
    result = await db.execute(
        select(Ticket).where(Ticket.id == ticket_id).execution_options(populate_existing=True)
    )
    ticket = result.scalar_one_or_none()
    if not ticket:
        raise TicketNotFound(f"Ticket {ticket_id} not found")
    return ticket


async def get_booking_tickets(db: AsyncSession, confirmation_code: str) -> list[Ticket]:
    """All tickets issued under a confirmation code, in issue order."""
    result = await db.execute(
        select(Ticket)
        .where(Ticket.confirmation_code == confirmation_code)
        .order_by(Ticket.id)
        .execution_options(populate_existing=True)
    )
    tickets = list(result.scalars().all())
    if not tickets:
        raise ConfirmationCodeNotFound(f"No booking found for confirmation code {confirmation_code}")
    return tickets


async def _list_tickets(db: AsyncSession, *criteria) -> list[Ticket]:
    result = await db.execute(
        select(Ticket)
        .where(*criteria)
        .order_by(Ticket.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def get_tickets_by_flight(db: AsyncSession, flight_id: int) -> list[Ticket]:
    await get_flight(db, flight_id)
    return await _list_tickets(db, Ticket.flight_id == flight_id)


async def get_tickets_by_customer(db: AsyncSession, customer_id: int) -> list[Ticket]:
    """Tickets booked by a customer account, whoever the passengers are."""
    return await _list_tickets(db, Ticket.booking_customer_id == customer_id)


async def get_tickets_by_passenger(db: AsyncSession, passenger_id: int) -> list[Ticket]:
    return await _list_tickets(db, Ticket.passenger_id == passenger_id)


async def get_tickets_by_status(db: AsyncSession, ticket_status: TicketStatus) -> list[Ticket]:
    return await _list_tickets(db, Ticket.status == ticket_status)


async def _mark_paid(
    db: AsyncSession,
    ticket_ids: list[int],
    order_id: str,
    now: datetime,
) -> None:
    async with db.begin_nested():
        result = await db.execute(
            update(Ticket)
            .where(Ticket.id.in_(ticket_ids), Ticket.status == TicketStatus.UNPAID)
            .values(status=TicketStatus.PAID, payment_time=now, order_id=order_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != len(ticket_ids):
            # Expired or cancelled between our read and the update
            raise InvalidStateTransition("Ticket state changed during payment; payment not applied")
    record_transition(TicketStatus.PAID.value, len(ticket_ids))


async def pay_booking(
    db: AsyncSession,
    confirmation_code: str,
    order_id: str,
    now: Optional[datetime] = None,
) -> list[Ticket]:
    """
    Mark every UNPAID ticket of a booking as PAID.

    A repeated callback for an already-paid booking with the same order id is
    a no-op, so duplicate gateway notifications are harmless.
    """
    now = now or utcnow()
    tickets = await get_booking_tickets(db, confirmation_code)
    unpaid_ids = [t.id for t in tickets if t.status == TicketStatus.UNPAID]

    if not unpaid_ids:
        paid = [t for t in tickets if t.status == TicketStatus.PAID]
        if paid and all(t.order_id == order_id for t in paid):
            logger.info("payment_duplicate_ignored", confirmation_code=confirmation_code, order_id=order_id)
            return tickets
        raise InvalidStateTransition(
            f"Booking {confirmation_code} has no unpaid tickets to pay"
        )

    await _mark_paid(db, unpaid_ids, order_id, now)
    logger.info(
        "booking_paid",
        confirmation_code=confirmation_code,
        order_id=order_id,
        tickets=len(unpaid_ids),
    )
    return await get_booking_tickets(db, confirmation_code)


async def pay_ticket(
    db: AsyncSession,
    ticket_id: int,
    order_id: str,
    now: Optional[datetime] = None,
) -> Ticket:
    """Mark a single UNPAID ticket as PAID. Idempotent for the same order id."""
    now = now or utcnow()
    ticket = await get_ticket(db, ticket_id)

    if ticket.status == TicketStatus.PAID and ticket.order_id == order_id:
        return ticket
    if ticket.status != TicketStatus.UNPAID:
        raise InvalidStateTransition(
            f"Ticket {ticket_id} is {ticket.status.value} and cannot be paid"
        )

    await _mark_paid(db, [ticket.id], order_id, now)
    logger.info("ticket_paid", ticket_id=ticket_id, order_id=order_id)
    return await get_ticket(db, ticket_id)


async def close_ticket(
    db: AsyncSession,
    ticket: Ticket,
    to_status: TicketStatus,
    from_statuses: Iterable[TicketStatus],
    now: datetime,
) -> bool:
    """
    Move a live ticket to CANCELLED/EXPIRED and give its seat unit back.

    Status write and release happen in the caller's transaction; only the
    caller whose UPDATE matched releases, so a ticket is released once.
    Returns False when the ticket was no longer in `from_statuses`.
    """
    result = await db.execute(
        update(Ticket)
        .where(Ticket.id == ticket.id, Ticket.status.in_(list(from_statuses)))
        .values(status=to_status, closed_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        return False

    await seat_ledger.release(db, ticket.flight_id, ticket.ticket_class_id, 1)
    record_transition(to_status.value)
    return True


async def cancel_ticket(
    db: AsyncSession,
    ticket_id: int,
    now: Optional[datetime] = None,
) -> Ticket:
    """Cancel an UNPAID or PAID ticket. Cancelling a closed ticket is a no-op."""
    now = now or utcnow()
    ticket = await get_ticket(db, ticket_id)

    if ticket.status in TERMINAL_STATUSES:
        logger.info("ticket_cancel_noop", ticket_id=ticket_id, status=ticket.status.value)
        return ticket

    async with db.begin_nested():
        cancelled = await close_ticket(db, ticket, TicketStatus.CANCELLED, ACTIVE_STATUSES, now)

    if cancelled:
        logger.info(
            "ticket_cancelled",
            ticket_id=ticket_id,
            flight_id=ticket.flight_id,
            seat=ticket.seat_number,
        )
    return await get_ticket(db, ticket_id)


async def cancel_booking(
    db: AsyncSession,
    confirmation_code: str,
    now: Optional[datetime] = None,
) -> list[Ticket]:
    """Cancel every live ticket of a booking (e.g. failed payment)."""
    now = now or utcnow()
    tickets = await get_booking_tickets(db, confirmation_code)

    cancelled = 0
    async with db.begin_nested():
        for ticket in tickets:
            if ticket.status in ACTIVE_STATUSES:
                if await close_ticket(db, ticket, TicketStatus.CANCELLED, ACTIVE_STATUSES, now):
                    cancelled += 1

    logger.info("booking_cancelled", confirmation_code=confirmation_code, tickets=cancelled)
    return await get_booking_tickets(db, confirmation_code)
