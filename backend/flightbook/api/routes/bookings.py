"""
Booking endpoints with concurrency-safe seat reservation.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from flightbook.api.deps import get_notifier, get_parameter_provider
from flightbook.db.session import get_db
from flightbook.schemas.booking import BookingCreate, BookingResponse, TicketResponse
from flightbook.services.booking_service import (
    BookingResult,
    book_tickets,
    cancel_booking,
    get_booking_tickets,
)
from flightbook.services.cache_service import invalidate_inventory_cache
from flightbook.services.notifications import BOOKING_CREATED, TICKET_CANCELLED, BookingNotifier
from flightbook.services.parameter_service import ParameterProvider
from flightbook.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/bookings", tags=["Bookings"])


def to_booking_response(result: BookingResult) -> BookingResponse:
    return BookingResponse(
        confirmation_code=result.confirmation_code,
        tickets=[TicketResponse.model_validate(t) for t in result.tickets],
        total_fare=result.total_fare,
    )


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    db: AsyncSession = Depends(get_db),
    provider: ParameterProvider = Depends(get_parameter_provider),
    notifier: BookingNotifier = Depends(get_notifier),
):
    """
    Book one ticket per passenger on a flight and ticket class.

    The whole booking succeeds or nothing is reserved. Tickets start UNPAID
    and expire if not paid within the configured hold.
    """
    params = await provider.get(db)
    result = await book_tickets(db, booking_data, params)
    await db.commit()

    await notifier.notify(
        BOOKING_CREATED,
        confirmation_code=result.confirmation_code,
        flight_id=booking_data.flight_id,
        tickets=len(result.tickets),
    )
    await invalidate_inventory_cache(booking_data.flight_id)
    return to_booking_response(result)


@router.get("/{confirmation_code}", response_model=BookingResponse)
async def get_booking(confirmation_code: str, db: AsyncSession = Depends(get_db)):
    tickets = await get_booking_tickets(db, confirmation_code)
    return to_booking_response(BookingResult(confirmation_code=confirmation_code, tickets=tickets))


@router.delete("/{confirmation_code}", response_model=BookingResponse)
async def cancel_booking_endpoint(
    confirmation_code: str,
    db: AsyncSession = Depends(get_db),
    notifier: BookingNotifier = Depends(get_notifier),
):
    """Cancel every live ticket of a booking and release their seats."""
    tickets = await cancel_booking(db, confirmation_code)
    await db.commit()

    await notifier.notify(TICKET_CANCELLED, confirmation_code=confirmation_code)
    for flight_id in {t.flight_id for t in tickets}:
        await invalidate_inventory_cache(flight_id)
    return to_booking_response(BookingResult(confirmation_code=confirmation_code, tickets=tickets))
