"""
Payment gateway callback.

A successful payment marks the booking PAID; a failed one cancels it and
releases its seats. Gateways redeliver callbacks, so both paths are
idempotent.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from flightbook.api.deps import get_notifier
from flightbook.api.routes.bookings import to_booking_response
from flightbook.db.session import get_db
from flightbook.schemas.booking import BookingResponse, PaymentCallback
from flightbook.services.booking_service import BookingResult, cancel_booking, pay_booking
from flightbook.services.cache_service import invalidate_inventory_cache
from flightbook.services.notifications import BOOKING_PAID, TICKET_CANCELLED, BookingNotifier
from flightbook.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/callback", response_model=BookingResponse)
async def payment_callback(
    callback: PaymentCallback,
    db: AsyncSession = Depends(get_db),
    notifier: BookingNotifier = Depends(get_notifier),
):
    if callback.success:
        tickets = await pay_booking(db, callback.confirmation_code, callback.order_id)
        await db.commit()
        await notifier.notify(
            BOOKING_PAID,
            confirmation_code=callback.confirmation_code,
            order_id=callback.order_id,
        )
    else:
        logger.info(
            "payment_failed",
            confirmation_code=callback.confirmation_code,
            order_id=callback.order_id,
        )
        tickets = await cancel_booking(db, callback.confirmation_code)
        await db.commit()
        await notifier.notify(TICKET_CANCELLED, confirmation_code=callback.confirmation_code)
        for flight_id in {t.flight_id for t in tickets}:
            await invalidate_inventory_cache(flight_id)

    return to_booking_response(
        BookingResult(confirmation_code=callback.confirmation_code, tickets=tickets)
    )
