"""
Booking domain errors and their HTTP rendering.

Services raise these instead of HTTPException so the core can be driven
from the API, the hold-expiry sweeper, or a payment callback alike.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from flightbook.core.logging import get_logger

logger = get_logger(__name__)


class BookingError(Exception):
    """Base booking error with an HTTP status and a machine-readable code."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "booking_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(BookingError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class FlightNotFound(NotFoundError):
    code = "flight_not_found"


class TicketClassNotFound(NotFoundError):
    code = "ticket_class_not_found"


class TicketNotFound(NotFoundError):
    code = "ticket_not_found"


class ConfirmationCodeNotFound(NotFoundError):
    code = "confirmation_code_not_found"


class InvalidBookingRequest(BookingError):
    code = "invalid_booking_request"


class BookingWindowViolation(BookingError):
    code = "booking_window_violation"


class InsufficientInventory(BookingError):
    status_code = status.HTTP_409_CONFLICT
    code = "insufficient_inventory"


class SeatConflict(BookingError):
    status_code = status.HTTP_409_CONFLICT
    code = "seat_conflict"


class InvalidStateTransition(BookingError):
    status_code = status.HTTP_409_CONFLICT
    code = "invalid_state_transition"


class DuplicateInventory(BookingError):
    status_code = status.HTTP_409_CONFLICT
    code = "duplicate_inventory"


class CodeGenerationExhausted(BookingError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "code_generation_exhausted"


class InternalConsistencyError(BookingError):
    """Ledger state contradicts the ticket store. Indicates a bug elsewhere."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "internal_consistency"


async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("booking_error", code=exc.code, error=exc.message)
    else:
        logger.info("booking_rejected", code=exc.code, error=exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )


async def transient_error_handler(request: Request, exc: OperationalError) -> JSONResponse:
    # Lock timeouts and dropped connections: the caller may retry.
    logger.warning("transient_db_failure", error=str(exc.orig))
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Temporarily unavailable, please retry", "code": "transient_failure"},
        headers={"Retry-After": "1"},
    )


EXCEPTION_HANDLERS = {
    BookingError: booking_error_handler,
    OperationalError: transient_error_handler,
}


def register_exception_handlers(app: FastAPI) -> None:
    for exception_class, handler in EXCEPTION_HANDLERS.items():
        app.add_exception_handler(exception_class, handler)
