"""
Post-commit notifications to audit and e-mail collaborators.

Listeners are fire-and-forget: a failing listener is logged and skipped,
it never propagates back into the booking flow.
"""

from typing import Any, Awaitable, Callable, Iterable, Optional

from flightbook.core.logging import get_logger

logger = get_logger(__name__)

Listener = Callable[[str, dict], Awaitable[None]]

BOOKING_CREATED = "booking_created"
BOOKING_PAID = "booking_paid"
TICKET_CANCELLED = "ticket_cancelled"
HOLD_EXPIRED = "hold_expired"

audit_logger = get_logger("flightbook.audit")


async def audit_log_listener(event: str, payload: dict) -> None:
    audit_logger.info(event, **payload)


class BookingNotifier:
    def __init__(self, listeners: Optional[Iterable[Listener]] = None):
        self.listeners: list[Listener] = list(listeners or [])

    def subscribe(self, listener: Listener) -> None:
        self.listeners.append(listener)

    async def notify(self, event: str, **payload: Any) -> None:
        for listener in self.listeners:
            try:
                await listener(event, payload)
            except Exception as e:
                logger.error(
                    "notification_failed",
                    notification=event,
                    listener=getattr(listener, "__name__", repr(listener)),
                    error=str(e),
                )
