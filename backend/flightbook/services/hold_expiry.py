"""
Hold-expiry sweeper: expires UNPAID tickets and returns their seats.

An UNPAID ticket expires when either
  - it has been held for max_booking_hold (booked_at + hold <= now), or
  - its flight's booking window has closed
    (departure_time <= now + min_booking_in_advance).

Each ticket is expired in its own transaction: the conditional
UNPAID -> EXPIRED update and the ledger release commit together, and the
release only happens when the update matched. A payment or cancellation
racing the sweep wins or loses on the same status guard, so a seat unit is
never released twice and a crash mid-sweep leaves no half-expired ticket.

A ticket whose release fails the ledger check is rolled back, logged at
critical level and skipped, so the sweep still reaches the tickets after it.
"""

import asyncio
import time
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy import Row, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from flightbook.core.config import get_settings
from flightbook.core.logging import get_logger
from flightbook.core.exceptions import InternalConsistencyError
from flightbook.core.metrics import hold_sweep_duration, hold_sweep_failures
from flightbook.db.base import utcnow
from flightbook.models.flight import Flight
from flightbook.models.ticket import Ticket, TicketStatus
from flightbook.services.booking_service import close_ticket, get_ticket
from flightbook.services.notifications import HOLD_EXPIRED, BookingNotifier
from flightbook.services.parameter_service import BookingParameters, ParameterProvider

logger = get_logger(__name__)


async def find_expired_holds(
    db: AsyncSession,
    params: BookingParameters,
    now: datetime,
) -> list[Row]:
    """(id, flight_id, ticket_class_id) of every UNPAID ticket past its hold."""
    result = await db.execute(
        select(Ticket.id, Ticket.flight_id, Ticket.ticket_class_id)
        .join(Flight, Flight.id == Ticket.flight_id)
        .where(
            Ticket.status == TicketStatus.UNPAID,
            or_(
                Ticket.booked_at <= now - params.max_booking_hold,
                Flight.departure_time <= now + params.min_booking_in_advance,
            ),
        )
        .order_by(Ticket.id)
    )
    return list(result.all())


async def expire_ticket(db: AsyncSession, ticket_id: int, now: datetime) -> Optional[Ticket]:
    """Expire one ticket. Returns it when this call moved it, None otherwise."""
    ticket = await get_ticket(db, ticket_id)
    if ticket.status != TicketStatus.UNPAID:
        return None
    if not await close_ticket(db, ticket, TicketStatus.EXPIRED, [TicketStatus.UNPAID], now):
        return None
    return ticket


async def run_once(
    session_factory: async_sessionmaker[AsyncSession],
    provider: ParameterProvider,
    now: Optional[datetime] = None,
    notifier: Optional[BookingNotifier] = None,
) -> int:
    """One sweep. Returns the number of tickets this run expired."""
    now = now or utcnow()
    start_time = time.perf_counter()

    async with session_factory() as db:
        params = await provider.get(db)
        candidates = await find_expired_holds(db, params, now)

    expired = 0
    failed = 0
    for candidate in candidates:
        async with session_factory() as db:
            try:
                ticket = await expire_ticket(db, candidate.id, now)
                await db.commit()
            except InternalConsistencyError as e:
                # Ledger drift on one ticket must not block the holds behind it
                await db.rollback()
                failed += 1
                hold_sweep_failures.labels(reason="consistency").inc()
                logger.critical(
                    "hold_expiry_failed",
                    ticket_id=candidate.id,
                    flight_id=candidate.flight_id,
                    ticket_class_id=candidate.ticket_class_id,
                    error=str(e),
                )
                continue
            except Exception:
                await db.rollback()
                raise

        if ticket is None:
            continue
        expired += 1
        logger.info(
            "hold_expired",
            ticket_id=ticket.id,
            confirmation_code=ticket.confirmation_code,
            flight_id=ticket.flight_id,
            seat=ticket.seat_number,
        )
        if notifier:
            await notifier.notify(
                HOLD_EXPIRED,
                ticket_id=ticket.id,
                confirmation_code=ticket.confirmation_code,
                flight_id=ticket.flight_id,
            )

    hold_sweep_duration.observe(time.perf_counter() - start_time)
    if candidates:
        logger.info(
            "hold_sweep_completed", candidates=len(candidates), expired=expired, failed=failed
        )
    return expired


class HoldExpirySweeper:
    """Runs run_once on a fixed interval as a background asyncio task."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        provider: ParameterProvider,
        notifier: Optional[BookingNotifier] = None,
        interval_seconds: Optional[float] = None,
        on_expired: Optional[Callable[[int], object]] = None,
    ):
        self.session_factory = session_factory
        self.provider = provider
        self.notifier = notifier
        self.interval_seconds = interval_seconds or get_settings().HOLD_SWEEP_INTERVAL_SECONDS
        self.on_expired = on_expired
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run())
        logger.info("hold_sweeper_started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("hold_sweeper_stopped")

    async def _run(self) -> None:
        while True:
            try:
                expired = await run_once(self.session_factory, self.provider, notifier=self.notifier)
                if expired and self.on_expired:
                    result = self.on_expired(expired)
                    if asyncio.iscoroutine(result):
                        await result
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("hold_sweep_failed", error=str(e), exc_info=True)
            await asyncio.sleep(self.interval_seconds)
