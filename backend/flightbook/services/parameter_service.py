"""
Booking parameters: minimum advance-booking time and maximum unpaid hold.

RELOAD POLICY
=============
ParameterProvider caches the latest parameters row for PARAMETER_CACHE_TTL
seconds and is invalidated explicitly when parameters are updated through
this process. Other processes pick up changes within one TTL. Until a row
exists, the DEFAULT_* settings apply.

The provider is created by the application and injected into routes and the
sweeper; services receive a plain BookingParameters value.
"""

import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from flightbook.core.config import get_settings
from flightbook.core.logging import get_logger
from flightbook.models.parameter import Parameter
from flightbook.schemas.parameter import ParameterUpdate

logger = get_logger(__name__)


@dataclass(frozen=True)
class BookingParameters:
    min_booking_in_advance: timedelta
    max_booking_hold: timedelta

    @classmethod
    def from_minutes(cls, min_advance: int, max_hold: int) -> "BookingParameters":
        return cls(
            min_booking_in_advance=timedelta(minutes=min_advance),
            max_booking_hold=timedelta(minutes=max_hold),
        )

    @property
    def min_booking_in_advance_duration(self) -> int:
        return int(self.min_booking_in_advance.total_seconds() // 60)

    @property
    def max_booking_hold_duration(self) -> int:
        return int(self.max_booking_hold.total_seconds() // 60)


def default_parameters() -> BookingParameters:
    settings = get_settings()
    return BookingParameters.from_minutes(
        settings.DEFAULT_MIN_BOOKING_IN_ADVANCE_MINUTES,
        settings.DEFAULT_MAX_BOOKING_HOLD_MINUTES,
    )


async def get_latest_parameter(db: AsyncSession) -> Optional[Parameter]:
    result = await db.execute(select(Parameter).order_by(Parameter.id.desc()).limit(1))
    return result.scalar_one_or_none()


async def load_parameters(db: AsyncSession) -> BookingParameters:
    row = await get_latest_parameter(db)
    if row is None:
        return default_parameters()
    return BookingParameters.from_minutes(
        row.min_booking_in_advance_duration, row.max_booking_hold_duration
    )


async def update_parameters(db: AsyncSession, data: ParameterUpdate) -> Parameter:
    """Append a new parameters row; the newest row is authoritative."""
    old = await load_parameters(db)
    row = Parameter(
        min_booking_in_advance_duration=data.min_booking_in_advance_duration,
        max_booking_hold_duration=data.max_booking_hold_duration,
    )
    db.add(row)
    await db.flush()
    await db.refresh(row)

    logger.info(
        "parameters_updated",
        min_advance_old=old.min_booking_in_advance_duration,
        min_advance_new=row.min_booking_in_advance_duration,
        max_hold_old=old.max_booking_hold_duration,
        max_hold_new=row.max_booking_hold_duration,
    )
    return row


class ParameterProvider:
    """TTL cache in front of the parameters table."""

    def __init__(self, ttl_seconds: Optional[float] = None):
        self.ttl_seconds = get_settings().PARAMETER_CACHE_TTL if ttl_seconds is None else ttl_seconds
        self._cached: Optional[BookingParameters] = None
        self._loaded_at = 0.0

    async def get(self, db: AsyncSession) -> BookingParameters:
        if self._cached is not None and time.monotonic() - self._loaded_at < self.ttl_seconds:
            return self._cached

        self._cached = await load_parameters(db)
        self._loaded_at = time.monotonic()
        logger.debug(
            "parameters_loaded",
            min_advance=self._cached.min_booking_in_advance_duration,
            max_hold=self._cached.max_booking_hold_duration,
        )
        return self._cached

    def invalidate(self) -> None:
        self._cached = None
