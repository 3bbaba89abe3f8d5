"""
Confirmation codes group the tickets of one booking, e.g. FMS-20261019-7KQ2ZD.

Uniqueness is checked against live tickets, not enforced by the schema: a
code is shared by several tickets and may be reissued once they are all
closed, so no plain unique index fits. Bookings on the same flight and class
are serialized by the ledger row lock taken in reserve(), which runs before
the code is drawn. Two bookings on different inventory rows can in principle
draw the same code concurrently; with 36^6 suffixes per day that is accepted.
"""

import secrets
import string
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from flightbook.core.config import get_settings
from flightbook.core.exceptions import CodeGenerationExhausted
from flightbook.core.logging import get_logger
from flightbook.db.base import utcnow
from flightbook.models.ticket import ACTIVE_STATUSES, Ticket

logger = get_logger(__name__)
settings = get_settings()

ALPHABET = string.ascii_uppercase + string.digits


def make_code(now: datetime, prefix: str, length: int) -> str:
    suffix = "".join(secrets.choice(ALPHABET) for _ in range(length))
    return f"{prefix}-{now:%Y%m%d}-{suffix}"


async def code_in_use(db: AsyncSession, code: str) -> bool:
    result = await db.execute(
        select(Ticket.id)
        .where(Ticket.confirmation_code == code, Ticket.status.in_(ACTIVE_STATUSES))
        .limit(1)
    )
    return result.first() is not None


async def generate_confirmation_code(
    db: AsyncSession,
    now: Optional[datetime] = None,
    max_attempts: Optional[int] = None,
) -> str:
    """Return a code not held by any UNPAID/PAID ticket, retrying on collision."""
    now = now or utcnow()
    max_attempts = max_attempts or settings.CONFIRMATION_CODE_MAX_ATTEMPTS

    for attempt in range(1, max_attempts + 1):
        code = make_code(now, settings.CONFIRMATION_CODE_PREFIX, settings.CONFIRMATION_CODE_LENGTH)
        if not await code_in_use(db, code):
            return code
        logger.info("confirmation_code_collision", attempt=attempt)

    logger.error("confirmation_code_exhausted", attempts=max_attempts)
    raise CodeGenerationExhausted(
        f"Could not generate a unique confirmation code after {max_attempts} attempts"
    )
