"""
Ticket and passenger models.

Key design decisions:
- Partial unique index on (flight_id, seat_number) over UNPAID/PAID tickets:
  a seat can be held by one live ticket, and is reusable once that ticket is
  cancelled or expired
- `fare` is a snapshot taken at booking time; later inventory fare changes
  never touch issued tickets
- Tickets are never deleted; CANCELLED/EXPIRED carry `closed_at`
"""

import enum

from sqlalchemy import (
    Column,
    Integer,
    String,
    Numeric,
    ForeignKey,
    Index,
    CheckConstraint,
    Enum,
    text,
)
from sqlalchemy.orm import relationship

from flightbook.db.base import Base, TimestampMixin, UTCDateTime


class TicketStatus(str, enum.Enum):
    UNPAID = "UNPAID"
    PAID = "PAID"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


ACTIVE_STATUSES = (TicketStatus.UNPAID, TicketStatus.PAID)
TERMINAL_STATUSES = (TicketStatus.CANCELLED, TicketStatus.EXPIRED)


class Passenger(Base, TimestampMixin):
    __tablename__ = "passengers"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(200), nullable=False)
    citizen_id = Column(String(30), unique=True, index=True, nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(30), nullable=True)

    def __repr__(self) -> str:
        return f"<Passenger(id={self.id}, citizen_id={self.citizen_id})>"


class Ticket(Base, TimestampMixin):
    __tablename__ = "tickets"

    id = Column(Integer, primary_key=True, index=True)
    flight_id = Column(Integer, ForeignKey("flights.id"), nullable=False, index=True)
    ticket_class_id = Column(Integer, ForeignKey("ticket_classes.id"), nullable=False)
    passenger_id = Column(Integer, ForeignKey("passengers.id"), nullable=False, index=True)
    booking_customer_id = Column(Integer, nullable=True, index=True)
    seat_number = Column(String(7), nullable=False)
    status = Column(
        Enum(TicketStatus, name="ticket_status", native_enum=False, create_constraint=True, length=16),
        nullable=False,
        default=TicketStatus.UNPAID,
    )
    fare = Column(Numeric(10, 2), nullable=False)
    confirmation_code = Column(String(32), nullable=False, index=True)
    order_id = Column(String(64), nullable=True)
    payment_time = Column(UTCDateTime, nullable=True)
    booked_at = Column(UTCDateTime, nullable=False)
    closed_at = Column(UTCDateTime, nullable=True)

    passenger = relationship("Passenger", lazy="selectin")

    __table_args__ = (
        Index(
            "uq_tickets_active_seat",
            "flight_id",
            "seat_number",
            unique=True,
            postgresql_where=text("status IN ('UNPAID', 'PAID')"),
            sqlite_where=text("status IN ('UNPAID', 'PAID')"),
        ),
        # Sweeper scan: unpaid tickets ordered by hold start
        Index("ix_tickets_status_booked_at", "status", "booked_at"),
        CheckConstraint("fare >= 0", name="check_ticket_fare_non_negative"),
    )

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def __repr__(self) -> str:
        return (
            f"<Ticket(id={self.id}, flight={self.flight_id}, seat={self.seat_number}, "
            f"status={self.status}, code={self.confirmation_code})>"
        )
