"""
Flight and ticket-class models.

Key design decisions:
- Flights and ticket classes are soft-deleted (`deleted_at`) so issued
  tickets never lose their references
- `seat_prefix` on the class gives every class its own seat-label range
  (E01, E02, ... / B01, ...), so classes on one flight never compete for labels
"""

from sqlalchemy import Column, Integer, String, Index
from sqlalchemy.orm import relationship

from flightbook.db.base import Base, TimestampMixin, UTCDateTime


class Flight(Base, TimestampMixin):
    __tablename__ = "flights"

    id = Column(Integer, primary_key=True, index=True)
    flight_code = Column(String(20), unique=True, nullable=False)
    departure_time = Column(UTCDateTime, nullable=False)
    deleted_at = Column(UTCDateTime, nullable=True)

    inventories = relationship("FlightTicketClass", back_populates="flight", lazy="selectin")

    __table_args__ = (
        # The sweeper and booking-window checks filter on departure time
        Index("ix_flights_departure_time", "departure_time"),
    )

    def __repr__(self) -> str:
        return f"<Flight(id={self.id}, code={self.flight_code}, departs={self.departure_time})>"


class TicketClass(Base, TimestampMixin):
    __tablename__ = "ticket_classes"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), unique=True, nullable=False)
    seat_prefix = Column(String(2), unique=True, nullable=False)
    deleted_at = Column(UTCDateTime, nullable=True)

    def seat_label(self, index: int) -> str:
        return f"{self.seat_prefix}{index:02d}"

    def __repr__(self) -> str:
        return f"<TicketClass(id={self.id}, name={self.name}, prefix={self.seat_prefix})>"
