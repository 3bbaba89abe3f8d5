"""
Seat inventory per (flight, ticket class).

Key design decisions:
- `remaining_tickets` is denormalized (avoids COUNT over tickets on every booking)
  and is only ever moved by conditional UPDATEs in the seat ledger
- CHECK constraints are the final safety net: 0 <= remaining <= total
- Soft delete only; a class with issued tickets stays referenced
"""

from typing import Optional

from sqlalchemy import Column, Integer, Numeric, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship

from flightbook.db.base import Base, TimestampMixin, UTCDateTime


class FlightTicketClass(Base, TimestampMixin):
    __tablename__ = "flight_ticket_classes"

    flight_id = Column(Integer, ForeignKey("flights.id"), primary_key=True)
    ticket_class_id = Column(Integer, ForeignKey("ticket_classes.id"), primary_key=True)
    total_tickets = Column(Integer, nullable=False)
    remaining_tickets = Column(Integer, nullable=False)
    fare = Column(Numeric(10, 2), nullable=False)
    deleted_at = Column(UTCDateTime, nullable=True)

    flight = relationship("Flight", back_populates="inventories")
    ticket_class = relationship("TicketClass", lazy="joined")

    __table_args__ = (
        CheckConstraint("remaining_tickets >= 0", name="check_remaining_tickets_non_negative"),
        CheckConstraint("total_tickets > 0", name="check_total_tickets_positive"),
        CheckConstraint("remaining_tickets <= total_tickets", name="check_remaining_lte_total"),
        CheckConstraint("fare >= 0", name="check_inventory_fare_non_negative"),
    )

    @property
    def ticket_class_name(self) -> Optional[str]:
        return self.ticket_class.name if self.ticket_class is not None else None

    def __repr__(self) -> str:
        return (
            f"<FlightTicketClass(flight={self.flight_id}, class={self.ticket_class_id}, "
            f"remaining={self.remaining_tickets}/{self.total_tickets})>"
        )
