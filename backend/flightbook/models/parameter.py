"""
Booking parameters. The most recent row is authoritative; updates append.
"""

from sqlalchemy import Column, Integer, CheckConstraint

from flightbook.db.base import Base, TimestampMixin


class Parameter(Base, TimestampMixin):
    __tablename__ = "parameters"

    id = Column(Integer, primary_key=True, index=True)
    min_booking_in_advance_duration = Column(Integer, nullable=False)  # minutes
    max_booking_hold_duration = Column(Integer, nullable=False)  # minutes

    __table_args__ = (
        CheckConstraint("min_booking_in_advance_duration >= 0", name="check_min_advance_non_negative"),
        CheckConstraint("max_booking_hold_duration > 0", name="check_max_hold_positive"),
    )

    def __repr__(self) -> str:
        return (
            f"<Parameter(id={self.id}, min_advance={self.min_booking_in_advance_duration}, "
            f"max_hold={self.max_booking_hold_duration})>"
        )
