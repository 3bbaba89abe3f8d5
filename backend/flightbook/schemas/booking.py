"""
Pydantic schemas for booking, ticket and payment request/response validation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, EmailStr, Field, model_validator

from flightbook.core.config import get_settings
from flightbook.models.ticket import TicketStatus

settings = get_settings()


class PassengerIn(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=200)
    citizen_id: str = Field(..., min_length=1, max_length=30)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=30)


class BookingCreate(BaseModel):
    flight_id: int
    ticket_class_id: int
    customer_id: Optional[int] = None
    passengers: list[PassengerIn] = Field(
        ..., min_length=1, max_length=settings.MAX_PASSENGERS_PER_BOOKING
    )
    seat_numbers: Optional[list[str]] = None

    @model_validator(mode="after")
    def seat_numbers_match_passengers(self) -> "BookingCreate":
        citizen_ids = [p.citizen_id for p in self.passengers]
        if len(set(citizen_ids)) != len(citizen_ids):
            raise ValueError("A passenger may appear only once per booking")
        if self.seat_numbers:
            if len(self.seat_numbers) != len(self.passengers):
                raise ValueError("Number of seat numbers must match number of passengers")
            normalized = [seat.strip().upper() for seat in self.seat_numbers]
            if len(set(normalized)) != len(normalized):
                raise ValueError("Seat numbers must be unique within a booking")
            self.seat_numbers = normalized
        return self


class TicketResponse(BaseModel):
    id: int
    flight_id: int
    ticket_class_id: int
    passenger_id: int
    booking_customer_id: Optional[int]
    seat_number: str
    status: TicketStatus
    fare: Decimal
    confirmation_code: str
    order_id: Optional[str]
    payment_time: Optional[datetime]
    booked_at: datetime
    closed_at: Optional[datetime]

    model_config = {"from_attributes": True}


class BookingResponse(BaseModel):
    confirmation_code: str
    tickets: list[TicketResponse]
    total_fare: Decimal

    model_config = {"from_attributes": True}


class PaymentRequest(BaseModel):
    order_id: str = Field(..., min_length=1, max_length=64)


class PaymentCallback(BaseModel):
    confirmation_code: str = Field(..., min_length=1, max_length=32)
    order_id: str = Field(..., min_length=1, max_length=64)
    success: bool


class SeatAvailabilityResponse(BaseModel):
    flight_id: int
    seat_number: str
    available: bool
