"""
Pydantic schemas for flights, ticket classes and seat inventory.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field, field_validator


class TicketClassCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    seat_prefix: str = Field(..., min_length=1, max_length=2, pattern=r"^[A-Z]+$")


class TicketClassResponse(BaseModel):
    id: int
    name: str
    seat_prefix: str

    model_config = {"from_attributes": True}


class FlightCreate(BaseModel):
    flight_code: str = Field(..., min_length=1, max_length=20)
    departure_time: datetime

    @field_validator("departure_time")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        # Naive departure times are taken as UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class FlightResponse(BaseModel):
    id: int
    flight_code: str
    departure_time: datetime
    created_at: datetime

    model_config = {"from_attributes": True}


class InventoryCreate(BaseModel):
    ticket_class_id: int
    total_tickets: int = Field(..., gt=0, le=999)
    fare: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)


class FareUpdate(BaseModel):
    fare: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)


class InventoryResponse(BaseModel):
    flight_id: int
    ticket_class_id: int
    ticket_class_name: Optional[str] = None
    total_tickets: int
    remaining_tickets: int
    fare: Decimal

    model_config = {"from_attributes": True}


class InventoryListResponse(BaseModel):
    flight_id: int
    inventories: list[InventoryResponse]
    cached: bool = False
