"""
Pydantic schemas for booking parameters.
"""

from pydantic import BaseModel, Field


class ParameterUpdate(BaseModel):
    min_booking_in_advance_duration: int = Field(..., ge=0, description="Minutes")
    max_booking_hold_duration: int = Field(..., gt=0, description="Minutes")


class ParameterResponse(BaseModel):
    min_booking_in_advance_duration: int
    max_booking_hold_duration: int

    model_config = {"from_attributes": True}
