"""
Booking parameter endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from flightbook.api.deps import get_parameter_provider
from flightbook.db.session import get_db
from flightbook.schemas.parameter import ParameterResponse, ParameterUpdate
from flightbook.services.parameter_service import ParameterProvider, update_parameters

router = APIRouter(prefix="/parameters", tags=["Parameters"])


@router.get("/", response_model=ParameterResponse)
async def get_parameters_endpoint(
    db: AsyncSession = Depends(get_db),
    provider: ParameterProvider = Depends(get_parameter_provider),
):
    params = await provider.get(db)
    return ParameterResponse(
        min_booking_in_advance_duration=params.min_booking_in_advance_duration,
        max_booking_hold_duration=params.max_booking_hold_duration,
    )


@router.put("/", response_model=ParameterResponse)
async def update_parameters_endpoint(
    data: ParameterUpdate,
    db: AsyncSession = Depends(get_db),
    provider: ParameterProvider = Depends(get_parameter_provider),
):
    """Apply new parameters. Takes effect for this process immediately."""
    row = await update_parameters(db, data)
    await db.commit()
    provider.invalidate()
    return row
