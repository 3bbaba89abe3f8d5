"""
Flight, ticket-class and seat-inventory endpoints.
Inventory listings are cached in Redis and invalidated on every change.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from flightbook.db.session import get_db
from flightbook.schemas.booking import SeatAvailabilityResponse
from flightbook.schemas.flight import (
    FareUpdate,
    FlightCreate,
    FlightResponse,
    InventoryCreate,
    InventoryListResponse,
    InventoryResponse,
    TicketClassCreate,
    TicketClassResponse,
)
from flightbook.services import seat_ledger
from flightbook.services.booking_service import is_seat_available
from flightbook.services.cache_service import (
    get_cached_inventory,
    invalidate_inventory_cache,
    set_cached_inventory,
)
from flightbook.services.flight_service import (
    create_flight,
    create_ticket_class,
    get_flight,
    list_ticket_classes,
)
from flightbook.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(tags=["Flights"])


@router.post("/ticket-classes", response_model=TicketClassResponse, status_code=status.HTTP_201_CREATED)
async def create_ticket_class_endpoint(
    class_data: TicketClassCreate,
    db: AsyncSession = Depends(get_db),
):
    return await create_ticket_class(db, class_data)


@router.get("/ticket-classes", response_model=list[TicketClassResponse])
async def list_ticket_classes_endpoint(db: AsyncSession = Depends(get_db)):
    return await list_ticket_classes(db)


@router.post("/flights", response_model=FlightResponse, status_code=status.HTTP_201_CREATED)
async def create_flight_endpoint(
    flight_data: FlightCreate,
    db: AsyncSession = Depends(get_db),
):
    return await create_flight(db, flight_data)


@router.get("/flights/{flight_id}", response_model=FlightResponse)
async def get_flight_endpoint(flight_id: int, db: AsyncSession = Depends(get_db)):
    return await get_flight(db, flight_id)


@router.post(
    "/flights/{flight_id}/inventory",
    response_model=InventoryResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_inventory_endpoint(
    flight_id: int,
    data: InventoryCreate,
    db: AsyncSession = Depends(get_db),
):
    """Offer a ticket class on a flight with a seat count and fare."""
    inventory = await seat_ledger.create_inventory(db, flight_id, data)
    await db.commit()
    await invalidate_inventory_cache(flight_id)
    return inventory


@router.get("/flights/{flight_id}/inventory", response_model=InventoryListResponse)
async def list_inventory_endpoint(
    flight_id: int,
    available: bool = False,
    db: AsyncSession = Depends(get_db),
):
    """
    Remaining tickets and fares per class.
    Served from Redis when cached; the numbers are advisory only.
    `available=true` lists only classes with seats left, read from the database.
    """
    if available:
        await get_flight(db, flight_id)
        inventories = await seat_ledger.list_inventory(db, flight_id, available_only=True)
        return InventoryListResponse(
            flight_id=flight_id,
            inventories=[InventoryResponse.model_validate(i) for i in inventories],
        )

    cached = await get_cached_inventory(flight_id)
    if cached:
        logger.info("inventory_cache_hit", flight_id=flight_id)
        cached["cached"] = True
        return InventoryListResponse(**cached)

    await get_flight(db, flight_id)
    inventories = await seat_ledger.list_inventory(db, flight_id)

    response_data = {
        "flight_id": flight_id,
        "inventories": [InventoryResponse.model_validate(i).model_dump() for i in inventories],
        "cached": False,
    }
    await set_cached_inventory(flight_id, response_data)

    return InventoryListResponse(**response_data)


@router.patch(
    "/flights/{flight_id}/inventory/{ticket_class_id}",
    response_model=InventoryResponse,
)
async def update_fare_endpoint(
    flight_id: int,
    ticket_class_id: int,
    data: FareUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Change the fare for future bookings. Issued tickets keep their fare."""
    inventory = await seat_ledger.update_fare(db, flight_id, ticket_class_id, data.fare)
    await db.commit()
    await invalidate_inventory_cache(flight_id)
    return inventory


@router.delete(
    "/flights/{flight_id}/inventory/{ticket_class_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_inventory_endpoint(
    flight_id: int,
    ticket_class_id: int,
    db: AsyncSession = Depends(get_db),
):
    await seat_ledger.delete_inventory(db, flight_id, ticket_class_id)
    await db.commit()
    await invalidate_inventory_cache(flight_id)


@router.get("/flights/{flight_id}/seats/{seat_number}", response_model=SeatAvailabilityResponse)
async def seat_availability_endpoint(
    flight_id: int,
    seat_number: str,
    db: AsyncSession = Depends(get_db),
):
    await get_flight(db, flight_id)
    available = await is_seat_available(db, flight_id, seat_number)
    return SeatAvailabilityResponse(
        flight_id=flight_id,
        seat_number=seat_number.strip().upper(),
        available=available,
    )
