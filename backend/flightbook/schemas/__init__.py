from flightbook.schemas.flight import (
    TicketClassCreate, TicketClassResponse, FlightCreate, FlightResponse,
    InventoryCreate, FareUpdate, InventoryResponse, InventoryListResponse,
)
from flightbook.schemas.booking import (
    PassengerIn, BookingCreate, BookingResponse, TicketResponse,
    PaymentRequest, PaymentCallback, SeatAvailabilityResponse,
)
from flightbook.schemas.parameter import ParameterUpdate, ParameterResponse

__all__ = [
    "TicketClassCreate", "TicketClassResponse", "FlightCreate", "FlightResponse",
    "InventoryCreate", "FareUpdate", "InventoryResponse", "InventoryListResponse",
    "PassengerIn", "BookingCreate", "BookingResponse", "TicketResponse",
    "PaymentRequest", "PaymentCallback", "SeatAvailabilityResponse",
    "ParameterUpdate", "ParameterResponse",
]
