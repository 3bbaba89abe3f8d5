from flightbook.models.flight import Flight, TicketClass
from flightbook.models.inventory import FlightTicketClass
from flightbook.models.ticket import Passenger, Ticket, TicketStatus
from flightbook.models.parameter import Parameter

__all__ = [
    "Flight", "TicketClass", "FlightTicketClass",
    "Passenger", "Ticket", "TicketStatus", "Parameter",
]
