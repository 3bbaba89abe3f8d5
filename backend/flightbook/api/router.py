"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from flightbook.api.routes import flights, bookings, tickets, payments, parameters

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(flights.router)
api_router.include_router(bookings.router)
api_router.include_router(tickets.router)
api_router.include_router(payments.router)
api_router.include_router(parameters.router)
