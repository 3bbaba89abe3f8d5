"""
Shared FastAPI dependencies for application-scoped collaborators.
"""

from fastapi import Request

from flightbook.services.notifications import BookingNotifier
from flightbook.services.parameter_service import ParameterProvider


def get_parameter_provider(request: Request) -> ParameterProvider:
    return request.app.state.parameter_provider


def get_notifier(request: Request) -> BookingNotifier:
    return request.app.state.notifier
