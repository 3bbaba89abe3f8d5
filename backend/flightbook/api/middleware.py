"""
Request middleware: request IDs, booking log context and timing.

The payment gateway sends its own X-Request-ID with every callback; it is
kept so gateway and booking logs line up. Other callers get a fresh one.
"""

import re
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
import structlog

from flightbook.core.logging import get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")

# Path segments worth correlating booking logs on
_PATH_CONTEXT = (
    ("flight_id", re.compile(r"/flights/(\d+)")),
    ("ticket_id", re.compile(r"/tickets/(\d+)")),
    ("confirmation_code", re.compile(r"/bookings/([^/]+)")),
)


def resolve_request_id(request: Request) -> str:
    incoming = request.headers.get(REQUEST_ID_HEADER)
    if incoming and _VALID_REQUEST_ID.match(incoming):
        return incoming
    return str(uuid.uuid4())[:8]


def path_context(path: str) -> dict:
    context = {}
    for key, pattern in _PATH_CONTEXT:
        match = pattern.search(path)
        if match:
            context[key] = match.group(1)
    return context


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Binds request_id, method, path and any flight/ticket/booking id to structlog."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = resolve_request_id(request)
        start_time = time.perf_counter()

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            **path_context(request.url.path),
        )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request_failed",
                error=str(e),
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
            raise

        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
        log = logger.warning if response.status_code >= 500 else logger.info
        log("request_completed", status_code=response.status_code, duration_ms=duration_ms)

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Response-Time"] = f"{duration_ms}ms"
        return response
