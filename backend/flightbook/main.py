"""
Flight Booking API - Main Application Entry Point

Seat inventory and booking core for a flight management system:
- Oversell-free seat ledger with guarded conditional updates
- All-or-nothing multi-passenger bookings with seat allocation
- Ticket lifecycle (UNPAID, PAID, CANCELLED, EXPIRED) with a hold-expiry sweeper
- Redis caching of inventory listings, structured logging, Prometheus metrics
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from flightbook.core.config import get_settings
from flightbook.core.exceptions import register_exception_handlers
from flightbook.core.logging import setup_logging, get_logger
from flightbook.core.metrics import metrics_endpoint
from flightbook.api.router import api_router
from flightbook.api.middleware import RequestLoggingMiddleware
from flightbook.db.session import SessionLocal
from flightbook.services.cache_service import (
    get_redis,
    close_redis,
    get_cache_stats,
    invalidate_inventory_cache,
)
from flightbook.services.hold_expiry import HoldExpirySweeper
from flightbook.services.notifications import BookingNotifier, audit_log_listener
from flightbook.services.parameter_service import ParameterProvider

settings = get_settings()


async def _on_holds_expired(count: int) -> None:
    await invalidate_inventory_cache()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache")

    sweeper = None
    if settings.HOLD_SWEEP_ENABLED:
        sweeper = HoldExpirySweeper(
            SessionLocal,
            app.state.parameter_provider,
            notifier=app.state.notifier,
            on_expired=_on_holds_expired,
        )
        sweeper.start()

    yield

    if sweeper:
        await sweeper.stop()
    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Flight seat inventory and booking API with oversell-free reservations",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.state.parameter_provider = ParameterProvider()
app.state.notifier = BookingNotifier([audit_log_listener])

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Custom middleware
app.add_middleware(RequestLoggingMiddleware)

register_exception_handlers(app)

# Routes
app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    cache_stats = await get_cache_stats()
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "cache": cache_stats,
    }


@app.get("/metrics", tags=["Observability"])
async def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
