"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Booking metrics
booking_attempts = Counter(
    'booking_attempts_total',
    'Total booking attempts',
    ['status']  # success, rejected, error
)

booking_latency = Histogram(
    'booking_latency_seconds',
    'Booking request latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

seat_conflicts = Counter(
    'seat_conflicts_total',
    'Seat unique-index violations hit while inserting tickets',
    ['outcome']  # retried, surfaced
)

# Seat ledger metrics
ledger_operations = Counter(
    'ledger_operations_total',
    'Seat ledger operations',
    ['operation', 'result']  # reserve/release, ok/rejected
)

# Ticket lifecycle metrics
ticket_transitions = Counter(
    'ticket_transitions_total',
    'Ticket status transitions',
    ['to_status']
)

hold_sweep_duration = Histogram(
    'hold_sweep_duration_seconds',
    'Duration of one hold-expiry sweep',
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0]
)

hold_sweep_failures = Counter(
    'hold_sweep_failures_total',
    'Tickets the hold-expiry sweep could not expire',
    ['reason']
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_booking_attempt(status: str):
    """Record booking attempt. Status: success, rejected, error"""
    booking_attempts.labels(status=status).inc()


def record_ledger_operation(operation: str, ok: bool):
    ledger_operations.labels(operation=operation, result="ok" if ok else "rejected").inc()


def record_transition(to_status: str, count: int = 1):
    if count:
        ticket_transitions.labels(to_status=to_status).inc(count)


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
