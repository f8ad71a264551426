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
    ['status']  # success, rejected, invalid, error
)

booking_latency = Histogram(
    'booking_latency_seconds',
    'Booking creation latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

booking_transitions = Counter(
    'booking_transitions_total',
    'Booking state machine transitions',
    ['transition']  # create, confirm, cancel, offline_settle, complete
)

# Capacity ledger metrics
capacity_reservations = Counter(
    'capacity_reservations_total',
    'Capacity ledger reservation outcomes',
    ['result']  # reserved, insufficient, not_bookable, not_found
)

capacity_release_underflows = Counter(
    'capacity_release_underflow_total',
    'Releases that would have driven current_bookings negative'
)

reference_collisions = Counter(
    'booking_reference_collisions_total',
    'Booking reference unique-constraint collisions that triggered a retry'
)

# Payment metrics
payment_verifications = Counter(
    'payment_verifications_total',
    'Gateway payment verification outcomes',
    ['result']  # completed, replay, invalid_signature, conflict
)

refunds = Counter(
    'payment_refunds_total',
    'Refund attempts',
    ['gateway', 'result']  # online_gateway/offline, success/failed
)

gateway_latency = Histogram(
    'payment_gateway_latency_seconds',
    'Payment gateway call latency',
    ['operation'],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

# HTTP metrics
http_request_latency = Histogram(
    'http_request_latency_seconds',
    'Request latency by route template',
    ['method', 'route', 'status'],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)

redis_connection_errors = Counter(
    'redis_connection_errors_total',
    'Redis connection errors'
)


def metrics_endpoint() -> Response:
    """
    Prometheus metrics endpoint.

    Usage:
        @app.get("/metrics")
        def metrics():
            return metrics_endpoint()
    """
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_booking_attempt(status: str):
    """Record booking attempt. Status: success, rejected, invalid, error"""
    booking_attempts.labels(status=status).inc()


def record_transition(transition: str):
    booking_transitions.labels(transition=transition).inc()


def record_reservation(result: str):
    """Record capacity ledger decision."""
    capacity_reservations.labels(result=result).inc()


def record_verification(result: str):
    payment_verifications.labels(result=result).inc()


def record_refund(gateway: str, success: bool):
    refunds.labels(gateway=gateway, result="success" if success else "failed").inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()


def record_request(method: str, route: str, status_code: int, seconds: float):
    http_request_latency.labels(method=method, route=route, status=str(status_code)).observe(seconds)
