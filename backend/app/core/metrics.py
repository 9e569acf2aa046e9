"""
Prometheus metrics for registrations, capacity retries and the event cache.
Exposed at the /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

registration_attempts = Counter(
    'registration_attempts_total',
    'Total registration attempts',
    ['outcome']  # success, reactivated, already_registered, full, not_found
)

registration_latency = Histogram(
    'registration_latency_seconds',
    'Registration request latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

registration_transitions = Counter(
    'registration_transitions_total',
    'Registration status changes',
    ['to_status', 'source']  # source: user, admin
)

capacity_retries = Counter(
    'capacity_retry_attempts_total',
    'Event version compare-and-swap retries',
    ['operation']  # register, admin_status, capacity_update, delete
)

cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get: hit/miss, set: stored, invalidate: cleared
)


def metrics_endpoint() -> Response:
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_registration_attempt(outcome: str):
    registration_attempts.labels(outcome=outcome).inc()


def record_transition(to_status: str, source: str = "user"):
    registration_transitions.labels(to_status=to_status, source=source).inc()


def record_capacity_retry(operation: str):
    capacity_retries.labels(operation=operation).inc()


def record_cache_operation(operation: str, result: str):
    cache_operations.labels(operation=operation, result=result).inc()
