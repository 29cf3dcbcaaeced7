"""
Prometheus metrics for booking admission and credit accounting.
Exposed at /metrics.
"""

from fastapi import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

booking_attempts = Counter(
    "booking_attempts_total",
    "Booking create attempts by outcome",
    ["outcome"],  # created, forbidden, payment_required, conflict, not_found, error
)

booking_cancellations = Counter(
    "booking_cancellations_total",
    "Booking cancellations by outcome",
    ["outcome"],
)

admission_decisions = Counter(
    "admission_decisions_total",
    "Capacity-limited admission results",
    ["result"],  # admitted, rejected
)

admission_latency = Histogram(
    "admission_latency_seconds",
    "Time spent holding the session lock for a capacity-limited insert",
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0],
)

credit_movements = Counter(
    "credit_movements_total",
    "Credits debited on booking and restored on cancellation",
    ["direction"],  # debit, restore
)

request_latency = Histogram(
    "http_request_latency_seconds",
    "HTTP request latency",
    ["method", "status"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)

cache_operations = Counter(
    "cache_operations_total",
    "Cache operations",
    ["operation", "result"],  # get/set/invalidate, hit/miss/error
)


def metrics_endpoint() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


def record_booking_attempt(outcome: str) -> None:
    booking_attempts.labels(outcome=outcome).inc()


def record_cancellation(outcome: str) -> None:
    booking_cancellations.labels(outcome=outcome).inc()


def record_admission(admitted: bool) -> None:
    admission_decisions.labels(result="admitted" if admitted else "rejected").inc()


def record_credits(direction: str, amount: int) -> None:
    credit_movements.labels(direction=direction).inc(amount)


def record_cache_operation(operation: str, result: str) -> None:
    cache_operations.labels(operation=operation, result=result).inc()
