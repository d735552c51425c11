from prometheus_client import (
    Counter,
    Histogram,
    CollectorRegistry,
    CONTENT_TYPE_LATEST,
    generate_latest,
)

registry = CollectorRegistry()

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
    registry=registry,
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "path", "status"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2, 5),
    registry=registry,
)

# Backend-level metrics; streaming calls are timed until the relay closes
backend_requests_total = Counter(
    "backend_requests_total",
    "Total backend calls by provider and operation",
    ["provider", "operation", "outcome"],
    registry=registry,
)

backend_request_duration_seconds = Histogram(
    "backend_request_duration_seconds",
    "Backend call latency in seconds",
    ["provider", "operation", "outcome"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30, 60),
    registry=registry,
)


def observe_backend_call(provider: str, operation: str, outcome: str, duration: float) -> None:
    backend_requests_total.labels(
        provider=provider, operation=operation, outcome=outcome
    ).inc()
    backend_request_duration_seconds.labels(
        provider=provider, operation=operation, outcome=outcome
    ).observe(duration)


__all__ = [
    "registry",
    "http_requests_total",
    "http_request_duration_seconds",
    "backend_requests_total",
    "backend_request_duration_seconds",
    "observe_backend_call",
    "CONTENT_TYPE_LATEST",
    "generate_latest",
]
