"""
Name: Prometheus Metrics

Responsibilities:
  - Define and expose Prometheus metrics
  - Provide /metrics endpoint payload
  - Record request latency/count and auth protocol events

Collaborators:
  - middleware.py: Records request metrics
  - identity/auth_service.py: Records login/refresh/logout outcomes
  - identity/access_control.py: Records gate rejections and pre-emptive renewals

Constraints:
  - Low cardinality labels only (endpoint, method, status, outcome - NOT user_id)

Notes:
  - Metrics live on a private registry so tests can build many apps per process
"""

import re

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

_registry = CollectorRegistry()

_requests_total = Counter(
    "postflow_requests_total",
    "Total HTTP requests",
    ["endpoint", "method", "status"],
    registry=_registry,
)

# R: Buckets: 5ms .. 5s (argon2 verification dominates login latency)
_request_latency = Histogram(
    "postflow_request_latency_seconds",
    "HTTP request latency in seconds",
    ["endpoint", "method"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
    registry=_registry,
)

_auth_events_total = Counter(
    "postflow_auth_events_total",
    "Authentication protocol events",
    ["event", "outcome"],
    registry=_registry,
)

_UUID_RE = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}",
    flags=re.IGNORECASE,
)
_NUMERIC_SEGMENT_RE = re.compile(r"/\d+(?=/|$)")


def record_request_metrics(
    endpoint: str,
    method: str,
    status_code: int,
    latency_seconds: float,
) -> None:
    """
    R: Record HTTP request metrics.

    Args:
        endpoint: Request path (e.g., "/auth/login")
        method: HTTP method (e.g., "POST")
        status_code: Response status code
        latency_seconds: Request duration in seconds
    """
    normalized = _normalize_endpoint(endpoint)
    _requests_total.labels(
        endpoint=normalized,
        method=method,
        status=_status_bucket(status_code),
    ).inc()
    _request_latency.labels(endpoint=normalized, method=method).observe(
        latency_seconds
    )


def record_auth_event(event: str, outcome: str) -> None:
    """R: Count an auth event, e.g. ("login", "success") or ("refresh", "rejected")."""
    _auth_events_total.labels(event=event, outcome=outcome).inc()


def get_auth_event_count(event: str, outcome: str) -> float:
    """R: Current value of an auth event counter (0 if never recorded)."""
    value = _registry.get_sample_value(
        "postflow_auth_events_total", {"event": event, "outcome": outcome}
    )
    return value or 0.0


def _normalize_endpoint(path: str) -> str:
    """R: Collapse ids in the path (/users/<uuid>/role -> /users/{id}/role)."""
    return _NUMERIC_SEGMENT_RE.sub("/{id}", _UUID_RE.sub("{id}", path))


def _status_bucket(code: int) -> str:
    return f"{code // 100}xx" if 100 <= code < 600 else "other"


def get_metrics_response() -> tuple[bytes, str]:
    """
    R: Generate Prometheus metrics response.

    Returns:
        (body, content_type)
    """
    return generate_latest(_registry), CONTENT_TYPE_LATEST
