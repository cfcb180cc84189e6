"""Prometheus metrics for the share-packet service.

Usage::

    from share_packets.observability.metrics import PACKET_ACCESS_TOTAL

    PACKET_ACCESS_TOTAL.labels(outcome="granted").inc()
"""

from __future__ import annotations

from prometheus_client import (
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
    CONTENT_TYPE_LATEST,
)

# ---------------------------------------------------------------------------
# HTTP request metrics
# ---------------------------------------------------------------------------

HTTP_REQUESTS_TOTAL = Counter(
    "share_packets_http_requests_total",
    "Total HTTP requests by method, path pattern, and status code.",
    labelnames=["method", "path", "status"],
    registry=REGISTRY,
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "share_packets_http_request_duration_seconds",
    "HTTP request latency in seconds.",
    labelnames=["method", "path"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
    registry=REGISTRY,
)

HTTP_REQUESTS_IN_FLIGHT = Gauge(
    "share_packets_http_requests_in_flight",
    "Number of HTTP requests currently being processed.",
    registry=REGISTRY,
)

# ---------------------------------------------------------------------------
# Packet lifecycle metrics
# ---------------------------------------------------------------------------

PACKETS_ISSUED_TOTAL = Counter(
    "share_packets_issued_total",
    "Share packets issued, by whether a passcode was set.",
    labelnames=["passcode"],
    registry=REGISTRY,
)

PACKET_ACCESS_TOTAL = Counter(
    "share_packets_access_total",
    "Access gate decisions by internal outcome.",
    labelnames=["outcome"],
    registry=REGISTRY,
)

PACKETS_REVOKED_TOTAL = Counter(
    "share_packets_revoked_total",
    "Revocation requests, by whether the packet was already revoked.",
    labelnames=["already_revoked"],
    registry=REGISTRY,
)

STORE_UNAVAILABLE_TOTAL = Counter(
    "share_packets_store_unavailable_total",
    "Store failures surfaced to callers as retryable.",
    labelnames=["operation"],
    registry=REGISTRY,
)


def metrics_text() -> tuple[bytes, str]:
    """Return (body, content_type) for a /metrics response."""
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
