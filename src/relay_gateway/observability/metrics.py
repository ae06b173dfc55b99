"""Prometheus metrics for the relay gateway.

Everything is registered on the default registry so process metrics are
exported next to the gateway's own.
"""

from __future__ import annotations

from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, Counter, Gauge, Histogram, generate_latest

# Upstream calls include file uploads to Telegram, hence the long tail.
_LATENCY_BUCKETS = (0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 15.0, 60.0, 300.0)

# ── Inbound HTTP ──────────────────────────────────────────────────────

HTTP_REQUESTS_TOTAL = Counter(
    "gateway_http_requests_total",
    "Requests served, by method, bounded path label and response status.",
    labelnames=["method", "path", "status"],
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "gateway_http_request_duration_seconds",
    "Time from request received to response ready, upstream call included.",
    labelnames=["method", "path"],
    buckets=_LATENCY_BUCKETS,
)

HTTP_REQUESTS_IN_FLIGHT = Gauge(
    "gateway_http_requests_in_flight",
    "Requests currently being served.",
)

# ── Proxying ──────────────────────────────────────────────────────────

PROXY_RESULTS_TOTAL = Counter(
    "gateway_proxy_results_total",
    "Proxied requests by upstream and outcome (relayed, auth_error, upstream_error).",
    labelnames=["upstream", "outcome"],
)

UPSTREAM_DURATION_SECONDS = Histogram(
    "gateway_upstream_duration_seconds",
    "Duration of the upstream exchange, failed attempts included.",
    labelnames=["upstream"],
    buckets=_LATENCY_BUCKETS,
)

BODY_SANITIZED_TOTAL = Counter(
    "gateway_body_sanitized_total",
    "Bodies run through the footer sanitizer, by body kind and whether it changed.",
    labelnames=["kind", "changed"],
)


def metrics_text() -> tuple[bytes, str]:
    """Exposition body and its content type, for the /metrics route."""
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
