"""Prometheus metric definitions for the gateway."""

from prometheus_client import Counter, Histogram, generate_latest
from starlette.responses import Response


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["service", "route", "method", "status_code"],
)
http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration seconds",
    ["service", "route", "method"],
)
orders_created_total = Counter("orders_created_total", "Orders accepted by upstream", ["service"])
orders_failed_total = Counter(
    "orders_failed_total",
    "Order creation attempts that did not produce a redirect",
    ["service", "reason"],
)
upstream_latency_seconds = Histogram(
    "upstream_latency_seconds",
    "Upstream order API round-trip seconds",
    ["service"],
)
rate_limit_decisions_total = Counter(
    "rate_limit_decisions_total",
    "Rate limiter admission decisions",
    ["service", "decision"],
)
counter_store_errors_total = Counter(
    "counter_store_errors_total",
    "Counter store failures that triggered fail-open",
    ["service"],
)
notifications_total = Counter(
    "notifications_total",
    "Inbound payment notifications by verification outcome",
    ["service", "outcome"],
)


def metrics_response() -> Response:
    """Expose all registered Prometheus metrics in text format."""

    return Response(content=generate_latest(), media_type="text/plain")
