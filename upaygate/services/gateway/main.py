"""Public HTTP entrypoint for the UPay edge gateway.

Routes order creation through the rate limiter and signer to the processor,
and checks the signature on payment notifications the processor sends back.
"""

import time
from contextlib import asynccontextmanager
from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, Query, Request
from fastapi.responses import PlainTextResponse, RedirectResponse

from upaygate.common.config import GatewaySettings, settings
from upaygate.common.errors import MalformedNotification, MissingIdentity, RateLimited, UpstreamRejected, UpstreamTimeout
from upaygate.common.logging import client_ip_ctx, configure_logging, logger, trace_id_ctx
from upaygate.common.metrics import (
    http_request_duration_seconds,
    http_requests_total,
    metrics_response,
    notifications_total,
    orders_created_total,
    orders_failed_total,
)
from upaygate.common.ratelimit import RateLimiter, RedisCounterStore, build_counter_store
from upaygate.common.startup import log_startup_config
from upaygate.common.tracing import instrument_app, setup_tracing
from upaygate.services.gateway.schemas import NotificationMessage
from upaygate.services.gateway.service import OrderGateway
from upaygate.services.gateway.upstream import UpstreamClient

ANY_METHOD = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]
GREETING = "Hello World!"

configure_logging(settings)
setup_tracing(settings)
log_startup_config(
    settings.service_name,
    [
        "SERVICE_NAME",
        "UPAY_API",
        "UPAY_UI",
        "UPAY_NOTIFY",
        "UPAY_REDIRECT",
        "UPAY_PAYMENT_KEY",
        "COUNTER_STORE_BACKEND",
        "REDIS_URL",
        "CLIENT_IP_HEADER",
    ],
)


def build_gateway(cfg: GatewaySettings) -> OrderGateway:
    """Wire limiter, counter store and upstream client from settings."""

    limiter = RateLimiter(
        build_counter_store(cfg),
        limit=cfg.rate_limit_max_attempts,
        window_seconds=cfg.rate_limit_window_seconds,
        service_name=cfg.service_name,
    )
    upstream = UpstreamClient(cfg.upay_api, cfg.upstream_timeout_seconds, service_name=cfg.service_name)
    return OrderGateway(cfg, limiter, upstream)


gateway = build_gateway(settings)


@asynccontextmanager
async def lifespan(_: FastAPI):
    """Release the Redis connection pool on shutdown."""

    yield
    store = gateway.limiter.store
    if isinstance(store, RedisCounterStore):
        await store.close()


app = FastAPI(title="UPay Edge Gateway", lifespan=lifespan)
instrument_app(app)


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    """Bind a correlation id and record request count and latency."""

    trace_id_ctx.set(request.headers.get("x-correlation-id") or str(uuid4()))
    start = perf_counter()
    route = request.url.path
    method = request.method
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        route_obj = request.scope.get("route")
        if route_obj is not None and getattr(route_obj, "path", None):
            route = route_obj.path
        return response
    finally:
        elapsed = max(0.0, perf_counter() - start)
        http_request_duration_seconds.labels(
            service=settings.service_name,
            route=route,
            method=method,
        ).observe(elapsed)
        http_requests_total.labels(
            service=settings.service_name,
            route=route,
            method=method,
            status_code=str(status_code),
        ).inc()


@app.get("/hello")
def hello():
    return PlainTextResponse(GREETING)


@app.get("/health")
def health():
    """Container health check endpoint."""

    return {"ok": True}


@app.get("/metrics")
def metrics():
    """Prometheus scrape endpoint."""

    return metrics_response()


@app.api_route("/create-order", methods=ANY_METHOD)
async def create_order(
    request: Request,
    uid: str | None = Query(default=None, min_length=1),
    amount: float | None = Query(default=None, gt=0, allow_inf_nan=False),
):
    """Create an order upstream and redirect the client to its payment page.

    The processor expects HTTP 200 on upstream failure, so that path does not
    use an error status.
    """

    cfg = gateway.cfg
    deadline = time.monotonic() + cfg.request_timeout_seconds
    try:
        identity = gateway.identity_from_headers(request.headers)
        client_ip_ctx.set(identity)
        redirect_url = await gateway.create_order(
            identity,
            gateway.new_order_id(),
            uid or cfg.default_user_id,
            amount if amount is not None else cfg.default_amount,
            deadline=deadline,
        )
    except MissingIdentity:
        orders_failed_total.labels(service=settings.service_name, reason="missing_identity").inc()
        return PlainTextResponse("No ip", status_code=400)
    except RateLimited:
        orders_failed_total.labels(service=settings.service_name, reason="rate_limited").inc()
        return PlainTextResponse("Too many requests", status_code=429)
    except UpstreamRejected as exc:
        reason = "upstream_timeout" if isinstance(exc, UpstreamTimeout) else "upstream_rejected"
        orders_failed_total.labels(service=settings.service_name, reason=reason).inc()
        logger.warning("create order failed reason=%s code=%s", exc.reason, exc.code)
        return PlainTextResponse("Create order failed")

    orders_created_total.labels(service=settings.service_name).inc()
    return RedirectResponse(redirect_url, status_code=302)


@app.api_route("/notify", methods=ANY_METHOD)
async def notify(request: Request):
    """Check a processor notification; answers `success` or `failed` with HTTP 200."""

    try:
        payload = await request.json()
        if not isinstance(payload, dict):
            raise MalformedNotification("notification body must be a JSON object")
        message = NotificationMessage.model_validate(payload)
        verified = gateway.handle_notification(message)
    except (ValueError, MalformedNotification) as exc:
        # ValidationError and JSONDecodeError are both ValueErrors.
        notifications_total.labels(service=settings.service_name, outcome="malformed").inc()
        logger.warning("[notify] malformed body: %s", exc)
        return PlainTextResponse("Malformed notification", status_code=400)

    if verified:
        notifications_total.labels(service=settings.service_name, outcome="success").inc()
        logger.info("[notify] success %s", payload)
        return PlainTextResponse("success")
    notifications_total.labels(service=settings.service_name, outcome="failed").inc()
    logger.warning("[notify] failed %s", payload)
    return PlainTextResponse("failed")


@app.api_route("/{path:path}", methods=ANY_METHOD)
def fallback(path: str):
    del path
    return PlainTextResponse(GREETING)
