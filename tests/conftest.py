"""Shared fixtures: test environment, fake clock, mocked upstream processor."""

import os

os.environ.setdefault("UPAY_API", "https://api.upay.test")
os.environ.setdefault("UPAY_UI", "https://pay.upay.test/order/")
os.environ.setdefault("UPAY_NOTIFY", "https://gateway.test/notify")
os.environ.setdefault("UPAY_REDIRECT", "https://shop.test/thanks")
os.environ.setdefault("UPAY_PAYMENT_KEY", "test-payment-key")
os.environ.setdefault("COUNTER_STORE_BACKEND", "memory")

import httpx
import pytest

from upaygate.common.config import GatewaySettings
from upaygate.common.ratelimit import InMemoryCounterStore, RateLimiter
from upaygate.services.gateway.service import OrderGateway
from upaygate.services.gateway.upstream import UpstreamClient

UI_BASE = "https://pay.upay.test/order/"
SECRET = "test-payment-key"


class ManualClock:
    """Monotonic stand-in that only moves when a test advances it."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingUpstream:
    """MockTransport handler that records requests and replays a canned reply."""

    def __init__(self, body=None, status_code: int = 200, error: Exception | None = None) -> None:
        self.body = body if body is not None else {"code": 1, "message": "ok", "data": {"id": "UP123"}}
        self.status_code = status_code
        self.error = error
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, json=self.body)


@pytest.fixture
def cfg() -> GatewaySettings:
    return GatewaySettings(
        upay_api="https://api.upay.test",
        upay_ui=UI_BASE,
        upay_notify="https://gateway.test/notify",
        upay_redirect="https://shop.test/thanks",
        upay_payment_key=SECRET,
        counter_store_backend="memory",
    )


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def upstream() -> RecordingUpstream:
    return RecordingUpstream()


@pytest.fixture
def make_gateway(cfg, clock):
    """Build an OrderGateway around an in-memory limiter and a mocked processor."""

    def _make(handler: RecordingUpstream, store=None) -> OrderGateway:
        limiter = RateLimiter(
            InMemoryCounterStore(clock=clock) if store is None else store,
            limit=cfg.rate_limit_max_attempts,
            window_seconds=cfg.rate_limit_window_seconds,
        )
        client = UpstreamClient(cfg.upay_api, cfg.upstream_timeout_seconds, transport=httpx.MockTransport(handler))
        return OrderGateway(cfg, limiter, client)

    return _make
