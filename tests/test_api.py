"""HTTP surface: routing, status codes and response bodies."""

import json

import pytest
from fastapi.testclient import TestClient

from conftest import SECRET, UI_BASE, RecordingUpstream
from upaygate.common.signing import sign
from upaygate.services.gateway import main

IP = {"cf-connecting-ip": "203.0.113.7"}


@pytest.fixture
def client(monkeypatch, make_gateway, upstream):
    monkeypatch.setattr(main, "gateway", make_gateway(upstream))
    return TestClient(main.app)


def _signed_notification(**overrides) -> dict:
    body = {
        "oid": "TESTabc",
        "id": "UP123",
        "uid": "1",
        "timestamp": 1700000000000,
        "nonce": "n0nce",
        "status": 1,
        "statusCode": 0,
    }
    body.update(overrides)
    body["sign"] = sign(body, SECRET)
    return body


def test_hello_and_fallback(client):
    """`/hello` and unknown paths return the greeting."""

    assert client.get("/hello").text == "Hello World!"
    resp = client.post("/anything/else")
    assert resp.status_code == 200
    assert resp.text == "Hello World!"
    assert client.get("/").text == "Hello World!"


def test_health_and_metrics(client):
    """Health and scrape endpoints are served ahead of the fallback route."""

    assert client.get("/health").json() == {"ok": True}
    client.get("/hello")
    assert "http_requests_total" in client.get("/metrics").text


def test_create_order_requires_identity_header(client, upstream):
    """No client IP header is a 400 and never reaches upstream."""

    resp = client.post("/create-order", follow_redirects=False)
    assert resp.status_code == 400
    assert resp.text == "No ip"
    assert upstream.requests == []


def test_create_order_redirects(client):
    """Successful upstream creation answers 302 to the payment UI."""

    resp = client.get("/create-order", headers=IP, follow_redirects=False)
    assert resp.status_code == 302
    assert resp.headers["location"] == f"{UI_BASE}UP123"


def test_create_order_query_overrides(client, upstream):
    """`uid` and `amount` query params replace the demo defaults."""

    client.post("/create-order?uid=42&amount=9.5", headers=IP, follow_redirects=False)
    body = json.loads(upstream.requests[0].content)
    assert body["uid"] == "42"
    assert body["amount"] == 9.5
    assert body["oid"].startswith("TEST")
    assert client.post("/create-order?amount=0", headers=IP).status_code == 422


def test_create_order_upstream_failure_is_plain_200(monkeypatch, make_gateway):
    """Processor rejection answers 200 with a failure message, not a redirect."""

    monkeypatch.setattr(main, "gateway", make_gateway(RecordingUpstream(body={"code": 0})))
    resp = TestClient(main.app).post("/create-order", headers=IP, follow_redirects=False)
    assert resp.status_code == 200
    assert resp.text == "Create order failed"


def test_sixth_create_order_is_429(client):
    """Five rapid calls from one IP succeed, the sixth is throttled."""

    statuses = [client.post("/create-order", headers=IP, follow_redirects=False).status_code for _ in range(6)]
    assert statuses == [302, 302, 302, 302, 302, 429]
    other = client.post("/create-order", headers={"cf-connecting-ip": "198.51.100.1"}, follow_redirects=False)
    assert other.status_code == 302


def test_notify_success(client):
    """Authentic notification answers `success`."""

    resp = client.post("/notify", json=_signed_notification())
    assert resp.status_code == 200
    assert resp.text == "success"


def test_notify_failed_signature(client):
    """Tampered notification answers `failed` with status 200."""

    body = _signed_notification()
    body["status"] = 2
    resp = client.post("/notify", json=body)
    assert resp.status_code == 200
    assert resp.text == "failed"


def test_notify_float_fields_keep_their_rendering(client):
    """JSON numbers are verified in the form the processor signed them."""

    resp = client.post("/notify", json=_signed_notification(amount=1.23, paid=True))
    assert resp.text == "success"


@pytest.mark.parametrize(
    "content",
    [b"not json", b"[1, 2, 3]", b'"just a string"', b'{"oid": {"nested": true}, "sign": "x"}'],
)
def test_notify_malformed_body_is_400(client, content):
    """Bodies that are not a flat JSON object are client errors."""

    resp = client.post("/notify", content=content, headers={"content-type": "application/json"})
    assert resp.status_code == 400


@pytest.mark.parametrize("amount", ["inf", "-inf", "nan", "Infinity"])
def test_create_order_rejects_non_finite_amount(client, upstream, amount):
    """Non-finite amounts are validation errors, not server errors."""

    resp = client.post(f"/create-order?amount={amount}", headers=IP, follow_redirects=False)
    assert resp.status_code == 422
    assert upstream.requests == []


def test_create_order_defaults_come_from_gateway_config(monkeypatch, make_gateway, cfg, upstream):
    """Injected gateway settings supply the `uid`/`amount` defaults."""

    custom = cfg.model_copy(update={"default_user_id": "77", "default_amount": 4.5})
    gateway = make_gateway(upstream)
    gateway.cfg = custom
    monkeypatch.setattr(main, "gateway", gateway)
    TestClient(main.app).post("/create-order", headers=IP, follow_redirects=False)
    body = json.loads(upstream.requests[0].content)
    assert body["uid"] == "77"
    assert body["amount"] == 4.5


def test_notify_small_float_verifies(client):
    """Amounts below 1e-4 are rendered like the processor renders them."""

    resp = client.post("/notify", json=_signed_notification(amount=0.00001))
    assert resp.text == "success"
