"""Paddle 웹훅 라우트 테스트"""
import hashlib
import hmac
import json
import time

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from core.config import settings
from core.middleware import setup_exception_handlers
from mocks import MockWebhookProcessor, configure_test_dependencies
from routers import paddle_router
from routers.paddle_router import SignatureError, verify_paddle_signature

SECRET = "whsec_router_test"


def _sign(raw: bytes, secret: str = SECRET, ts: int = None) -> str:
    ts = int(time.time()) if ts is None else ts
    digest = hmac.new(secret.encode(), f"{ts}:".encode() + raw, hashlib.sha256).hexdigest()
    return f"ts={ts};h1={digest}"


def _body(event_type="subscription.updated", event_id="evt_123") -> bytes:
    return json.dumps({
        "event_id": event_id,
        "event_type": event_type,
        "occurred_at": "2025-01-01T00:00:00Z",
        "data": {"id": "sub_1", "status": "active", "customer_id": "ctm_1"},
    }).encode()


@pytest.fixture
def webhook_settings(monkeypatch):
    monkeypatch.setattr(settings, "PADDLE_NOTIFICATION_WEBHOOK_SECRET", SECRET)
    monkeypatch.setattr(settings, "PADDLE_WEBHOOK_MAX_VARIANCE", 5)


def _client(processor=None):
    doubles = configure_test_dependencies(webhook_processor=processor)
    app = FastAPI()
    setup_exception_handlers(app)
    app.include_router(paddle_router.router)
    return TestClient(app), doubles


@pytest.mark.parametrize("path", ["/api/webhook", "/api/paddle/webhook", "/api/paddle-webhook"])
def test_valid_webhook_is_dispatched_on_every_path(webhook_settings, path):
    client, doubles = _client()
    raw = _body()

    response = client.post(path, content=raw, headers={"Paddle-Signature": _sign(raw)})

    assert response.status_code == 200
    assert response.json() == {"status": 200, "event_name": "subscription.updated", "event_id": "evt_123"}
    assert doubles.webhook_processor.events[0].event_type == "subscription.updated"


def test_missing_signature_header(webhook_settings):
    client, doubles = _client()

    response = client.post("/api/webhook", content=_body())

    assert response.status_code == 400
    assert response.json() == {"error": "Missing signature from header"}
    assert doubles.webhook_processor.events == []


def test_empty_body(webhook_settings):
    client, _ = _client()

    response = client.post("/api/webhook", content=b"", headers={"Paddle-Signature": "ts=1;h1=abc"})

    assert response.status_code == 400
    assert response.json() == {"error": "Missing signature from header"}


def test_missing_secret_returns_500(monkeypatch):
    monkeypatch.setattr(settings, "PADDLE_NOTIFICATION_WEBHOOK_SECRET", None)
    client, _ = _client()
    raw = _body()

    response = client.post("/api/webhook", content=raw, headers={"Paddle-Signature": _sign(raw)})

    assert response.status_code == 500


def test_invalid_signature(webhook_settings):
    client, doubles = _client()
    raw = _body()

    response = client.post("/api/webhook", content=raw, headers={"Paddle-Signature": _sign(raw, secret="wrong")})

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid signature"}
    assert doubles.webhook_processor.events == []


def test_tampered_body_is_rejected(webhook_settings):
    client, _ = _client()
    raw = _body()
    signature = _sign(raw)

    response = client.post("/api/webhook", content=_body(event_id="evt_other"), headers={"Paddle-Signature": signature})

    assert response.json() == {"error": "Invalid signature"}


def test_invalid_json_after_valid_signature(webhook_settings):
    client, _ = _client()
    raw = b"not json"

    response = client.post("/api/webhook", content=raw, headers={"Paddle-Signature": _sign(raw)})

    assert response.status_code == 400


def test_missing_event_type(webhook_settings):
    client, _ = _client()
    raw = json.dumps({"event_id": "evt_1", "data": {}}).encode()

    response = client.post("/api/webhook", content=raw, headers={"Paddle-Signature": _sign(raw)})

    assert response.status_code == 400


def test_processor_error_returns_500(webhook_settings):
    client, _ = _client(MockWebhookProcessor(error=RuntimeError("db down")))
    raw = _body()

    response = client.post("/api/webhook", content=raw, headers={"Paddle-Signature": _sign(raw)})

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}


def test_get_is_not_allowed(webhook_settings):
    client, _ = _client()

    assert client.get("/api/webhook").status_code == 405


def test_verify_accepts_any_rotated_h1():
    raw = b'{"event_type":"x"}'
    ts = 1_700_000_000
    good = _sign(raw, ts=ts).split("h1=")[1]

    verify_paddle_signature(raw, f"ts={ts};h1=deadbeef;h1={good}", SECRET, max_variance=5, now=ts + 1)


def test_verify_rejects_stale_timestamp():
    raw = b'{"event_type":"x"}'
    ts = 1_700_000_000

    with pytest.raises(SignatureError):
        verify_paddle_signature(raw, _sign(raw, ts=ts), SECRET, max_variance=5, now=ts + 60)

    # 0이면 타임스탬프 검사 생략
    verify_paddle_signature(raw, _sign(raw, ts=ts), SECRET, max_variance=0, now=ts + 60)


@pytest.mark.parametrize("header", ["h1=abc", "ts=123", "ts=abc;h1=def", "garbage"])
def test_verify_rejects_malformed_header(header):
    with pytest.raises(SignatureError):
        verify_paddle_signature(b"{}", header, SECRET, max_variance=0)
