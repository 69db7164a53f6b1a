"""확장 프로그램 API 테스트"""
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from core.auth_middleware import AuthMiddleware
from core.config import settings
from core.middleware import setup_cors, setup_exception_handlers
from mocks import MockAuthService, MockSubscriptionService, MockUser, configure_test_dependencies
from routers import extension_router

ORIGIN = "chrome-extension://abcdef"
AUTH = {"Authorization": "Bearer tok", "Origin": ORIGIN}
SUBSCRIPTION = {"endpoint": "https://push.example/abc", "keys": {"p256dh": "k", "auth": "a"}}


def _client(subscription_service=None, with_middleware=False):
    doubles = configure_test_dependencies(
        auth_service=MockAuthService({"tok": MockUser("user-1", "buyer@example.com")}),
        subscription_service=subscription_service,
    )
    app = FastAPI()
    setup_exception_handlers(app)
    if with_middleware:
        app.middleware("http")(AuthMiddleware(lambda: doubles.auth_service))
        setup_cors(app)
    app.include_router(extension_router.router)
    return TestClient(app), doubles


def test_validate_requires_bearer_token():
    client, _ = _client()

    response = client.get("/api/extension/validate", headers={"Origin": ORIGIN})

    assert response.status_code == 401
    assert response.json() == {
        "isActive": False,
        "reason": "not_authenticated",
        "message": "Please sign in to continue",
    }
    assert response.headers["access-control-allow-origin"] == ORIGIN


def test_validate_ignores_session_cookie():
    client, _ = _client()
    client.cookies.set("sb-access-token", "tok")

    assert client.get("/api/extension/validate").status_code == 401


def test_validate_returns_access_result():
    access = {"isActive": True, "status": "trialing", "trialEnding": "2025-02-01", "message": "Free trial active"}
    client, _ = _client(MockSubscriptionService(customer_id="ctm_1", access=access))

    response = client.get("/api/extension/validate", headers=AUTH)

    assert response.status_code == 200
    assert response.json() == access
    assert response.headers["access-control-allow-credentials"] == "true"


def test_validate_error_returns_500():
    service = MockSubscriptionService(customer_id="ctm_1")
    service.access_error = RuntimeError("paddle down")
    client, _ = _client(service)

    response = client.get("/api/extension/validate", headers=AUTH)

    assert response.status_code == 500
    assert response.json()["isActive"] is False
    assert response.json()["reason"] == "error"


@pytest.mark.parametrize(
    "method, path, body",
    [
        ("post", "/api/extension/register-push", {"subscription": SUBSCRIPTION}),
        ("post", "/api/extension/register-fcm", {"fcm_token": "x"}),
        ("post", "/api/extension/validate-push", {"subscription": SUBSCRIPTION}),
        ("post", "/api/extension/validate-fcm", {"fcm_token": "x"}),
        ("get", "/api/extension/subscription-status", None),
    ],
)
def test_unauthenticated_routes_report_reason(method, path, body):
    client, _ = _client()

    kwargs = {"json": body} if body is not None else {}
    response = getattr(client, method)(path, headers={"Origin": ORIGIN}, **kwargs)

    assert response.status_code == 401
    assert response.json()["reason"] == "not_authenticated"
    assert response.json()["message"] == "Authentication required"


def test_middleware_lookup_is_reused():
    client, doubles = _client(with_middleware=True)

    response = client.get("/api/extension/validate", headers=AUTH)

    assert response.status_code == 200
    assert doubles.auth_service.lookups == ["tok"]


def test_preflight_is_answered_by_cors_middleware():
    client, _ = _client(with_middleware=True)

    response = client.options(
        "/api/extension/register-fcm",
        headers={
            "Origin": ORIGIN,
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "authorization, content-type",
        },
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == ORIGIN
    assert response.headers["access-control-allow-credentials"] == "true"
    assert "POST" in response.headers["access-control-allow-methods"]


def test_register_push_requires_endpoint():
    client, _ = _client()

    response = client.post("/api/extension/register-push", json={"subscription": {"keys": {}}}, headers=AUTH)

    assert response.status_code == 400
    assert response.json() == {"error": "subscription with endpoint is required"}


def test_register_push_saves_with_customer():
    client, doubles = _client(MockSubscriptionService(customer_id="ctm_1"))

    response = client.post("/api/extension/register-push", json={"subscription": SUBSCRIPTION}, headers=AUTH)

    assert response.json()["success"] is True
    assert response.json()["customerId"] == "ctm_1"
    saved = doubles.db_helper.push_subscriptions["https://push.example/abc"]
    assert saved["user_id"] == "user-1"
    assert saved["customer_id"] == "ctm_1"


def test_register_fcm_without_customer_stores_null():
    client, doubles = _client()

    response = client.post("/api/extension/register-fcm", json={"fcm_token": "fcm-1"}, headers=AUTH)

    assert response.json()["customerId"] is None
    assert doubles.db_helper.fcm_tokens["fcm-1"]["customer_id"] is None


def test_register_fcm_requires_token():
    client, _ = _client()

    response = client.post("/api/extension/register-fcm", json={}, headers=AUTH)

    assert response.status_code == 400
    assert response.json() == {"error": "fcm_token is required"}


def test_validate_push_unknown_endpoint_needs_registration():
    client, _ = _client()

    response = client.post("/api/extension/validate-push", json={"subscription": SUBSCRIPTION}, headers=AUTH)

    assert response.status_code == 200
    assert response.json() == {
        "valid": False,
        "message": "Subscription not registered",
        "needsRegistration": True,
    }


def test_validate_push_registered_endpoint():
    client, _ = _client(MockSubscriptionService(customer_id="ctm_1"))
    client.post("/api/extension/register-push", json={"subscription": SUBSCRIPTION}, headers=AUTH)

    body = client.post("/api/extension/validate-push", json={"subscription": SUBSCRIPTION}, headers=AUTH).json()

    assert body["valid"] is True
    assert body["subscription"] == {"createdAt": "2025-01-01T00:00:00+00:00", "customerId": "ctm_1"}


def test_validate_push_other_users_endpoint_is_not_valid():
    client, doubles = _client()
    doubles.db_helper.push_subscriptions[SUBSCRIPTION["endpoint"]] = {
        "user_id": "someone-else",
        "customer_id": None,
        "endpoint": SUBSCRIPTION["endpoint"],
    }

    body = client.post("/api/extension/validate-push", json={"subscription": SUBSCRIPTION}, headers=AUTH).json()

    assert body["valid"] is False
    assert body["needsRegistration"] is True


def test_validate_push_requires_endpoint():
    client, _ = _client()

    response = client.post("/api/extension/validate-push", json={}, headers=AUTH)

    assert response.status_code == 400
    assert response.json()["valid"] is False


def test_validate_fcm_flow():
    client, _ = _client()

    missing = client.post("/api/extension/validate-fcm", json={"fcm_token": "fcm-1"}, headers=AUTH).json()
    client.post("/api/extension/register-fcm", json={"fcm_token": "fcm-1"}, headers=AUTH)
    found = client.post("/api/extension/validate-fcm", json={"fcm_token": "fcm-1"}, headers=AUTH).json()

    assert missing == {"valid": False, "message": "Token not registered", "needsRegistration": True}
    assert found["valid"] is True
    assert found["message"] == "Token is valid"
    assert found["token"] == {"createdAt": "2025-01-01T00:00:00+00:00", "customerId": None}


def test_validate_fcm_requires_token():
    client, _ = _client()

    response = client.post("/api/extension/validate-fcm", json={"fcm_token": "  "}, headers=AUTH)

    assert response.status_code == 400
    assert response.json() == {"valid": False, "message": "fcm_token is required"}


def test_subscription_status_not_registered():
    client, _ = _client()

    body = client.get("/api/extension/subscription-status", headers=AUTH).json()

    assert body["registered"] is False
    assert body["status"] == "not_registered"
    assert body["details"]["subscriptionCount"] == 0


@pytest.mark.parametrize(
    "customer_id, row_customer, expected",
    [
        ("", None, "pending_customer"),
        ("ctm_1", None, "pending_customer"),
        ("ctm_1", "ctm_1", "fully_registered"),
    ],
)
def test_subscription_status_progression(customer_id, row_customer, expected):
    client, doubles = _client(MockSubscriptionService(customer_id=customer_id))
    doubles.db_helper.push_subscriptions["https://push/1"] = {
        "user_id": "user-1",
        "customer_id": row_customer,
        "endpoint": "https://push/1",
        "updated_at": "2025-01-02T00:00:00+00:00",
    }

    body = client.get("/api/extension/subscription-status", headers=AUTH).json()

    assert body["registered"] is True
    assert body["status"] == expected
    assert body["details"] == {
        "userId": "user-1",
        "email": "buyer@example.com",
        "customerId": customer_id or None,
        "subscriptionCount": 1,
        "hasCustomerLinked": bool(row_customer),
        "lastUpdated": "2025-01-02T00:00:00+00:00",
    }


def test_rate_limit_returns_429(monkeypatch):
    monkeypatch.setattr(settings, "EXTENSION_RATE_LIMIT", 2)
    monkeypatch.setattr(settings, "EXTENSION_RATE_WINDOW_SECONDS", 60)
    client, _ = _client()

    statuses = [client.get("/api/extension/validate", headers=AUTH).status_code for _ in range(3)]

    assert statuses == [200, 200, 429]
    limited = client.get("/api/extension/validate", headers=AUTH)
    assert int(limited.headers["retry-after"]) > 0
    assert limited.json()["retryAfter"] == int(limited.headers["retry-after"])
    # 엔드포인트별로 별도 집계
    assert client.get("/api/extension/subscription-status", headers=AUTH).status_code == 200
