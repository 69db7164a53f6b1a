"""SubscriptionService 테스트"""
import pytest

from mocks import MockDatabaseHelper, MockPaddleClient, MockUser
from services.paddle_billing_client import PaddleAPIError
from services.subscription_service import SubscriptionService, is_active_status


def _service(customer_email="test@example.com", customer_id="ctm_1", subscriptions=None):
    helper = MockDatabaseHelper()
    if customer_email:
        helper.customers[customer_id] = {"customer_id": customer_id, "email": customer_email, "user_id": None}
    paddle = MockPaddleClient({customer_id: subscriptions or []})
    return SubscriptionService(helper, paddle), helper, paddle


@pytest.mark.parametrize(
    "status, expected",
    [("active", True), ("trialing", True), ("past_due", True), ("PAST_DUE", True),
     ("canceled", False), ("paused", False), (None, False)],
)
def test_is_active_status(status, expected):
    assert is_active_status(status) is expected


@pytest.mark.asyncio
async def test_get_customer_id_without_email_returns_empty():
    service, _, _ = _service()
    assert await service.get_customer_id(MockUser(email=None)) == ""
    assert await service.get_customer_id({"email": ""}) == ""


@pytest.mark.asyncio
async def test_has_active_subscription_true_for_past_due():
    service, _, paddle = _service(subscriptions=[{"id": "sub_1", "status": "past_due"}])

    assert await service.has_active_subscription(MockUser()) is True
    assert paddle.calls[0]["per_page"] == 1


@pytest.mark.asyncio
async def test_has_active_subscription_false_without_customer():
    service, _, paddle = _service(customer_email=None)

    assert await service.has_active_subscription(MockUser()) is False
    assert paddle.calls == []


@pytest.mark.asyncio
async def test_has_active_subscription_swallows_paddle_error():
    service, _, paddle = _service(subscriptions=[{"status": "active"}])
    paddle.error = PaddleAPIError("boom", 500)

    assert await service.has_active_subscription(MockUser()) is False


@pytest.mark.asyncio
async def test_subscription_status_shapes():
    service, _, _ = _service(subscriptions=[{"status": "canceled"}])
    assert await service.get_subscription_status(MockUser()) == {
        "has_subscription": False,
        "has_customer_id": True,
        "needs_onboarding": True,
    }

    no_customer, _, _ = _service(customer_email=None)
    assert await no_customer.get_subscription_status(MockUser()) == {
        "has_subscription": False,
        "has_customer_id": False,
        "needs_onboarding": True,
    }

    active, _, _ = _service(subscriptions=[{"status": "trialing"}])
    status = await active.get_subscription_status(MockUser())
    assert status["has_subscription"] is True
    assert status["needs_onboarding"] is False


@pytest.mark.asyncio
async def test_get_subscriptions_falls_back_to_paddle_customer_search():
    service, helper, paddle = _service(customer_email=None)
    paddle.customers["ctm_remote"] = {"id": "ctm_remote", "email": "test@example.com"}
    paddle.subscriptions["ctm_remote"] = [{"id": "sub_9", "status": "active"}]

    result = await service.get_subscriptions(MockUser())

    assert result["data"] == [{"id": "sub_9", "status": "active"}]
    assert result["total_records"] == 1
    # 찾은 고객은 DB에 저장되어 다음 요청부터 재사용
    assert helper.customers["ctm_remote"]["user_id"] == "test-user-id"


@pytest.mark.asyncio
async def test_get_subscriptions_empty_when_no_customer_anywhere():
    service, _, _ = _service(customer_email=None)

    assert await service.get_subscriptions(MockUser()) == {"data": [], "has_more": False, "total_records": 0}


@pytest.mark.asyncio
async def test_get_subscriptions_error_message():
    service, _, paddle = _service()
    paddle.error = PaddleAPIError("boom", 500)

    assert await service.get_subscriptions(MockUser()) == {"error": "Something went wrong, please try again later"}


@pytest.mark.asyncio
async def test_validate_extension_access_trialing():
    service, _, paddle = _service(subscriptions=[
        {"id": "sub_old", "status": "canceled"},
        {"id": "sub_new", "status": "trialing", "current_billing_period": {"ends_at": "2025-02-01T00:00:00Z"}},
    ])

    result = await service.validate_extension_access(MockUser())

    assert set(result) == {"isActive", "status", "trialEnding", "message"}
    assert result["isActive"] is True
    assert result["status"] == "trialing"
    assert result["trialEnding"] == "2025-02-01T00:00:00Z"
    assert paddle.calls[0]["per_page"] == 5


@pytest.mark.asyncio
async def test_validate_extension_access_reasons():
    no_customer, _, _ = _service(customer_email=None)
    assert (await no_customer.validate_extension_access(MockUser()))["reason"] == "no_customer"

    expired, _, _ = _service(subscriptions=[{"status": "paused"}])
    result = await expired.validate_extension_access(MockUser())
    assert result["isActive"] is False
    assert result["reason"] == "no_active_subscription"

    active, _, _ = _service(subscriptions=[{"status": "active"}])
    result = await active.validate_extension_access(MockUser())
    assert result["trialEnding"] is None
    assert result["message"] == "Subscription active"


@pytest.mark.asyncio
async def test_validate_extension_access_propagates_paddle_error():
    service, _, paddle = _service()
    paddle.error = PaddleAPIError("boom", 500)

    with pytest.raises(PaddleAPIError):
        await service.validate_extension_access(MockUser())
