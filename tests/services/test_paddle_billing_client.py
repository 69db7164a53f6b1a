"""PaddleBillingClient 단위 테스트"""
import asyncio
from typing import Any, Dict, List

import httpx
import pytest

from services.paddle_billing_client import PaddleAPIError, PaddleBillingClient, PaddlePage


class _DummyAsyncClient:
    """httpx.AsyncClient 대체용 간단한 더블"""

    def __init__(self, responses: List[httpx.Response], calls: List[Dict[str, Any]]) -> None:
        self._responses = responses
        self._calls = calls

    async def __aenter__(self) -> "_DummyAsyncClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return False

    async def request(self, method: str, url: str, headers=None, json=None, params=None) -> httpx.Response:  # noqa: D401 - 테스트 더블
        self._calls.append({"method": method, "url": url, "headers": headers, "params": params})
        try:
            return self._responses.pop(0)
        except IndexError as exc:  # pragma: no cover - 테스트 보조 코드
            raise AssertionError("예상보다 많은 요청이 발생했습니다") from exc


def _patch_async_client(monkeypatch, responses: List[httpx.Response]) -> List[Dict[str, Any]]:
    """httpx.AsyncClient를 더블로 교체하고 호출 기록 반환"""

    response_queue = list(responses)
    calls: List[Dict[str, Any]] = []

    def _factory(*args, **kwargs):  # noqa: D401 - 테스트 헬퍼
        return _DummyAsyncClient(response_queue, calls)

    monkeypatch.setattr("services.paddle_billing_client.httpx.AsyncClient", _factory)
    return calls


def test_list_subscriptions_success(monkeypatch):
    """목록 응답을 PaddlePage로 변환하고 쿼리 파라미터를 전달한다"""

    response = httpx.Response(
        status_code=200,
        json={
            "data": [{"id": "sub_1", "status": "active"}],
            "meta": {"pagination": {"has_more": True, "estimated_total": 7}},
        },
    )
    calls = _patch_async_client(monkeypatch, [response])

    async def _run():
        client = PaddleBillingClient(api_key="test-key", base_url="https://example.com/", backoff_factor=0)
        return await client.list_subscriptions(["ctm_1"], per_page=1)

    page = asyncio.run(_run())
    assert page.items == [{"id": "sub_1", "status": "active"}]
    assert page.has_more is True
    assert page.estimated_total == 7

    assert calls[0]["method"] == "GET"
    assert calls[0]["url"] == "https://example.com/subscriptions"
    assert calls[0]["params"] == {"customer_id": "ctm_1", "per_page": 1}
    assert calls[0]["headers"]["Authorization"] == "Bearer test-key"


def test_list_customers_by_email(monkeypatch):
    response = httpx.Response(status_code=200, json={"data": [{"id": "ctm_9", "email": "a@b.com"}]})
    calls = _patch_async_client(monkeypatch, [response])

    async def _run():
        client = PaddleBillingClient(api_key="test-key", base_url="https://example.com", backoff_factor=0)
        return await client.list_customers(["a@b.com"])

    page = asyncio.run(_run())
    assert page.items[0]["id"] == "ctm_9"
    assert page.estimated_total == 1
    assert calls[0]["params"] == {"email": "a@b.com", "per_page": 1}


def test_get_customer_returns_data(monkeypatch):
    response = httpx.Response(status_code=200, json={"data": {"id": "ctm_1", "email": "x@y.com"}})
    calls = _patch_async_client(monkeypatch, [response])

    async def _run():
        client = PaddleBillingClient(api_key="test-key", base_url="https://example.com", backoff_factor=0)
        return await client.get_customer("ctm_1")

    assert asyncio.run(_run()) == {"id": "ctm_1", "email": "x@y.com"}
    assert calls[0]["url"] == "https://example.com/customers/ctm_1"


def test_retry_then_success(monkeypatch):
    """재시도 가능 오류 뒤 성공하면 최종 성공 결과를 반환한다"""

    first = httpx.Response(status_code=500, json={"error": {"code": "server_error", "message": "boom"}})
    second = httpx.Response(status_code=200, json={"data": {"id": "ctm_123", "email": "buyer@example.com"}})
    calls = _patch_async_client(monkeypatch, [first, second])

    async def _run():
        client = PaddleBillingClient(
            api_key="test-key",
            base_url="https://example.com",
            max_retries=1,
            backoff_factor=0,
        )
        return await client.get_customer("ctm_123")

    result = asyncio.run(_run())
    assert result == {"id": "ctm_123", "email": "buyer@example.com"}
    assert len(calls) == 2


def test_retry_exhausted_raises_last_error(monkeypatch):
    responses = [
        httpx.Response(status_code=503, json={}),
        httpx.Response(status_code=503, json={}),
    ]
    _patch_async_client(monkeypatch, responses)

    async def _run():
        client = PaddleBillingClient(api_key="test-key", max_retries=1, backoff_factor=0)
        await client.get_customer("ctm_1")

    with pytest.raises(PaddleAPIError) as excinfo:
        asyncio.run(_run())

    assert excinfo.value.status_code == 503
    assert str(excinfo.value) == "Paddle API is temporarily unavailable."


def test_error_mapping_customer_not_found(monkeypatch):
    """고객을 찾지 못한 경우 매핑된 오류 메시지를 반환한다"""

    response = httpx.Response(
        status_code=404,
        json={"error": {"code": "customer_not_found", "message": "not found"}},
    )
    _patch_async_client(monkeypatch, [response])

    async def _run():
        client = PaddleBillingClient(api_key="test-key", base_url="https://example.com", backoff_factor=0)
        await client.get_customer("ctm_404")

    with pytest.raises(PaddleAPIError) as excinfo:
        asyncio.run(_run())

    error = excinfo.value
    assert error.status_code == 404
    assert error.code == "customer_not_found"
    assert str(error) == "Paddle customer not found."


def test_paddle_page_tolerates_missing_meta():
    page = PaddlePage.from_response({"data": [{"id": "a"}, "junk"]})
    assert page.items == [{"id": "a"}]
    assert page.has_more is False
    assert page.estimated_total == 1

    assert PaddlePage.from_response(None).items == []


def test_missing_api_key_error():
    """API 키가 없으면 명확한 ValueError를 발생시킨다"""

    with pytest.raises(ValueError) as excinfo:
        PaddleBillingClient(api_key=" ")

    assert "Paddle API key" in str(excinfo.value)
