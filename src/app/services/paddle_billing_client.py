"""Paddle Billing API 클라이언트"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import httpx


logger = logging.getLogger(__name__)


class PaddleAPIError(RuntimeError):
    """Paddle Billing API 오류"""

    def __init__(
        self,
        message: str,
        status_code: int,
        payload: Optional[Dict[str, Any]] = None,
        *,
        code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload or {}
        self.code = code or self._extract_error_code()

    def _extract_error_code(self) -> Optional[str]:
        """응답 페이로드에서 오류 코드를 추출"""

        error = self.payload.get("error") if isinstance(self.payload, dict) else None
        if isinstance(error, dict):
            return error.get("code") or error.get("type")
        return None


@dataclass
class PaddlePage:
    """목록 API 한 페이지 결과"""

    items: List[Dict[str, Any]] = field(default_factory=list)
    has_more: bool = False
    estimated_total: int = 0

    @classmethod
    def from_response(cls, response: Dict[str, Any]) -> "PaddlePage":
        if not isinstance(response, dict):
            return cls()
        data = response.get("data")
        pagination = (response.get("meta") or {}).get("pagination") or {}
        items = [item for item in data or [] if isinstance(item, dict)]
        try:
            estimated_total = int(pagination.get("estimated_total") or len(items))
        except (TypeError, ValueError):
            estimated_total = len(items)
        return cls(
            items=items,
            has_more=bool(pagination.get("has_more")),
            estimated_total=estimated_total,
        )


class PaddleBillingClient:
    """Paddle Billing REST API 비동기 클라이언트"""

    ERROR_CODE_MESSAGES: Dict[str, str] = {
        "subscription_not_found": "Paddle subscription not found.",
        "customer_not_found": "Paddle customer not found.",
        "resource_not_found": "Requested Paddle resource was not found.",
        "forbidden": "Paddle API permission denied.",
        "invalid_api_key": "Paddle API key is invalid.",
        "validation_error": "Paddle API rejected the request parameters.",
        "rate_limited": "Too many Paddle API calls. Try again shortly.",
    }

    STATUS_MESSAGES: Dict[int, str] = {
        400: "Paddle API request parameters are invalid.",
        401: "Paddle API authentication failed.",
        403: "Paddle API access denied.",
        404: "Requested Paddle resource was not found.",
        409: "Paddle resource state conflict.",
        429: "Paddle API rate limit reached. Try again shortly.",
        500: "Paddle API server error.",
        503: "Paddle API is temporarily unavailable.",
    }

    RETRYABLE_STATUS = {408, 429, 500, 502, 503, 504}

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.paddle.com",
        timeout: float = 15.0,
        *,
        max_retries: int = 3,
        backoff_factor: float = 0.5,
    ) -> None:
        if not api_key or not api_key.strip():
            raise ValueError("Paddle API key is not configured.")

        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max(0, int(max_retries))
        self.backoff_factor = max(0.0, float(backoff_factor))

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

        for attempt in range(self.max_retries + 1):
            try:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.request(method, url, headers=headers, json=json, params=params)
            except httpx.RequestError as exc:
                logger.warning(
                    "[PADDLE] API request network error: %s %s attempt=%s error=%s",
                    method,
                    path,
                    attempt + 1,
                    exc,
                )

                if attempt == self.max_retries:
                    raise PaddleAPIError(
                        "Paddle API network error.",
                        status_code=0,
                        payload={"error": {"message": str(exc)}},
                        code="network_error",
                    ) from exc

                await self._sleep_backoff(attempt)
                continue

            if response.status_code >= 400:
                payload = self._safe_json(response)
                message, code = self._resolve_error_message(payload, response.status_code)

                error = PaddleAPIError(message, response.status_code, payload, code=code)

                if self._is_retryable_status(response.status_code) and attempt < self.max_retries:
                    logger.warning(
                        "[PADDLE] API request retry: %s %s status=%s code=%s attempt=%s",
                        method,
                        path,
                        response.status_code,
                        error.code,
                        attempt + 1,
                    )
                    await self._sleep_backoff(attempt)
                    continue

                logger.error(
                    "[PADDLE] API request failed: %s %s status=%s code=%s",
                    method,
                    path,
                    response.status_code,
                    error.code,
                )
                raise error

            try:
                return response.json()
            except ValueError as exc:
                logger.error("[PADDLE] failed to parse API response: %s", exc)
                raise PaddleAPIError(
                    "Could not parse Paddle API response.",
                    response.status_code,
                    payload={"error": {"message": str(exc)}},
                    code="parse_error",
                ) from exc

        # 이 지점에 도달했다면 모든 재시도가 실패한 것
        raise PaddleAPIError("Paddle API request failed repeatedly.", status_code=0)

    async def list_subscriptions(
        self,
        customer_ids: Sequence[str],
        per_page: int = 20,
    ) -> PaddlePage:
        """고객 ID 기준 구독 목록 조회 (첫 페이지)"""

        params = {
            "customer_id": ",".join(customer_ids),
            "per_page": per_page,
        }
        response = await self._request("GET", "/subscriptions", params=params)
        return PaddlePage.from_response(response)

    async def list_customers(self, emails: Sequence[str], per_page: int = 1) -> PaddlePage:
        """이메일 기준 고객 검색"""

        params = {
            "email": ",".join(emails),
            "per_page": per_page,
        }
        response = await self._request("GET", "/customers", params=params)
        return PaddlePage.from_response(response)

    async def get_customer(self, customer_id: str) -> Dict[str, Any]:
        """고객 세부 정보를 조회"""

        response = await self._request("GET", f"/customers/{customer_id}")
        return response.get("data") or {}

    async def _sleep_backoff(self, attempt: int) -> None:
        """재시도 전 지수 백오프 딜레이"""

        delay = self.backoff_factor * (2**attempt)
        if delay > 0:
            await asyncio.sleep(delay)

    def _is_retryable_status(self, status_code: int) -> bool:
        return status_code in self.RETRYABLE_STATUS

    def _resolve_error_message(self, payload: Dict[str, Any], status_code: int) -> tuple[str, Optional[str]]:
        """Paddle 오류 응답을 기반으로 메시지와 코드 결정"""

        error = payload.get("error") if isinstance(payload, dict) else None
        if isinstance(error, dict):
            code = error.get("code") or error.get("type")
            if code and code in self.ERROR_CODE_MESSAGES:
                return self.ERROR_CODE_MESSAGES[code], code

            detail = error.get("detail") or error.get("message")
            if isinstance(detail, str) and detail.strip():
                return detail, code

        status_message = self.STATUS_MESSAGES.get(status_code)
        if status_message:
            return status_message, None

        return "Paddle API request failed.", None

    @staticmethod
    def _safe_json(response: httpx.Response) -> Dict[str, Any]:
        """JSON 파싱 실패 시 안전하게 fallback"""

        try:
            payload = response.json()
            return payload if isinstance(payload, dict) else {"data": payload}
        except ValueError:
            return {"error": {"message": response.text}}
