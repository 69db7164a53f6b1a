"""Firebase Cloud Messaging push delivery to the browser extension."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from core.interfaces import IDatabaseHelper, IPushService

logger = logging.getLogger(__name__)

FCM_SEND_URL = "https://fcm.googleapis.com/fcm/send"

PUSH_SUBSCRIPTION_UPDATED = "SUBSCRIPTION_UPDATED"
PUSH_SUBSCRIPTION_CANCELLED = "SUBSCRIPTION_CANCELLED"

# FCM error codes meaning the token will never be deliverable again
INVALID_TOKEN_ERRORS = ("NotRegistered", "InvalidRegistration")


@dataclass
class PushResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


class PushService(IPushService):
    """Sends data messages to the FCM tokens registered by the extension."""

    def __init__(
        self,
        db_helper: IDatabaseHelper,
        server_key: Optional[str] = None,
        *,
        send_url: str = FCM_SEND_URL,
        timeout: float = 10.0,
    ) -> None:
        self.db_helper = db_helper
        self.server_key = (server_key or "").strip() or None
        self.send_url = send_url
        self.timeout = timeout

    async def send_fcm_push(self, fcm_token: str, push_type: str, timestamp: Optional[int] = None) -> PushResult:
        if not self.server_key:
            logger.error("[PUSH] FIREBASE_SERVER_KEY not configured")
            return PushResult(success=False, error="FCM not configured - missing FIREBASE_SERVER_KEY")

        body = {
            "to": fcm_token,
            "data": {
                "type": push_type,
                "timestamp": timestamp or int(time.time() * 1000),
            },
            # high priority wakes the extension service worker
            "priority": "high",
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"key={self.server_key}",
        }

        logger.info("[PUSH] sending FCM push: %s", push_type)
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.send_url, json=body, headers=headers)
        except httpx.HTTPError as exc:
            logger.error("[PUSH] FCM request error: %s", exc)
            return PushResult(success=False, error=str(exc))

        if response.status_code >= 400:
            logger.error("[PUSH] FCM push failed: %s %s", response.status_code, response.text)
            return PushResult(
                success=False,
                error=f"FCM API returned {response.status_code}: {response.text}",
            )

        try:
            result: Dict[str, Any] = response.json()
        except ValueError:
            return PushResult(success=False, error="FCM API returned a non-JSON response")

        first = (result.get("results") or [{}])[0] or {}
        if result.get("failure", 0) > 0:
            logger.error("[PUSH] FCM push rejected: %s", first.get("error"))
            return PushResult(success=False, error=first.get("error") or "unknown FCM error")

        logger.info("[PUSH] FCM push sent: %s", first.get("message_id"))
        return PushResult(success=True, message_id=first.get("message_id"))

    async def send_push_to_customer(self, customer_id: str, push_type: str) -> Dict[str, int]:
        """Push to every token of the customer. Returns sent/failed counts."""

        try:
            tokens = await self.db_helper.get_fcm_tokens_for_customer(customer_id)
        except Exception as e:
            logger.error("[PUSH] failed to fetch FCM tokens for %s: %s", customer_id, e)
            return {"sent": 0, "failed": 0}

        if not tokens:
            logger.info("[PUSH] no FCM tokens for customer %s", customer_id)
            return {"sent": 0, "failed": 0}

        sent = 0
        failed = 0
        for token in tokens:
            result = await self.send_fcm_push(token, push_type)
            if result.success:
                sent += 1
                await self.db_helper.touch_fcm_token(token)
                continue

            failed += 1
            if result.error and any(code in result.error for code in INVALID_TOKEN_ERRORS):
                logger.info("[PUSH] removing invalid FCM token %s...", token[:12])
                await self.db_helper.delete_fcm_token(token)

        logger.info("[PUSH] push complete for %s: %s sent, %s failed", customer_id, sent, failed)
        return {"sent": sent, "failed": failed}
