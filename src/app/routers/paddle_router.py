"""
Paddle Webhook Router

Receives Paddle Billing notifications:
- Paddle-Signature verification with the notification secret (HMAC-SHA256)
- payload parsing into a WebhookEvent
- a single dispatch call into the webhook processor

The same handler is mounted on every path Paddle has been configured with.
"""
import hashlib
import hmac
import json
import logging
import time
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from core.config import settings
from core.factory import ServiceFactory
from core.interfaces import IWebhookProcessor
from schemas import WebhookEvent

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks", "paddle"])

WEBHOOK_ROUTES = (
    "/api/webhook",
    "/api/paddle/webhook",
    "/api/paddle-webhook",
)


class SignatureError(Exception):
    pass


def get_webhook_processor() -> IWebhookProcessor:
    return ServiceFactory.get_webhook_processor()


def _parse_signature_header(signature: str) -> tuple[Optional[str], List[str]]:
    ts: Optional[str] = None
    hashes: List[str] = []
    for chunk in signature.split(";"):
        chunk = chunk.strip()
        if not chunk or "=" not in chunk:
            continue
        k, v = chunk.split("=", 1)
        k, v = k.strip(), v.strip()
        if k == "ts":
            ts = v
        elif k == "h1" and v:
            hashes.append(v)
    return ts, hashes


def verify_paddle_signature(
    raw: bytes,
    signature: str,
    secret: str,
    max_variance: int = 5,
    now: Optional[float] = None,
) -> None:
    """Verify a Paddle-Signature header (`ts=...;h1=...`) against the raw body.

    Raises SignatureError when the header is malformed, the timestamp is
    outside `max_variance` seconds (0 disables the check) or no h1 matches.
    """
    ts, provided = _parse_signature_header(signature)
    if not ts or not provided:
        raise SignatureError("signature header missing ts/h1 component")

    try:
        ts_value = int(ts)
    except ValueError as e:
        raise SignatureError("signature timestamp is not an integer") from e

    if max_variance > 0:
        current = time.time() if now is None else now
        if abs(current - ts_value) > max_variance:
            raise SignatureError("signature timestamp outside allowed variance")

    # HMAC_SHA256(secret, f"{ts}:{raw}")
    payload = ts.encode("utf-8") + b":" + raw
    expected = hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()

    # multiple h1 values are sent while a secret is being rotated
    if not any(hmac.compare_digest(expected, candidate) for candidate in provided):
        raise SignatureError("signature mismatch")


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def paddle_webhook(
    request: Request,
    paddle_signature: str | None = Header(default=None, alias="Paddle-Signature"),
    processor: IWebhookProcessor = Depends(get_webhook_processor),
):
    raw = await request.body()
    logger.info(
        "[PADDLE] webhook received: path=%s len=%s has_signature=%s",
        request.url.path,
        len(raw),
        bool(paddle_signature),
    )

    if not paddle_signature or not raw:
        return _error(400, "Missing signature from header")

    secret = (settings.PADDLE_NOTIFICATION_WEBHOOK_SECRET or "").strip()
    if not secret:
        logger.error("[PADDLE] PADDLE_NOTIFICATION_WEBHOOK_SECRET is not configured")
        return _error(500, "Webhook secret not configured")

    try:
        verify_paddle_signature(raw, paddle_signature, secret, settings.PADDLE_WEBHOOK_MAX_VARIANCE)
    except SignatureError as e:
        logger.error("[PADDLE] %s", e)
        return _error(400, "Invalid signature")

    try:
        payload = json.loads(raw.decode("utf-8"))
        event = WebhookEvent.model_validate(payload)
    except (UnicodeDecodeError, json.JSONDecodeError, ValidationError) as e:
        logger.error("[PADDLE] invalid webhook payload: %s", e)
        return _error(400, "Invalid webhook payload")

    try:
        result = await processor.process_event(event)
    except Exception as e:
        logger.error("[PADDLE] processing failed for %s (%s): %s", event.event_id, event.event_type, e, exc_info=True)
        return _error(500, "Internal server error")

    logger.info("[PADDLE] processed event=%s id=%s result=%s", event.event_type, event.event_id, result)
    body: Dict[str, object] = {
        "status": 200,
        "event_name": event.event_type,
        "event_id": event.event_id,
    }
    return JSONResponse(status_code=200, content=body)


for _path in WEBHOOK_ROUTES:
    router.add_api_route(_path, paddle_webhook, methods=["POST"])
