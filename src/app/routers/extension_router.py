"""
Browser extension API

Every route authenticates with `Authorization: Bearer <supabase jwt>`.
Response bodies use the camelCase keys the extension reads. Preflights are
answered by the CORS middleware (see core.middleware.setup_cors).
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from core.config import settings
from core.factory import ServiceFactory
from core.interfaces import IDatabaseHelper, ISubscriptionService
from core.rate_limiter import rate_limiter
from core.session import extract_bearer_token
from schemas import FcmTokenRequest, PushSubscriptionRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/extension", tags=["extension"])

STATUS_NOT_REGISTERED = "not_registered"
STATUS_PENDING_CUSTOMER = "pending_customer"
STATUS_FULLY_REGISTERED = "fully_registered"

REASON_NOT_AUTHENTICATED = "not_authenticated"
AUTH_REQUIRED_MESSAGE = "Authentication required"


def get_subscription_service() -> ISubscriptionService:
    return ServiceFactory.get_subscription_service()


def get_db_helper() -> IDatabaseHelper:
    return ServiceFactory.get_db_helper()


def cors_headers(request: Request) -> Dict[str, str]:
    return {
        "Access-Control-Allow-Origin": request.headers.get("origin") or "*",
        "Access-Control-Allow-Credentials": "true",
    }


def _json(request: Request, content: Any, status_code: int = 200, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    merged = cors_headers(request)
    if headers:
        merged.update(headers)
    return JSONResponse(status_code=status_code, content=content, headers=merged)


def _unauthorized(request: Request, body: Dict[str, Any]) -> JSONResponse:
    return _json(request, {**body, "reason": REASON_NOT_AUTHENTICATED}, status_code=401)


async def _bearer_user(request: Request):
    token = extract_bearer_token(request.headers.get("authorization"))
    if not token:
        return None
    # AuthMiddleware는 Bearer 토큰을 우선 조회하므로 그 결과를 재사용
    if hasattr(request.state, "user"):
        return request.state.user
    return await ServiceFactory.get_auth_service().get_user_from_token(token)


def _rate_limited(request: Request, user_id: str, endpoint: str) -> Optional[JSONResponse]:
    allowed = rate_limiter.hit(
        user_id,
        settings.EXTENSION_RATE_LIMIT,
        settings.EXTENSION_RATE_WINDOW_SECONDS,
        endpoint=endpoint,
    )
    if allowed:
        return None

    status = rate_limiter.status(user_id, endpoint=endpoint)
    retry_after = max(1, int(status[1])) if status else settings.EXTENSION_RATE_WINDOW_SECONDS
    logger.warning("[EXTENSION] rate limit exceeded user=%s endpoint=%s", user_id, endpoint)
    return _json(
        request,
        {"error": "Too many requests", "retryAfter": retry_after},
        status_code=429,
        headers={"Retry-After": str(retry_after)},
    )


@router.get("/validate")
async def validate_access(
    request: Request,
    subscription_service: ISubscriptionService = Depends(get_subscription_service),
):
    """확장 프로그램 구독 검증"""
    user = await _bearer_user(request)
    if user is None:
        return _unauthorized(request, {"isActive": False, "message": "Please sign in to continue"})

    limited = _rate_limited(request, user.id, "validate")
    if limited:
        return limited

    try:
        result = await subscription_service.validate_extension_access(user)
    except Exception as e:
        logger.error("[EXTENSION] validation error for %s: %s", user.id, e)
        return _json(
            request,
            {"isActive": False, "reason": "error", "message": "Unable to verify subscription. Please try again."},
            status_code=500,
        )

    logger.info("[EXTENSION] validate user=%s active=%s reason=%s", user.id, result.get("isActive"), result.get("reason"))
    return _json(request, result)


@router.post("/register-push")
async def register_push(
    request: Request,
    body: PushSubscriptionRequest,
    subscription_service: ISubscriptionService = Depends(get_subscription_service),
    db_helper: IDatabaseHelper = Depends(get_db_helper),
):
    """웹 푸시 구독 등록"""
    user = await _bearer_user(request)
    if user is None:
        return _unauthorized(request, {"success": False, "message": AUTH_REQUIRED_MESSAGE})

    limited = _rate_limited(request, user.id, "register-push")
    if limited:
        return limited

    subscription = body.subscription or {}
    if not subscription.get("endpoint"):
        return _json(request, {"error": "subscription with endpoint is required"}, status_code=400)

    customer_id = await subscription_service.get_customer_id(user) or None
    try:
        await db_helper.upsert_push_subscription(user.id, customer_id, subscription)
    except Exception as e:
        logger.error("[EXTENSION] failed to save push subscription for %s: %s", user.id, e)
        return _json(request, {"error": "Failed to save push subscription"}, status_code=500)

    logger.info("[EXTENSION] push subscription registered user=%s customer=%s", user.id, customer_id)
    return _json(request, {
        "success": True,
        "message": "Push subscription registered successfully",
        "customerId": customer_id,
    })


@router.post("/register-fcm")
async def register_fcm(
    request: Request,
    body: FcmTokenRequest,
    subscription_service: ISubscriptionService = Depends(get_subscription_service),
    db_helper: IDatabaseHelper = Depends(get_db_helper),
):
    """FCM 토큰 등록"""
    user = await _bearer_user(request)
    if user is None:
        return _unauthorized(request, {"success": False, "message": AUTH_REQUIRED_MESSAGE})

    limited = _rate_limited(request, user.id, "register-fcm")
    if limited:
        return limited

    fcm_token = (body.fcm_token or "").strip()
    if not fcm_token:
        return _json(request, {"error": "fcm_token is required"}, status_code=400)

    customer_id = await subscription_service.get_customer_id(user) or None
    try:
        await db_helper.upsert_fcm_token(user.id, customer_id, fcm_token)
    except Exception as e:
        logger.error("[EXTENSION] failed to save FCM token for %s: %s", user.id, e)
        return _json(request, {"error": "Failed to save FCM token"}, status_code=500)

    logger.info("[EXTENSION] FCM token registered user=%s customer=%s", user.id, customer_id)
    return _json(request, {
        "success": True,
        "message": "FCM token registered successfully",
        "customerId": customer_id,
    })


@router.post("/validate-push")
async def validate_push(
    request: Request,
    body: PushSubscriptionRequest,
    db_helper: IDatabaseHelper = Depends(get_db_helper),
):
    """등록된 웹 푸시 구독인지 확인 (불필요한 재등록 방지)"""
    user = await _bearer_user(request)
    if user is None:
        return _unauthorized(request, {"valid": False, "message": AUTH_REQUIRED_MESSAGE})

    limited = _rate_limited(request, user.id, "validate-push")
    if limited:
        return limited

    endpoint = (body.subscription or {}).get("endpoint")
    if not endpoint:
        return _json(request, {"valid": False, "message": "subscription with endpoint is required"}, status_code=400)

    record = await db_helper.get_push_subscription(user.id, endpoint)
    if record is None:
        logger.info("[EXTENSION] push subscription not registered user=%s", user.id)
        return _json(request, {"valid": False, "message": "Subscription not registered", "needsRegistration": True})

    return _json(request, {
        "valid": True,
        "message": "Subscription is valid",
        "subscription": {
            "createdAt": record.get("created_at"),
            "customerId": record.get("customer_id"),
        },
    })


@router.post("/validate-fcm")
async def validate_fcm(
    request: Request,
    body: FcmTokenRequest,
    db_helper: IDatabaseHelper = Depends(get_db_helper),
):
    """등록된 FCM 토큰인지 확인"""
    user = await _bearer_user(request)
    if user is None:
        return _unauthorized(request, {"valid": False, "message": AUTH_REQUIRED_MESSAGE})

    limited = _rate_limited(request, user.id, "validate-fcm")
    if limited:
        return limited

    fcm_token = (body.fcm_token or "").strip()
    if not fcm_token:
        return _json(request, {"valid": False, "message": "fcm_token is required"}, status_code=400)

    record = await db_helper.get_fcm_token(user.id, fcm_token)
    if record is None:
        logger.info("[EXTENSION] FCM token not registered user=%s", user.id)
        return _json(request, {"valid": False, "message": "Token not registered", "needsRegistration": True})

    return _json(request, {
        "valid": True,
        "message": "Token is valid",
        "token": {
            "createdAt": record.get("created_at"),
            "customerId": record.get("customer_id"),
        },
    })


@router.get("/subscription-status")
async def subscription_status(
    request: Request,
    subscription_service: ISubscriptionService = Depends(get_subscription_service),
    db_helper: IDatabaseHelper = Depends(get_db_helper),
):
    """푸시 등록 상태 진단"""
    user = await _bearer_user(request)
    if user is None:
        return _unauthorized(request, {"registered": False, "message": AUTH_REQUIRED_MESSAGE})

    limited = _rate_limited(request, user.id, "subscription-status")
    if limited:
        return limited

    try:
        rows = await db_helper.get_push_subscriptions_for_user(user.id)
    except Exception as e:
        logger.error("[EXTENSION] failed to load push subscriptions for %s: %s", user.id, e)
        return _json(
            request,
            {"error": "Failed to check subscription", "reason": "database_error"},
            status_code=500,
        )

    customer_id = await subscription_service.get_customer_id(user) or None
    has_customer_linked = any(row.get("customer_id") for row in rows)

    if not rows:
        status = STATUS_NOT_REGISTERED
        message = "No push subscription found. Extension needs to register."
    elif not customer_id:
        status = STATUS_PENDING_CUSTOMER
        message = "Push subscription registered but no customer_id. Make a purchase to complete setup."
    elif not has_customer_linked:
        status = STATUS_PENDING_CUSTOMER
        message = "Push subscription registered but not linked to customer. Will link automatically on next webhook."
    else:
        status = STATUS_FULLY_REGISTERED
        message = "Push subscription fully registered and ready to receive notifications."

    return _json(request, {
        "registered": bool(rows),
        "status": status,
        "message": message,
        "details": {
            "userId": user.id,
            "email": getattr(user, "email", None),
            "customerId": customer_id,
            "subscriptionCount": len(rows),
            "hasCustomerLinked": has_customer_linked,
            "lastUpdated": rows[0].get("updated_at") if rows else None,
        },
    })
