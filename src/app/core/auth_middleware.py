"""
세션 확인 미들웨어

웹훅 경로는 서버 간 호출이므로 인증 확인 없이 그대로 통과시킨다.
"""
import logging
import re
from typing import Callable, Optional, Tuple

from fastapi import Request, Response
from fastapi.responses import RedirectResponse

from core.factory import ServiceFactory
from core.session import extract_access_token

logger = logging.getLogger(__name__)

# 하위 호환을 위해 여러 웹훅 경로를 유지
WEBHOOK_PATHS: Tuple[str, ...] = (
    "/api/webhook",
    "/api/paddle/webhook",
    "/api/paddle-webhook",
)

PROTECTED_PATHS: Tuple[str, ...] = (
    "/dashboard",
    "/checkout",
)

LOGIN_PATH = "/login"

_STATIC_PATTERN = re.compile(r"(^/favicon\.ico$)|(\.(svg|png|jpg|jpeg|gif|webp)$)", re.IGNORECASE)


def is_webhook_path(path: str) -> bool:
    return any(path.startswith(prefix) for prefix in WEBHOOK_PATHS)


def is_static_path(path: str) -> bool:
    return bool(_STATIC_PATTERN.search(path))


def is_protected_path(path: str) -> bool:
    return any(path == prefix or path.startswith(prefix + "/") for prefix in PROTECTED_PATHS)


class AuthMiddleware:
    """요청마다 세션 사용자를 확인해 request.state.user에 저장"""

    def __init__(self, auth_service_getter: Optional[Callable] = None):
        self._auth_service_getter = auth_service_getter

    def _auth_service(self):
        if self._auth_service_getter is not None:
            return self._auth_service_getter()
        return ServiceFactory.get_auth_service()

    async def __call__(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path

        if is_webhook_path(path):
            logger.debug("[AUTH] skipping auth check for webhook route: %s", path)
            return await call_next(request)

        if is_static_path(path) or request.method == "OPTIONS":
            return await call_next(request)

        request.state.user = None
        token = extract_access_token(request)
        if token:
            try:
                request.state.user = await self._auth_service().get_user_from_token(token)
            except Exception as e:
                logger.warning(f"[AUTH] session lookup failed: {e}")

        if request.state.user is None and is_protected_path(path):
            logger.info("[AUTH] unauthenticated request to %s redirected to login", path)
            return RedirectResponse(url=LOGIN_PATH, status_code=307)

        return await call_next(request)
