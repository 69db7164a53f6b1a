"""
세션 쿠키 / Bearer 토큰 처리 및 사용자 의존성
"""
import json
import logging
from typing import Any, Dict, Optional

from fastapi import Request, Response

from core.config import settings
from core.factory import ServiceFactory
from core.responses import AuthenticationException

logger = logging.getLogger(__name__)

ACCESS_TOKEN_COOKIE = "sb-access-token"
REFRESH_TOKEN_COOKIE = "sb-refresh-token"
# OAuth 시작 시 생성된 PKCE 상태 (콜백에서 소비)
AUTH_STATE_COOKIE = "sb-auth-state"
AUTH_STATE_MAX_AGE = 10 * 60


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.startswith("Bearer "):
        token = authorization[len("Bearer "):].strip()
        return token or None
    return None


def extract_access_token(request: Request) -> Optional[str]:
    """Authorization 헤더 우선, 없으면 세션 쿠키"""
    return extract_bearer_token(request.headers.get("authorization")) or request.cookies.get(ACCESS_TOKEN_COOKIE)


def set_session_cookies(response: Response, session: Any) -> None:
    max_age = getattr(session, "expires_in", None) or settings.SESSION_COOKIE_MAX_AGE
    cookie_options = {
        "httponly": True,
        "secure": settings.COOKIE_SECURE,
        "samesite": "lax",
        "path": "/",
    }
    response.set_cookie(ACCESS_TOKEN_COOKIE, session.access_token, max_age=max_age, **cookie_options)
    response.set_cookie(
        REFRESH_TOKEN_COOKIE,
        session.refresh_token,
        max_age=settings.SESSION_COOKIE_MAX_AGE,
        **cookie_options,
    )


def clear_session_cookies(response: Response) -> None:
    response.delete_cookie(ACCESS_TOKEN_COOKIE, path="/")
    response.delete_cookie(REFRESH_TOKEN_COOKIE, path="/")


def set_auth_state_cookie(response: Response, items: Dict[str, str]) -> None:
    if not items:
        return
    response.set_cookie(
        AUTH_STATE_COOKIE,
        json.dumps(items),
        max_age=AUTH_STATE_MAX_AGE,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        path="/",
    )


def read_auth_state_cookie(request: Request) -> Dict[str, str]:
    raw = request.cookies.get(AUTH_STATE_COOKIE)
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("[AUTH] malformed auth state cookie ignored")
        return {}
    if not isinstance(parsed, dict):
        return {}
    return {str(k): str(v) for k, v in parsed.items()}


async def get_optional_user(request: Request):
    """미들웨어가 확인한 사용자 또는 요청 토큰으로 조회한 사용자 (없으면 None)"""
    user = getattr(request.state, "user", None)
    if user is not None:
        return user

    token = extract_access_token(request)
    if not token:
        return None

    user = await ServiceFactory.get_auth_service().get_user_from_token(token)
    request.state.user = user
    return user


async def get_current_user(request: Request):
    """인증 필수 의존성"""
    user = await get_optional_user(request)
    if user is None:
        raise AuthenticationException("Unauthorized")
    return user
