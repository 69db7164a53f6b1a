from typing import Optional
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit
import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse

from core.config import settings
from core.factory import ServiceFactory
from core.responses import AuthenticationException
from core.session import (
    AUTH_STATE_COOKIE,
    clear_session_cookies,
    read_auth_state_cookie,
    set_auth_state_cookie,
    set_session_cookies,
)
from schemas import CredentialsRequest
from services.auth_service import AuthService
from services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)
router = APIRouter(tags=["authentication"])

AUTH_CODE_ERROR_PATH = "/auth/auth-code-error"
DASHBOARD_PATH = "/dashboard"
ONBOARDING_PATH = "/onboarding"


def get_auth_service() -> AuthService:
    return ServiceFactory.get_auth_service()


def get_subscription_service() -> SubscriptionService:
    return ServiceFactory.get_subscription_service()


def request_origin(request: Request) -> str:
    return str(request.base_url).rstrip("/")


def with_ext_auth(url: str) -> str:
    """확장 프로그램이 로그인 완료를 감지할 수 있도록 ext_auth=true 추가"""
    parts = urlsplit(url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != "ext_auth"]
    query.append(("ext_auth", "true"))
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


def resolve_next(origin: str, next_path: Optional[str]) -> Optional[str]:
    """next 파라미터를 origin 기준 절대 URL로 변환 (다른 호스트는 무시)"""
    if not next_path:
        return None
    target = urljoin(origin + "/", next_path)
    if urlsplit(target).netloc != urlsplit(origin).netloc:
        logger.warning("[AUTH] ignoring cross-origin next parameter: %s", next_path)
        return None
    return target


async def callback_destination(
    origin: str,
    user,
    context: Optional[str],
    next_path: Optional[str],
    subscription_service: SubscriptionService,
) -> str:
    target = resolve_next(origin, next_path)
    if target is None:
        if context == "signup":
            target = origin + ONBOARDING_PATH
        elif await subscription_service.has_active_subscription(user):
            target = origin + DASHBOARD_PATH
        else:
            target = origin + ONBOARDING_PATH
    return with_ext_auth(target)


@router.get("/auth/callback")
async def auth_callback(
    request: Request,
    code: Optional[str] = None,
    context: Optional[str] = None,
    next_path: Optional[str] = Query(default=None, alias="next"),
    auth_service: AuthService = Depends(get_auth_service),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    """OAuth / 이메일 확인 콜백 - 코드를 세션으로 교환 후 리다이렉트"""
    origin = request_origin(request)
    error_url = origin + AUTH_CODE_ERROR_PATH

    if not code:
        logger.error("[AUTH] callback called without code")
        return RedirectResponse(error_url, status_code=303)

    try:
        result = await auth_service.exchange_code_for_session(code, read_auth_state_cookie(request))
    except Exception as e:
        logger.error(f"[AUTH] code exchange failed: {e}")
        response = RedirectResponse(error_url, status_code=303)
        response.delete_cookie(AUTH_STATE_COOKIE, path="/")
        return response

    session = getattr(result, "session", None)
    if session is None:
        logger.error("[AUTH] code exchange returned no session")
        return RedirectResponse(error_url, status_code=303)

    user = getattr(result, "user", None) or getattr(session, "user", None)
    destination = await callback_destination(origin, user, context, next_path, subscription_service)
    logger.info("[AUTH] callback success context=%s redirect=%s", context, destination)

    response = RedirectResponse(destination, status_code=303)
    set_session_cookies(response, session)
    response.delete_cookie(AUTH_STATE_COOKIE, path="/")
    return response


@router.post("/login")
async def login(
    body: CredentialsRequest,
    auth_service: AuthService = Depends(get_auth_service),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    """이메일/비밀번호 로그인"""
    try:
        result = await auth_service.sign_in_with_password(body.email, body.password)
    except AuthenticationException:
        return JSONResponse(status_code=401, content={"error": True})

    has_subscription = await subscription_service.has_active_subscription(result.user)
    redirect_to = DASHBOARD_PATH if has_subscription else ONBOARDING_PATH

    response = JSONResponse(content={"success": True, "redirect_to": redirect_to})
    set_session_cookies(response, result.session)
    return response


@router.get("/login/google")
async def login_with_google(
    signup: bool = False,
    auth_service: AuthService = Depends(get_auth_service),
):
    """Google OAuth 시작 - PKCE 상태를 쿠키에 보관하고 공급자로 리다이렉트"""
    context = "signup" if signup else "login"
    redirect_to = f"{settings.APP_URL.rstrip('/')}/auth/callback?context={context}"

    url, auth_state = await auth_service.sign_in_with_oauth("google", redirect_to)
    response = RedirectResponse(url, status_code=303)
    set_auth_state_cookie(response, auth_state)
    return response


@router.post("/login/anonymous")
async def login_anonymously(auth_service: AuthService = Depends(get_auth_service)):
    try:
        result = await auth_service.sign_in_anonymously()
    except AuthenticationException:
        return JSONResponse(status_code=401, content={"error": True})

    response = JSONResponse(content={"success": True, "redirect_to": ONBOARDING_PATH})
    set_session_cookies(response, result.session)
    return response


@router.post("/signup")
async def signup(
    body: CredentialsRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    """회원가입 - 이메일 확인이 필요한 경우 세션 없이 반환"""
    email_redirect_to = f"{settings.APP_URL.rstrip('/')}/auth/callback?context=signup"
    try:
        result = await auth_service.sign_up(body.email, body.password, email_redirect_to)
    except AuthenticationException:
        return JSONResponse(status_code=400, content={"error": True})

    if getattr(result, "session", None) is None:
        if getattr(result, "user", None) is not None:
            return JSONResponse(content={"success": True, "needs_confirmation": True})
        return JSONResponse(status_code=400, content={"error": True})

    response = JSONResponse(content={"success": True, "redirect_to": ONBOARDING_PATH})
    set_session_cookies(response, result.session)
    return response


@router.post("/logout")
async def logout():
    response = JSONResponse(content={"success": True, "redirect_to": "/"})
    clear_session_cookies(response)
    return response
