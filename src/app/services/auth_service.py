from datetime import datetime
from typing import Any, Dict, Optional, Tuple
import logging

from fastapi.security import HTTPAuthorizationCredentials
from supabase import Client, ClientOptions, create_client
from supabase_auth import SyncSupportedStorage

# Core imports
from core.interfaces import IAuthService, IDatabaseHelper
from core.base_service import BaseService
from core.responses import AuthenticationException, ExternalServiceException

logger = logging.getLogger(__name__)


class AuthStateStorage(SyncSupportedStorage):
    """요청 단위 Supabase Auth 저장소

    OAuth 시작 요청에서 생성된 PKCE code verifier를 쿠키로 옮겨
    콜백 요청에서 다시 주입하기 위해 사용
    """

    def __init__(self, items: Optional[Dict[str, str]] = None):
        self.items: Dict[str, str] = dict(items or {})

    def get_item(self, key: str) -> Optional[str]:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.items[key] = value

    def remove_item(self, key: str) -> None:
        self.items.pop(key, None)


def anonymous_placeholder_email(now: Optional[datetime] = None) -> str:
    """익명 로그인 사용자에게 부여하는 임시 이메일 (ms 타임스탬프 base36)"""
    millis = int((now or datetime.now()).timestamp() * 1000)
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    encoded = ""
    while True:
        millis, remainder = divmod(millis, 36)
        encoded = digits[remainder] + encoded
        if millis == 0:
            break
    return f"aeroedit+{encoded}@paddle.com"


class AuthService(BaseService, IAuthService):
    """Supabase Auth 연동 서비스"""

    def __init__(
        self,
        supabase_client: Client,
        db_helper: IDatabaseHelper,
        supabase_url: str,
        supabase_anon_key: str,
    ):
        super().__init__(db_helper)
        self.supabase = supabase_client
        self.supabase_url = supabase_url
        self.supabase_anon_key = supabase_anon_key

    def _session_client(self, storage: Optional[AuthStateStorage] = None) -> Client:
        """사용자 세션 흐름 전용 클라이언트 (요청마다 새로 생성)

        공유 클라이언트에 사용자 세션이 저장되지 않도록 분리한다.
        """
        options = ClientOptions(
            storage=storage or AuthStateStorage(),
            flow_type="pkce",
            auto_refresh_token=False,
            persist_session=True,
        )
        return create_client(self.supabase_url, self.supabase_anon_key, options=options)

    async def verify_auth(self, credentials: HTTPAuthorizationCredentials):
        """Bearer JWT 검증 - 실패 시 401"""
        token = credentials.credentials if credentials else None
        user = await self.get_user_from_token(token)
        if user is None:
            raise AuthenticationException("Invalid or expired token")
        return user

    async def get_user_from_token(self, access_token: Optional[str]):
        """JWT로 사용자 조회, 유효하지 않으면 None"""
        if not access_token:
            return None
        try:
            response = self.supabase.auth.get_user(access_token)
        except Exception as e:
            self.logger.info(f"[AUTH] 토큰 검증 실패: {e}")
            return None
        return getattr(response, "user", None)

    async def exchange_code_for_session(self, code: str, auth_storage: Optional[Dict[str, str]] = None):
        """OAuth/이메일 확인 코드를 세션으로 교환 (SDK 오류는 그대로 전파)"""
        client = self._session_client(AuthStateStorage(auth_storage))
        return client.auth.exchange_code_for_session({"auth_code": code})

    async def sign_in_with_password(self, email: str, password: str):
        client = self._session_client()
        try:
            response = client.auth.sign_in_with_password({"email": email, "password": password})
        except Exception as e:
            self.logger.info(f"[AUTH] 비밀번호 로그인 실패: {e}")
            raise AuthenticationException("Invalid email or password") from e

        if response.session is None:
            raise AuthenticationException("Invalid email or password")
        return response

    async def sign_up(self, email: str, password: str, email_redirect_to: str):
        client = self._session_client()
        try:
            return client.auth.sign_up({
                "email": email,
                "password": password,
                "options": {"email_redirect_to": email_redirect_to},
            })
        except Exception as e:
            self.logger.info(f"[AUTH] 회원가입 실패: {e}")
            raise AuthenticationException("Sign up failed") from e

    async def sign_in_with_oauth(self, provider: str, redirect_to: str) -> Tuple[str, Dict[str, str]]:
        """OAuth 시작 URL과 콜백에서 필요한 PKCE 상태 반환"""
        storage = AuthStateStorage()
        client = self._session_client(storage)
        try:
            response = client.auth.sign_in_with_oauth({
                "provider": provider,
                "options": {"redirect_to": redirect_to},
            })
        except Exception as e:
            self.logger.error(f"[AUTH] OAuth 시작 실패: {e}")
            raise ExternalServiceException("Supabase Auth") from e

        if not getattr(response, "url", None):
            raise ExternalServiceException("Supabase Auth", "OAuth provider URL was not returned")
        return response.url, storage.items

    async def sign_in_anonymously(self):
        """익명 로그인 후 임시 이메일 설정"""
        client = self._session_client()
        try:
            response = client.auth.sign_in_anonymously()
            client.auth.update_user({"email": anonymous_placeholder_email()})
        except Exception as e:
            self.logger.info(f"[AUTH] 익명 로그인 실패: {e}")
            raise AuthenticationException("Anonymous sign in failed") from e

        if response.session is None:
            raise AuthenticationException("Anonymous sign in failed")
        return response
