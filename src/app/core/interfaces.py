"""
서비스 인터페이스 정의
"""
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, List, Tuple


class IAuthService(ABC):
    """인증 서비스 인터페이스"""

    @abstractmethod
    async def verify_auth(self, credentials) -> Any:
        """토큰 검증"""
        pass

    @abstractmethod
    async def get_user_from_token(self, access_token: Optional[str]) -> Any:
        """토큰으로 사용자 조회 (실패 시 None)"""
        pass

    @abstractmethod
    async def exchange_code_for_session(self, code: str, auth_storage: Optional[Dict[str, str]] = None) -> Any:
        """OAuth 코드를 세션으로 교환"""
        pass

    @abstractmethod
    async def sign_in_with_password(self, email: str, password: str) -> Any:
        """이메일/비밀번호 로그인 (실패 시 AuthenticationException)"""
        pass

    @abstractmethod
    async def sign_up(self, email: str, password: str, email_redirect_to: str) -> Any:
        """회원가입"""
        pass

    @abstractmethod
    async def sign_in_with_oauth(self, provider: str, redirect_to: str) -> Tuple[str, Dict[str, str]]:
        """OAuth 공급자 URL과 PKCE 상태 반환"""
        pass

    @abstractmethod
    async def sign_in_anonymously(self) -> Any:
        """익명 로그인"""
        pass


class ISubscriptionService(ABC):
    """구독 상태 서비스 인터페이스"""

    @abstractmethod
    async def get_customer_id(self, user: Any) -> str:
        """사용자 이메일로 Paddle 고객 ID 조회"""
        pass

    @abstractmethod
    async def has_active_subscription(self, user: Any) -> bool:
        """활성 구독 여부"""
        pass

    @abstractmethod
    async def get_subscription_status(self, user: Any) -> Dict[str, bool]:
        """구독 상태 요약"""
        pass

    @abstractmethod
    async def get_subscriptions(self, user: Any) -> Dict[str, Any]:
        """구독 목록 조회"""
        pass

    @abstractmethod
    async def validate_extension_access(self, user: Any) -> Dict[str, Any]:
        """확장 프로그램 접근 검증"""
        pass


class IWebhookProcessor(ABC):
    """Paddle 웹훅 이벤트 처리기 인터페이스"""

    @abstractmethod
    async def process_event(self, event: Any) -> Optional[Dict[str, Any]]:
        """검증된 이벤트 처리"""
        pass


class IPushService(ABC):
    """확장 프로그램 푸시 알림 인터페이스"""

    @abstractmethod
    async def send_push_to_customer(self, customer_id: str, push_type: str) -> Dict[str, int]:
        """고객의 모든 토큰으로 푸시 전송"""
        pass


class IDatabaseHelper(ABC):
    """데이터베이스 헬퍼 인터페이스"""

    # customers
    @abstractmethod
    async def get_customer_id_by_email(self, email: str) -> str:
        """이메일로 고객 ID 조회"""
        pass

    @abstractmethod
    async def get_customer(self, customer_id: str) -> Optional[Dict[str, Any]]:
        """고객 조회"""
        pass

    @abstractmethod
    async def upsert_customer(self, customer_id: str, email: str, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """고객 저장"""
        pass

    @abstractmethod
    async def insert_customer(self, customer_id: str, email: str, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """신규 고객 생성"""
        pass

    # subscriptions
    @abstractmethod
    async def upsert_subscription(self, record: Dict[str, Any]) -> List[Dict[str, Any]]:
        """구독 저장"""
        pass

    # auth users
    @abstractmethod
    async def find_user_id_by_email(self, email: Optional[str]) -> Optional[str]:
        """Supabase 사용자 ID 조회"""
        pass

    @abstractmethod
    async def get_user_email(self, user_id: str) -> Optional[str]:
        """사용자 ID로 이메일 조회"""
        pass

    # push subscriptions
    @abstractmethod
    async def upsert_push_subscription(
        self, user_id: str, customer_id: Optional[str], subscription: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        """웹 푸시 구독 저장"""
        pass

    @abstractmethod
    async def get_push_subscription(self, user_id: str, endpoint: str) -> Optional[Dict[str, Any]]:
        """사용자의 endpoint 구독 조회"""
        pass

    @abstractmethod
    async def get_push_subscriptions_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        """사용자 푸시 구독 목록"""
        pass

    @abstractmethod
    async def list_unlinked_push_subscriptions(self) -> List[Dict[str, Any]]:
        """고객 미연결 푸시 구독 목록"""
        pass

    @abstractmethod
    async def link_push_subscription(self, endpoint: str, customer_id: str) -> bool:
        """푸시 구독에 고객 연결"""
        pass

    # fcm tokens
    @abstractmethod
    async def upsert_fcm_token(self, user_id: str, customer_id: Optional[str], fcm_token: str) -> List[Dict[str, Any]]:
        """FCM 토큰 저장"""
        pass

    @abstractmethod
    async def get_fcm_token(self, user_id: str, fcm_token: str) -> Optional[Dict[str, Any]]:
        """사용자의 FCM 토큰 조회"""
        pass

    @abstractmethod
    async def get_fcm_tokens_for_customer(self, customer_id: str) -> List[str]:
        """고객 FCM 토큰 목록"""
        pass

    @abstractmethod
    async def list_unlinked_fcm_tokens(self) -> List[Dict[str, Any]]:
        """고객 미연결 FCM 토큰 목록"""
        pass

    @abstractmethod
    async def link_fcm_token(self, fcm_token: str, customer_id: str) -> bool:
        """FCM 토큰에 고객 연결"""
        pass

    @abstractmethod
    async def touch_fcm_token(self, fcm_token: str) -> None:
        """마지막 전송 시각 갱신"""
        pass

    @abstractmethod
    async def delete_fcm_token(self, fcm_token: str) -> None:
        """FCM 토큰 삭제"""
        pass

    # user agreements
    @abstractmethod
    async def get_user_agreement(self, user_id: str) -> Optional[Dict[str, Any]]:
        """약관 동의 조회"""
        pass

    @abstractmethod
    async def save_user_agreement(self, user_id: str, agreement_data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """약관 동의 저장"""
        pass
