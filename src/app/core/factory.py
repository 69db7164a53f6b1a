"""
서비스 팩토리 - 의존성 주입 설정
"""
from supabase import Client, create_client
import logging

from core.config import settings
from core.container import container
from core.interfaces import (
    IAuthService, IDatabaseHelper, IPushService,
    ISubscriptionService, IWebhookProcessor,
)
from database_helper import DatabaseHelper
from services.auth_service import AuthService
from services.paddle_billing_client import PaddleBillingClient
from services.push_service import PushService
from services.subscription_service import SubscriptionService
from services.webhook_processor import WebhookProcessor

logger = logging.getLogger(__name__)

class ServiceFactory:
    """서비스 의존성 등록 및 초기화"""

    @staticmethod
    def configure_dependencies():
        """의존성 주입 컨테이너 설정"""
        # 외부 클라이언트 생성
        supabase_client = create_client(settings.SUPABASE_URL, settings.SUPABASE_ANON_KEY)
        supabase_admin = None
        if settings.SUPABASE_SERVICE_ROLE_KEY:
            supabase_admin = create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
        else:
            logger.warning("SUPABASE_SERVICE_ROLE_KEY가 설정되지 않아 anon 키로 DB에 접근합니다")

        container.register_singleton(Client, supabase_client)

        # Paddle Billing API 클라이언트 설정
        if settings.PADDLE_API_KEY:
            paddle_client = PaddleBillingClient(
                api_key=settings.PADDLE_API_KEY,
                base_url=settings.PADDLE_API_BASE_URL,
            )
            container.register_singleton(PaddleBillingClient, paddle_client)
        else:
            logger.warning("[PADDLE] PADDLE_API_KEY가 설정되지 않아 PaddleBillingClient를 초기화하지 않습니다.")

        db_helper = DatabaseHelper(supabase_client, supabase_admin)
        container.register_singleton(IDatabaseHelper, db_helper)

        # 설정값이 필요한 서비스는 직접 생성
        container.register_singleton(IPushService, PushService(db_helper, settings.FIREBASE_SERVER_KEY))
        container.register_singleton(
            IAuthService,
            AuthService(supabase_client, db_helper, settings.SUPABASE_URL, settings.SUPABASE_ANON_KEY),
        )

        container.register_service(ISubscriptionService, SubscriptionService)
        container.register_service(IWebhookProcessor, WebhookProcessor)

    @staticmethod
    def get_auth_service() -> IAuthService:
        """인증 서비스 조회"""
        return container.get(IAuthService)

    @staticmethod
    def get_db_helper() -> IDatabaseHelper:
        """DB 헬퍼 조회"""
        return container.get(IDatabaseHelper)

    @staticmethod
    def get_subscription_service() -> ISubscriptionService:
        """구독 상태 서비스 조회"""
        return container.get(ISubscriptionService)

    @staticmethod
    def get_webhook_processor() -> IWebhookProcessor:
        """웹훅 처리기 조회"""
        return container.get(IWebhookProcessor)

    @staticmethod
    def get_paddle_billing_client() -> PaddleBillingClient | None:
        """Paddle Billing 클라이언트 조회"""
        try:
            return container.get(PaddleBillingClient)
        except ValueError:
            return None
