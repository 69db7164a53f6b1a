"""
데이터베이스 연결 및 CRUD 작업을 위한 헬퍼 모듈
"""

from typing import Dict, List, Optional, Any
from datetime import datetime, timezone
from supabase import Client
import logging

from core.interfaces import IDatabaseHelper

logger = logging.getLogger(__name__)

# Supabase auth admin 사용자 목록 페이지 크기 / 최대 조회 페이지
USER_PAGE_SIZE = 200
USER_MAX_PAGES = 50


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class DatabaseHelper(IDatabaseHelper):
    def __init__(self, supabase_client: Client, admin_client: Client = None):
        self.supabase = supabase_client
        self.admin_client = admin_client or supabase_client

    def _get_client(self, use_admin: bool = True):
        """적절한 클라이언트 반환 - 서버 측 작업은 admin client 사용"""
        return self.admin_client if use_admin else self.supabase

    # Customers
    async def get_customer_id_by_email(self, email: str) -> str:
        """이메일로 Paddle 고객 ID 조회 (없으면 빈 문자열)"""
        if not email:
            return ''
        try:
            client = self._get_client()
            result = client.table('customers').select('customer_id').eq('email', email).limit(1).execute()
            if result.data:
                return result.data[0].get('customer_id') or ''
            return ''
        except Exception as e:
            logger.error(f"고객 ID 조회 실패: {e}")
            return ''

    async def get_customer(self, customer_id: str) -> Optional[Dict[str, Any]]:
        """고객 레코드 조회"""
        try:
            client = self._get_client()
            result = client.table('customers').select('*').eq('customer_id', customer_id).limit(1).execute()
            return result.data[0] if result.data else None
        except Exception as e:
            logger.error(f"고객 조회 실패: {e}")
            return None

    async def upsert_customer(self, customer_id: str, email: str, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """고객 저장 (웹훅 경로, 실패 시 예외 전파)"""
        client = self._get_client()
        result = client.table('customers').upsert({
            'customer_id': customer_id,
            'email': email,
            'user_id': user_id,
        }).execute()
        return result.data or []

    async def insert_customer(self, customer_id: str, email: str, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """신규 고객 생성 (실패 시 예외 전파)"""
        client = self._get_client()
        result = client.table('customers').insert({
            'customer_id': customer_id,
            'email': email,
            'user_id': user_id,
        }).execute()
        return result.data or []

    # Subscriptions
    async def upsert_subscription(self, record: Dict[str, Any]) -> List[Dict[str, Any]]:
        """구독 저장 (웹훅 경로, 실패 시 예외 전파)"""
        client = self._get_client()
        result = client.table('subscriptions').upsert(record).execute()
        return result.data or []

    # Auth users
    async def find_user_id_by_email(self, email: Optional[str]) -> Optional[str]:
        """Supabase Auth 사용자 중 이메일이 일치하는 사용자 ID"""
        if not email:
            return None
        try:
            admin = self._get_client().auth.admin
            for page in range(1, USER_MAX_PAGES + 1):
                users = admin.list_users(page=page, per_page=USER_PAGE_SIZE) or []
                for user in users:
                    if getattr(user, 'email', None) == email:
                        return user.id
                if len(users) < USER_PAGE_SIZE:
                    break
            return None
        except Exception as e:
            logger.error(f"사용자 이메일 조회 실패: {e}")
            return None

    async def get_user_email(self, user_id: str) -> Optional[str]:
        """사용자 ID로 이메일 조회 (admin API, 실패 시 예외 전파)"""
        response = self._get_client().auth.admin.get_user_by_id(user_id)
        user = getattr(response, 'user', None)
        return getattr(user, 'email', None)

    # Push subscriptions
    async def upsert_push_subscription(
        self,
        user_id: str,
        customer_id: Optional[str],
        subscription: Dict[str, Any],
    ) -> List[Dict[str, Any]]:
        """웹 푸시 구독 저장 (endpoint 기준 upsert)"""
        client = self._get_client()
        result = client.table('push_subscriptions').upsert(
            {
                'user_id': user_id,
                'customer_id': customer_id or None,
                'subscription': subscription,
                'endpoint': subscription.get('endpoint'),
                'updated_at': _utc_now_iso(),
            },
            on_conflict='endpoint',
        ).execute()
        return result.data or []

    async def get_push_subscription(self, user_id: str, endpoint: str) -> Optional[Dict[str, Any]]:
        """사용자의 endpoint 구독 조회 (없거나 실패 시 None)"""
        try:
            client = self._get_client()
            result = (
                client.table('push_subscriptions')
                .select('endpoint, user_id, customer_id, created_at')
                .eq('endpoint', endpoint)
                .eq('user_id', user_id)
                .limit(1)
                .execute()
            )
            return result.data[0] if result.data else None
        except Exception as e:
            logger.error(f"푸시 구독 조회 실패: {e}")
            return None

    async def get_push_subscriptions_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        """사용자 푸시 구독 목록 (실패 시 예외 전파)"""
        client = self._get_client()
        result = (
            client.table('push_subscriptions')
            .select('id, endpoint, customer_id, updated_at')
            .eq('user_id', user_id)
            .order('updated_at', desc=True)
            .execute()
        )
        return result.data or []

    async def list_unlinked_push_subscriptions(self) -> List[Dict[str, Any]]:
        """customer_id가 없는 푸시 구독 목록"""
        client = self._get_client()
        result = client.table('push_subscriptions').select('user_id, endpoint').is_('customer_id', 'null').execute()
        return result.data or []

    async def link_push_subscription(self, endpoint: str, customer_id: str) -> bool:
        client = self._get_client()
        client.table('push_subscriptions').update({'customer_id': customer_id}).eq('endpoint', endpoint).execute()
        return True

    # FCM tokens
    async def upsert_fcm_token(self, user_id: str, customer_id: Optional[str], fcm_token: str) -> List[Dict[str, Any]]:
        """FCM 토큰 저장 (fcm_token 기준 upsert)"""
        client = self._get_client()
        result = client.table('fcm_tokens').upsert(
            {
                'user_id': user_id,
                'customer_id': customer_id or None,
                'fcm_token': fcm_token,
                'updated_at': _utc_now_iso(),
            },
            on_conflict='fcm_token',
        ).execute()
        return result.data or []

    async def get_fcm_token(self, user_id: str, fcm_token: str) -> Optional[Dict[str, Any]]:
        """사용자의 FCM 토큰 조회 (없거나 실패 시 None)"""
        try:
            client = self._get_client()
            result = (
                client.table('fcm_tokens')
                .select('fcm_token, user_id, customer_id, created_at')
                .eq('fcm_token', fcm_token)
                .eq('user_id', user_id)
                .limit(1)
                .execute()
            )
            return result.data[0] if result.data else None
        except Exception as e:
            logger.error(f"FCM 토큰 조회 실패: {e}")
            return None

    async def get_fcm_tokens_for_customer(self, customer_id: str) -> List[str]:
        """고객 FCM 토큰 목록 (실패 시 예외 전파)"""
        client = self._get_client()
        result = client.table('fcm_tokens').select('fcm_token').eq('customer_id', customer_id).execute()
        return [row['fcm_token'] for row in result.data or [] if row.get('fcm_token')]

    async def list_unlinked_fcm_tokens(self) -> List[Dict[str, Any]]:
        client = self._get_client()
        result = client.table('fcm_tokens').select('user_id, fcm_token').is_('customer_id', 'null').execute()
        return result.data or []

    async def link_fcm_token(self, fcm_token: str, customer_id: str) -> bool:
        client = self._get_client()
        client.table('fcm_tokens').update({'customer_id': customer_id}).eq('fcm_token', fcm_token).execute()
        return True

    async def touch_fcm_token(self, fcm_token: str) -> None:
        """마지막 전송 시각 갱신"""
        try:
            client = self._get_client()
            client.table('fcm_tokens').update({'last_used_at': _utc_now_iso()}).eq('fcm_token', fcm_token).execute()
        except Exception as e:
            logger.warning(f"FCM 토큰 갱신 실패: {e}")

    async def delete_fcm_token(self, fcm_token: str) -> None:
        try:
            client = self._get_client()
            client.table('fcm_tokens').delete().eq('fcm_token', fcm_token).execute()
        except Exception as e:
            logger.warning(f"FCM 토큰 삭제 실패: {e}")

    # User agreements
    async def get_user_agreement(self, user_id: str) -> Optional[Dict[str, Any]]:
        """사용자 약관 동의 조회 (실패 시 예외 전파)"""
        client = self._get_client()
        result = client.table('user_agreements').select('*').eq('user_id', user_id).limit(1).execute()
        return result.data[0] if result.data else None

    async def save_user_agreement(self, user_id: str, agreement_data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """기존 레코드가 있으면 갱신, 없으면 생성"""
        client = self._get_client()
        existing = client.table('user_agreements').select('id').eq('user_id', user_id).limit(1).execute()

        if existing.data:
            result = client.table('user_agreements').update(agreement_data).eq('user_id', user_id).execute()
        else:
            result = client.table('user_agreements').insert(agreement_data).execute()

        return result.data[0] if result.data else None
