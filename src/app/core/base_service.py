"""
서비스 기본 클래스
"""
import logging
from typing import Any

from core.interfaces import IDatabaseHelper


class BaseService:
    """모든 서비스의 기본 클래스"""

    def __init__(self, db_helper: IDatabaseHelper):
        self.db_helper = db_helper
        self.logger = logging.getLogger(self.__class__.__name__)

    @staticmethod
    def user_email(user: Any) -> str:
        """Supabase User 객체/딕셔너리에서 이메일 추출"""
        if user is None:
            return ''
        if isinstance(user, dict):
            return user.get('email') or ''
        return getattr(user, 'email', None) or ''
