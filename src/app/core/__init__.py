"""Core 패키지 초기화 (경량화)

모듈 간 순환 의존을 피하기 위해 최소한의 심볼만 노출합니다.
"""
from .config import settings
from .container import container
from .rate_limiter import rate_limiter
from .responses import (
    APIResponse, success_response, error_response,
    BusinessException, AuthenticationException,
    ExternalServiceException,
)

__all__ = [
    'settings',
    'container',
    'rate_limiter',
    'APIResponse',
    'success_response',
    'error_response',
    'BusinessException',
    'AuthenticationException',
    'ExternalServiceException',
]
