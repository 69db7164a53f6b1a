"""
요청/응답 스키마 정의
"""
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from .webhook import (
    CustomerData,
    ScheduledChange,
    SubscriptionData,
    SubscriptionItem,
    TransactionData,
    WebhookEvent,
)


class CredentialsRequest(BaseModel):
    """이메일/비밀번호 로그인 및 회원가입 요청"""
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)


class AgreementFlags(BaseModel):
    """약관 동의 항목"""
    terms: bool = False
    refund: bool = False
    privacy: bool = False
    recurring: bool = False
    withdrawal: bool = False


class AgreementsRequest(BaseModel):
    agreements: Optional[AgreementFlags] = None


class PushSubscriptionRequest(BaseModel):
    """브라우저 PushSubscription.toJSON() 결과"""
    subscription: Optional[Dict[str, Any]] = None


class FcmTokenRequest(BaseModel):
    fcm_token: Optional[str] = None


__all__ = [
    "AgreementFlags",
    "AgreementsRequest",
    "CredentialsRequest",
    "CustomerData",
    "FcmTokenRequest",
    "PushSubscriptionRequest",
    "ScheduledChange",
    "SubscriptionData",
    "SubscriptionItem",
    "TransactionData",
    "WebhookEvent",
]
