"""
Paddle Billing 웹훅 이벤트 스키마

Paddle 알림 페이로드 중 처리에 필요한 필드만 정의하고 나머지는 무시합니다.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class PaddleModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class PriceRef(PaddleModel):
    id: Optional[str] = None
    product_id: Optional[str] = None


class SubscriptionItem(PaddleModel):
    price: Optional[PriceRef] = None
    quantity: Optional[int] = None


class ScheduledChange(PaddleModel):
    action: Optional[str] = None
    effective_at: Optional[str] = None


class SubscriptionData(PaddleModel):
    """subscription.* 이벤트의 data"""
    id: str
    status: str
    customer_id: str
    items: List[SubscriptionItem] = Field(default_factory=list)
    scheduled_change: Optional[ScheduledChange] = None


class CustomerData(PaddleModel):
    """customer.* 이벤트의 data"""
    id: str
    email: Optional[str] = None


class TransactionData(PaddleModel):
    """transaction.* 이벤트의 data"""
    id: str
    customer_id: Optional[str] = None
    subscription_id: Optional[str] = None
    status: Optional[str] = None


class WebhookEvent(PaddleModel):
    """서명 검증을 통과한 Paddle 알림"""
    event_id: Optional[str] = None
    event_type: str = Field(..., min_length=1)
    occurred_at: Optional[str] = None
    notification_id: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)
