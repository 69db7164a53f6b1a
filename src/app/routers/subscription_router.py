from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
import logging

from core.factory import ServiceFactory
from core.interfaces import ISubscriptionService
from core.responses import success_response
from core.session import get_current_user

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/subscriptions", tags=["subscriptions"])


def get_subscription_service() -> ISubscriptionService:
    return ServiceFactory.get_subscription_service()


@router.get("")
async def list_subscriptions(
    current_user=Depends(get_current_user),
    subscription_service: ISubscriptionService = Depends(get_subscription_service),
):
    """사용자 구독 목록 (대시보드)"""
    result = await subscription_service.get_subscriptions(current_user)
    if "error" in result:
        return JSONResponse(status_code=502, content=result)
    return result


@router.get("/status")
async def subscription_status(
    current_user=Depends(get_current_user),
    subscription_service: ISubscriptionService = Depends(get_subscription_service),
):
    """온보딩 필요 여부 판단용 구독 상태"""
    status = await subscription_service.get_subscription_status(current_user)
    return success_response(data=status, message="구독 상태 조회 완료")
