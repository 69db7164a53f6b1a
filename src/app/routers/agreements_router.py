from datetime import datetime, timezone
from typing import Any, Dict, Optional
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from core.factory import ServiceFactory
from core.interfaces import IDatabaseHelper
from core.session import get_optional_user
from schemas import AgreementFlags, AgreementsRequest

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/user-agreements", tags=["agreements"])

AGREEMENT_FIELDS = ("terms", "refund", "privacy", "recurring", "withdrawal")


def get_db_helper() -> IDatabaseHelper:
    return ServiceFactory.get_db_helper()


def build_agreement_record(
    user_id: str,
    email: Optional[str],
    flags: AgreementFlags,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """동의 항목별 플래그와 동의 시각(미동의 시 None) 구성"""
    timestamp = (now or datetime.now(timezone.utc)).isoformat()
    record: Dict[str, Any] = {
        "user_id": user_id,
        "email": email or "",
        "updated_at": timestamp,
    }
    for field in AGREEMENT_FIELDS:
        accepted = bool(getattr(flags, field))
        record[f"{field}_accepted"] = accepted
        record[f"{field}_accepted_at"] = timestamp if accepted else None
    return record


@router.post("")
async def save_agreements(
    body: AgreementsRequest,
    user=Depends(get_optional_user),
    db_helper: IDatabaseHelper = Depends(get_db_helper),
):
    """약관 동의 저장"""
    if user is None:
        return JSONResponse(status_code=401, content={"error": "Unauthorized"})

    if body.agreements is None:
        return JSONResponse(status_code=400, content={"error": "Missing agreements data"})

    record = build_agreement_record(user.id, getattr(user, "email", None), body.agreements)
    try:
        saved = await db_helper.save_user_agreement(user.id, record)
    except Exception as e:
        logger.error(f"약관 동의 저장 실패 user={user.id}: {e}")
        return JSONResponse(status_code=500, content={"error": "Failed to save agreements"})

    return JSONResponse(content={"success": True, "data": saved})


@router.get("")
async def get_agreements(
    user=Depends(get_optional_user),
    db_helper: IDatabaseHelper = Depends(get_db_helper),
):
    """약관 동의 조회"""
    if user is None:
        return JSONResponse(status_code=401, content={"error": "Unauthorized"})

    try:
        data = await db_helper.get_user_agreement(user.id)
    except Exception as e:
        logger.error(f"약관 동의 조회 실패 user={user.id}: {e}")
        return JSONResponse(status_code=500, content={"error": "Failed to fetch agreements"})

    return JSONResponse(content={"data": data})
