"""
Dashboard API Routes
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status

from tms.models.users import Session
from tms.routes.auth.permissions import VIEW, require_capability
from tms.routes.responses import success
from tms.services.dashboard_service import dashboard_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["dashboard"])


@router.get("/summary")
async def get_dashboard_summary(session: Session = Depends(require_capability(VIEW))):
    try:
        summary = await dashboard_service.get_summary()
        return success(summary)
    except Exception as exc:
        logger.exception("Failed to build dashboard summary")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="대시보드 정보를 불러오는 중 오류가 발생했습니다.",
        ) from exc
