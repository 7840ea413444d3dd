"""
Audit Log API Routes
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from tms.models.users import Session
from tms.routes.auth.permissions import VIEW_AUDIT_LOGS, require_capability
from tms.routes.responses import success
from tms.services.audit_service import audit_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["audit-logs"])


@router.get("/")
async def get_audit_logs(
    limit: int = Query(100, ge=1, le=500),
    skip: int = Query(0, ge=0),
    menu: Optional[str] = None,
    session: Session = Depends(require_capability(VIEW_AUDIT_LOGS)),
):
    """Get audit logs, newest first"""
    try:
        result = await audit_service.get_logs(limit=limit, skip=skip, menu=menu)
        return success(result)
    except Exception as exc:
        logger.exception("Failed to fetch audit logs")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="감사 로그를 불러오는 중 오류가 발생했습니다.",
        ) from exc
