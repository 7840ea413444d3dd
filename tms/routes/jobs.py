"""
Batch job API Routes
Entry points for the external scheduler: reminder generation and dispatch.
When `CRON_SECRET` is configured every call must carry it, either in the
`x-cron-key` header or in the `key` query parameter.
"""
import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Header, Query, status
from fastapi.responses import JSONResponse

from tms.config import settings
from tms.routes.responses import success
from tms.services.reminder_dispatcher import reminder_dispatcher
from tms.services.reminder_generator import reminder_generator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["jobs"])


def is_authorized(header_key: Optional[str], query_key: Optional[str]) -> bool:
    if not settings.cron_secret:
        return True
    supplied = header_key or query_key or ""
    return hmac.compare_digest(supplied.encode("utf-8"), settings.cron_secret.encode("utf-8"))


def _unauthorized() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"success": False, "error": "Unauthorized"},
    )


def _failed(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "error": message},
    )


@router.post("/generate-tax-reminders")
async def generate_tax_reminders(
    x_cron_key: Optional[str] = Header(None),
    key: Optional[str] = Query(None),
):
    if not is_authorized(x_cron_key, key):
        return _unauthorized()
    try:
        result = await reminder_generator.run()
    except Exception:
        logger.exception("Reminder generation failed")
        return _failed("알림 생성 중 오류가 발생했습니다.")
    return success(**result.to_dict())


@router.api_route("/dispatch-notifications", methods=["GET", "POST"])
async def dispatch_notifications(
    x_cron_key: Optional[str] = Header(None),
    key: Optional[str] = Query(None),
):
    if not is_authorized(x_cron_key, key):
        return _unauthorized()
    try:
        result = await reminder_dispatcher.run()
    except Exception:
        logger.exception("Notification dispatch failed")
        return _failed("알림 발송 중 오류가 발생했습니다.")
    return success(**result.to_dict())
