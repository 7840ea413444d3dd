"""
AI analysis API Routes
Station photo analysis, tax notice OCR and the tax insight summary.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile, status
from fastapi.responses import JSONResponse

from tms.models.users import Session
from tms.routes.auth.permissions import USE_AI, require_capability
from tms.routes.responses import success
from tms.services.dashboard_service import dashboard_service
from tms.services.errors import ServiceNotConfiguredError
from tms.services.gemini_service import gemini_service
from tms.services.insights_service import insights_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["analysis"])

NO_IMAGE = "이미지가 제공되지 않았습니다."


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


async def _read_image(image: Optional[UploadFile]) -> Optional[bytes]:
    if image is None:
        return None
    data = await image.read()
    return data or None


@router.post("/analyze-station-image")
async def analyze_station_image(
    image: Optional[UploadFile] = File(None),
    session: Session = Depends(require_capability(USE_AI)),
):
    data = await _read_image(image)
    if data is None:
        return _error(status.HTTP_400_BAD_REQUEST, NO_IMAGE)
    try:
        analysis = await gemini_service.analyze_station_image(data, image.content_type or "image/jpeg")
    except Exception:
        logger.exception("Station image analysis failed")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "이미지 분석 중 오류가 발생했습니다.")
    return success(analysis)


@router.post("/analyze-tax-image")
async def analyze_tax_image(
    image: Optional[UploadFile] = File(None),
    session: Session = Depends(require_capability(USE_AI)),
):
    """OCR of a tax notice; model failures come back as placeholder text, not errors."""
    data = await _read_image(image)
    if data is None:
        return _error(status.HTTP_400_BAD_REQUEST, NO_IMAGE)
    extraction = await gemini_service.extract_tax_notice_text(data, image.content_type or "image/jpeg")
    return success(extraction)


@router.post("/analyze-tax-insights")
async def analyze_tax_insights(session: Session = Depends(require_capability(USE_AI))):
    try:
        summary = await dashboard_service.get_summary()
        analysis = await insights_service.analyze(summary)
    except ServiceNotConfiguredError:
        logger.warning("Tax insights requested but OpenAI is not configured")
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "AI 분석 서비스가 설정되지 않았습니다.")
    except Exception:
        logger.exception("Tax insights analysis failed")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "AI 분석 중 오류가 발생했습니다.")
    return success({"analysis": analysis, "summary": summary})
