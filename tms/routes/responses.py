"""
Shared response helpers for the API routes: the success envelope and the
translation of service errors into HTTP errors.
"""
from typing import Any, Dict, Type

from fastapi import HTTPException, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from tms.services.errors import (
    ConflictError,
    EmailDeliveryError,
    ExtractionError,
    InvalidTransitionError,
    NotFoundError,
    ServiceNotConfiguredError,
)

DOMAIN_ERRORS = (
    NotFoundError,
    ConflictError,
    InvalidTransitionError,
    ServiceNotConfiguredError,
    EmailDeliveryError,
    ExtractionError,
)

_STATUS_BY_ERROR: Dict[Type[Exception], int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    InvalidTransitionError: status.HTTP_400_BAD_REQUEST,
    ServiceNotConfiguredError: status.HTTP_503_SERVICE_UNAVAILABLE,
    EmailDeliveryError: status.HTTP_502_BAD_GATEWAY,
    ExtractionError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

_MESSAGES: Dict[Type[Exception], str] = {
    NotFoundError: "요청한 항목을 찾을 수 없습니다.",
    ConflictError: "요청이 현재 상태와 충돌합니다.",
    InvalidTransitionError: "허용되지 않는 상태 변경입니다.",
    ServiceNotConfiguredError: "외부 서비스가 설정되지 않았습니다.",
    EmailDeliveryError: "이메일 발송에 실패했습니다.",
    ExtractionError: "이미지 분석 중 오류가 발생했습니다.",
}


def success(data: Any = None, status_code: int = status.HTTP_200_OK, **extra: Any) -> JSONResponse:
    content: Dict[str, Any] = {"success": True}
    if data is not None:
        content["data"] = data
    content.update(extra)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content))


def to_http_error(exc: Exception, message: str = None) -> HTTPException:
    """Map a service error to an HTTPException; `message` overrides the default text."""
    for error_type, code in _STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            return HTTPException(status_code=code, detail=message or _MESSAGES[error_type])
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=message or "요청 처리 중 오류가 발생했습니다.",
    )
