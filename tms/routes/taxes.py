"""
Tax Obligation API Routes
Tax CRUD, the payment workflow and the monthly due-date calendar.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from tms.models.taxes import TAX_STATUS_LABELS, TAX_TYPE_LABELS, TaxCreate, TaxStatusChange, TaxUpdate
from tms.models.users import Session
from tms.routes.auth.permissions import ADVANCE_WORKFLOW, MANAGE_TAXES, VIEW, require_capability
from tms.routes.responses import DOMAIN_ERRORS, success, to_http_error
from tms.services.audit_service import audit_service
from tms.services.date_utils import format_amount
from tms.services.errors import InvalidTransitionError, NotFoundError
from tms.services.tax_service import build_workflow, tax_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["taxes"])

MENU = "세금 관리"


def _label(tax_type: str) -> str:
    return TAX_TYPE_LABELS.get(tax_type, tax_type)


@router.get("/")
async def list_taxes(
    tax_type: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    station_id: Optional[str] = None,
    search: Optional[str] = None,
    session: Session = Depends(require_capability(VIEW)),
):
    try:
        taxes = await tax_service.list_taxes(
            tax_type=tax_type, status=status_filter, station_id=station_id, search=search
        )
        return success(taxes)
    except Exception as exc:
        logger.exception("Failed to list taxes")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="세금 목록을 불러오는 중 오류가 발생했습니다.",
        ) from exc


@router.get("/calendar")
async def get_tax_calendar(
    year: int = Query(..., ge=1900, le=2200),
    month: int = Query(..., ge=1, le=12),
    session: Session = Depends(require_capability(VIEW)),
):
    """Obligations due in the month, keyed by `YYYY-MM-DD`."""
    try:
        calendar = await tax_service.get_calendar(year, month)
        return success(calendar)
    except Exception as exc:
        logger.exception("Failed to build tax calendar for %s-%s", year, month)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="세금 일정을 불러오는 중 오류가 발생했습니다.",
        ) from exc


@router.get("/{tax_id}")
async def get_tax(tax_id: str, session: Session = Depends(require_capability(VIEW))):
    try:
        tax = await tax_service.get_tax(tax_id)
    except DOMAIN_ERRORS as exc:
        raise to_http_error(exc, "세금 정보를 찾을 수 없습니다.") from exc
    return success({"tax": tax, "workflow": build_workflow(tax.tax_type, tax.status)})


@router.post("/")
async def create_tax(body: TaxCreate, session: Session = Depends(require_capability(MANAGE_TAXES))):
    try:
        tax = await tax_service.create_tax(body, user_id=session.user_id)
    except NotFoundError as exc:
        raise to_http_error(exc, "충전소를 찾을 수 없습니다.") from exc
    except Exception as exc:
        logger.exception("Failed to create tax")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="세금 등록 중 오류가 발생했습니다.",
        ) from exc

    await audit_service.log(
        session,
        menu=MENU,
        action="create",
        description=f"세금 등록: {_label(tax.tax_type)} {format_amount(tax.tax_amount)}원",
        target_table="taxes",
        target_id=tax.id,
        changes=body.model_dump(mode="json"),
    )
    return success(tax, status_code=status.HTTP_201_CREATED)


@router.put("/{tax_id}")
async def update_tax(tax_id: str, body: TaxUpdate, session: Session = Depends(require_capability(MANAGE_TAXES))):
    try:
        tax = await tax_service.update_tax(tax_id, body, user_id=session.user_id)
    except DOMAIN_ERRORS as exc:
        raise to_http_error(exc) from exc
    except Exception as exc:
        logger.exception("Failed to update tax %s", tax_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="세금 수정 중 오류가 발생했습니다.",
        ) from exc

    await audit_service.log(
        session,
        menu=MENU,
        action="update",
        description=f"세금 수정: {_label(tax.tax_type)}",
        target_table="taxes",
        target_id=tax_id,
        changes=body.model_dump(mode="json", exclude_unset=True),
    )
    return success(tax)


@router.post("/{tax_id}/status")
async def change_tax_status(
    tax_id: str,
    body: TaxStatusChange,
    session: Session = Depends(require_capability(ADVANCE_WORKFLOW)),
):
    try:
        tax = await tax_service.change_status(tax_id, body.status, user_id=session.user_id)
    except InvalidTransitionError as exc:
        raise to_http_error(exc, "한 단계씩만 상태를 변경할 수 있습니다.") from exc
    except DOMAIN_ERRORS as exc:
        raise to_http_error(exc, "세금 정보를 찾을 수 없습니다.") from exc
    except Exception as exc:
        logger.exception("Failed to change status of tax %s", tax_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="상태 변경 중 오류가 발생했습니다.",
        ) from exc

    await audit_service.log(
        session,
        menu=MENU,
        action="update",
        description=f"세금 상태 변경: {TAX_STATUS_LABELS[body.status]}",
        target_table="taxes",
        target_id=tax_id,
        changes={"status": body.status},
    )
    return success({"tax": tax, "workflow": build_workflow(tax.tax_type, tax.status)})


@router.delete("/{tax_id}")
async def delete_tax(tax_id: str, session: Session = Depends(require_capability(MANAGE_TAXES))):
    try:
        tax = await tax_service.get_tax(tax_id)
        await tax_service.delete_tax(tax_id)
    except DOMAIN_ERRORS as exc:
        raise to_http_error(exc, "세금 정보를 찾을 수 없습니다.") from exc
    except Exception as exc:
        logger.exception("Failed to delete tax %s", tax_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="세금 삭제 중 오류가 발생했습니다.",
        ) from exc

    await audit_service.log(
        session,
        menu=MENU,
        action="delete",
        description=f"세금 삭제: {_label(tax.tax_type)} {format_amount(tax.tax_amount)}원",
        target_table="taxes",
        target_id=tax_id,
    )
    return success(message="세금 정보가 삭제되었습니다.")
