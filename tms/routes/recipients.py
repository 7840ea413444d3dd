"""
Email Recipient API Routes
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status

from tms.models.channels import RecipientCreate, RecipientUpdate
from tms.models.users import Session
from tms.routes.auth.permissions import MANAGE_SETTINGS, require_capability
from tms.routes.responses import success, to_http_error
from tms.services.audit_service import audit_service
from tms.services.channel_service import channel_service
from tms.services.errors import ConflictError, NotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["email-recipients"])

MENU = "이메일 수신자"
DUPLICATE = "이미 등록된 이메일 주소입니다."
NOT_FOUND = "수신자를 찾을 수 없습니다."


@router.get("/")
async def list_recipients(active_only: bool = False, session: Session = Depends(require_capability(MANAGE_SETTINGS))):
    try:
        return success(await channel_service.list_recipients(active_only=active_only))
    except Exception as exc:
        logger.exception("Failed to list email recipients")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="수신자 목록을 불러오는 중 오류가 발생했습니다.",
        ) from exc


@router.post("/")
async def create_recipient(body: RecipientCreate, session: Session = Depends(require_capability(MANAGE_SETTINGS))):
    try:
        recipient = await channel_service.create_recipient(body)
    except ConflictError as exc:
        raise to_http_error(exc, DUPLICATE) from exc
    except Exception as exc:
        logger.exception("Failed to create email recipient")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="수신자 등록 중 오류가 발생했습니다.",
        ) from exc

    await audit_service.log(
        session,
        menu=MENU,
        action="create",
        description=f"이메일 수신자 등록: {recipient.email}",
        target_table="email_recipients",
        target_id=recipient.id,
        changes=body.model_dump(),
    )
    return success(recipient, status_code=status.HTTP_201_CREATED)


@router.put("/{recipient_id}")
async def update_recipient(
    recipient_id: str,
    body: RecipientUpdate,
    session: Session = Depends(require_capability(MANAGE_SETTINGS)),
):
    try:
        recipient = await channel_service.update_recipient(recipient_id, body)
    except ConflictError as exc:
        raise to_http_error(exc, DUPLICATE) from exc
    except NotFoundError as exc:
        raise to_http_error(exc, NOT_FOUND) from exc
    except Exception as exc:
        logger.exception("Failed to update email recipient %s", recipient_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="수신자 수정 중 오류가 발생했습니다.",
        ) from exc

    await audit_service.log(
        session,
        menu=MENU,
        action="update",
        description=f"이메일 수신자 수정: {recipient.email}",
        target_table="email_recipients",
        target_id=recipient_id,
        changes=body.model_dump(exclude_unset=True),
    )
    return success(recipient)


@router.delete("/{recipient_id}")
async def delete_recipient(recipient_id: str, session: Session = Depends(require_capability(MANAGE_SETTINGS))):
    try:
        await channel_service.delete_recipient(recipient_id)
    except NotFoundError as exc:
        raise to_http_error(exc, NOT_FOUND) from exc
    except Exception as exc:
        logger.exception("Failed to delete email recipient %s", recipient_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="수신자 삭제 중 오류가 발생했습니다.",
        ) from exc

    await audit_service.log(
        session,
        menu=MENU,
        action="delete",
        description="이메일 수신자 삭제",
        target_table="email_recipients",
        target_id=recipient_id,
    )
    return success(message="수신자가 삭제되었습니다.")
