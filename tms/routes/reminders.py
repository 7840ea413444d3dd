"""
Notification (reminder) API Routes
Manual reminders, the reminder list and immediate delivery.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status

from tms.models.reminders import ManualReminderCreate, ReminderType
from tms.models.users import Session
from tms.routes.auth.permissions import (
    CREATE_REMINDER,
    MANAGE_NOTIFICATIONS,
    SEND_NOTIFICATIONS,
    VIEW,
    require_capability,
)
from tms.routes.responses import success, to_http_error
from tms.services.audit_service import audit_service
from tms.services.errors import ConflictError, NotFoundError
from tms.services.reminder_dispatcher import reminder_dispatcher
from tms.services.reminder_service import reminder_service
from tms.services.tax_service import tax_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["notifications"])

MENU = "알림 관리"
NOT_FOUND = "알림을 찾을 수 없습니다."


@router.get("/")
async def list_reminders(
    notification_type: Optional[ReminderType] = None,
    is_sent: Optional[bool] = None,
    search: Optional[str] = None,
    session: Session = Depends(require_capability(VIEW)),
):
    try:
        reminders = await reminder_service.list_reminders(
            notification_type=notification_type, is_sent=is_sent, search=search
        )
        return success(reminders)
    except Exception as exc:
        logger.exception("Failed to list reminders")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="알림 목록을 불러오는 중 오류가 발생했습니다.",
        ) from exc


@router.post("/")
async def create_manual_reminder(
    body: ManualReminderCreate,
    session: Session = Depends(require_capability(CREATE_REMINDER)),
):
    try:
        if body.tax_id:
            await tax_service.get_tax(body.tax_id)
        reminder = await reminder_service.create_manual(body, user_id=session.user_id)
    except NotFoundError as exc:
        raise to_http_error(exc, "세금 정보를 찾을 수 없습니다.") from exc
    except Exception as exc:
        logger.exception("Failed to create manual reminder")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="알림 등록 중 오류가 발생했습니다.",
        ) from exc

    await audit_service.log(
        session,
        menu=MENU,
        action="create",
        description=f"수동 알림 등록: {reminder.notification_date.isoformat()} {body.notification_time.strftime('%H:%M')}",
        target_table="notifications",
        target_id=reminder.id,
        changes=body.model_dump(mode="json"),
    )
    return success(reminder, status_code=status.HTTP_201_CREATED)


@router.post("/{reminder_id}/send")
async def send_reminder_now(reminder_id: str, session: Session = Depends(require_capability(SEND_NOTIFICATIONS))):
    """Deliver one reminder right away through the dispatcher's delivery path."""
    try:
        result = await reminder_dispatcher.send_now(reminder_id)
    except ConflictError as exc:
        raise to_http_error(exc, "이미 발송된 알림입니다.") from exc
    except NotFoundError as exc:
        raise to_http_error(exc, NOT_FOUND) from exc
    except Exception as exc:
        logger.exception("Immediate send failed for reminder %s", reminder_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="알림 발송 중 오류가 발생했습니다.",
        ) from exc
    return success(result.to_dict())


@router.delete("/{reminder_id}")
async def delete_reminder(reminder_id: str, session: Session = Depends(require_capability(MANAGE_NOTIFICATIONS))):
    try:
        await reminder_service.delete_reminder(reminder_id)
    except NotFoundError as exc:
        raise to_http_error(exc, NOT_FOUND) from exc
    except Exception as exc:
        logger.exception("Failed to delete reminder %s", reminder_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="알림 삭제 중 오류가 발생했습니다.",
        ) from exc

    await audit_service.log(
        session,
        menu=MENU,
        action="delete",
        description="알림 삭제",
        target_table="notifications",
        target_id=reminder_id,
    )
    return success(message="알림이 삭제되었습니다.")
