"""
Notification Schedule API Routes
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status

from tms.models.reminders import ScheduleCreate, ScheduleUpdate
from tms.models.users import Session
from tms.routes.auth.permissions import MANAGE_SETTINGS, VIEW, require_capability
from tms.routes.responses import DOMAIN_ERRORS, success, to_http_error
from tms.services.audit_service import audit_service
from tms.services.schedule_service import schedule_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["notification-schedules"])

MENU = "알림 설정"
NOT_FOUND = "알림 일정을 찾을 수 없습니다."


@router.get("/")
async def list_schedules(active_only: bool = False, session: Session = Depends(require_capability(VIEW))):
    try:
        return success(await schedule_service.list_schedules(active_only=active_only))
    except Exception as exc:
        logger.exception("Failed to list notification schedules")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="알림 일정을 불러오는 중 오류가 발생했습니다.",
        ) from exc


@router.post("/")
async def create_schedule(body: ScheduleCreate, session: Session = Depends(require_capability(MANAGE_SETTINGS))):
    try:
        schedule = await schedule_service.create_schedule(body)
    except Exception as exc:
        logger.exception("Failed to create notification schedule")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="알림 일정 등록 중 오류가 발생했습니다.",
        ) from exc

    await audit_service.log(
        session,
        menu=MENU,
        action="create",
        description=f"알림 일정 등록: {schedule.schedule_name} (D-{schedule.days_before})",
        target_table="notification_schedules",
        target_id=schedule.id,
        changes=body.model_dump(mode="json"),
    )
    return success(schedule, status_code=status.HTTP_201_CREATED)


async def _apply_update(schedule_id: str, body: ScheduleUpdate, session: Session, description: str):
    try:
        schedule = await schedule_service.update_schedule(schedule_id, body)
    except DOMAIN_ERRORS as exc:
        raise to_http_error(exc, NOT_FOUND) from exc
    except Exception as exc:
        logger.exception("Failed to update notification schedule %s", schedule_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="알림 일정 수정 중 오류가 발생했습니다.",
        ) from exc

    await audit_service.log(
        session,
        menu=MENU,
        action="update",
        description=f"{description}: {schedule.schedule_name}",
        target_table="notification_schedules",
        target_id=schedule_id,
        changes=body.model_dump(mode="json", exclude_unset=True),
    )
    return success(schedule)


@router.put("/{schedule_id}")
async def update_schedule(
    schedule_id: str,
    body: ScheduleUpdate,
    session: Session = Depends(require_capability(MANAGE_SETTINGS)),
):
    return await _apply_update(schedule_id, body, session, "알림 일정 수정")


@router.post("/{schedule_id}/deactivate")
async def deactivate_schedule(schedule_id: str, session: Session = Depends(require_capability(MANAGE_SETTINGS))):
    return await _apply_update(schedule_id, ScheduleUpdate(is_active=False), session, "알림 일정 비활성화")


@router.delete("/{schedule_id}")
async def delete_schedule(schedule_id: str, session: Session = Depends(require_capability(MANAGE_SETTINGS))):
    try:
        schedule = await schedule_service.get_schedule(schedule_id)
        await schedule_service.delete_schedule(schedule_id)
    except DOMAIN_ERRORS as exc:
        raise to_http_error(exc, NOT_FOUND) from exc
    except Exception as exc:
        logger.exception("Failed to delete notification schedule %s", schedule_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="알림 일정 삭제 중 오류가 발생했습니다.",
        ) from exc

    await audit_service.log(
        session,
        menu=MENU,
        action="delete",
        description=f"알림 일정 삭제: {schedule.schedule_name}",
        target_table="notification_schedules",
        target_id=schedule_id,
    )
    return success(message="알림 일정이 삭제되었습니다.")
