"""
Teams Channel API Routes
Webhook endpoints that receive broadcast notifications.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status

from tms.models.channels import ChannelCreate, ChannelUpdate
from tms.models.users import Session
from tms.routes.auth.permissions import MANAGE_SETTINGS, require_capability
from tms.routes.responses import DOMAIN_ERRORS, success, to_http_error
from tms.services.audit_service import audit_service
from tms.services.channel_service import channel_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["teams-channels"])

MENU = "알림 채널"
NOT_FOUND = "채널을 찾을 수 없습니다."


@router.get("/")
async def list_channels(active_only: bool = False, session: Session = Depends(require_capability(MANAGE_SETTINGS))):
    try:
        return success(await channel_service.list_channels(active_only=active_only))
    except Exception as exc:
        logger.exception("Failed to list channels")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="채널 목록을 불러오는 중 오류가 발생했습니다.",
        ) from exc


@router.post("/")
async def create_channel(body: ChannelCreate, session: Session = Depends(require_capability(MANAGE_SETTINGS))):
    try:
        channel = await channel_service.create_channel(body, user_id=session.user_id)
    except Exception as exc:
        logger.exception("Failed to create channel")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="채널 등록 중 오류가 발생했습니다.",
        ) from exc

    await audit_service.log(
        session,
        menu=MENU,
        action="create",
        description=f"Teams 채널 등록: {channel.channel_name}",
        target_table="teams_channels",
        target_id=channel.id,
        changes={"channel_name": channel.channel_name, "is_active": channel.is_active},
    )
    return success(channel, status_code=status.HTTP_201_CREATED)


@router.put("/{channel_id}")
async def update_channel(
    channel_id: str,
    body: ChannelUpdate,
    session: Session = Depends(require_capability(MANAGE_SETTINGS)),
):
    try:
        channel = await channel_service.update_channel(channel_id, body)
    except DOMAIN_ERRORS as exc:
        raise to_http_error(exc, NOT_FOUND) from exc
    except Exception as exc:
        logger.exception("Failed to update channel %s", channel_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="채널 수정 중 오류가 발생했습니다.",
        ) from exc

    await audit_service.log(
        session,
        menu=MENU,
        action="update",
        description=f"Teams 채널 수정: {channel.channel_name}",
        target_table="teams_channels",
        target_id=channel_id,
        changes=body.model_dump(mode="json", exclude_unset=True),
    )
    return success(channel)


@router.delete("/{channel_id}")
async def delete_channel(channel_id: str, session: Session = Depends(require_capability(MANAGE_SETTINGS))):
    try:
        await channel_service.delete_channel(channel_id)
    except DOMAIN_ERRORS as exc:
        raise to_http_error(exc, NOT_FOUND) from exc
    except Exception as exc:
        logger.exception("Failed to delete channel %s", channel_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="채널 삭제 중 오류가 발생했습니다.",
        ) from exc

    await audit_service.log(
        session,
        menu=MENU,
        action="delete",
        description="Teams 채널 삭제",
        target_table="teams_channels",
        target_id=channel_id,
    )
    return success(message="채널이 삭제되었습니다.")
