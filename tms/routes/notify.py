"""
Notification test-send API Routes
Lets an admin check webhook and email configuration without waiting for
the dispatcher.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status

from tms.models.channels import EmailTestRequest, TeamsTestRequest
from tms.models.users import Session
from tms.routes.auth.permissions import SEND_NOTIFICATIONS, require_capability
from tms.routes.responses import success, to_http_error
from tms.services.channel_service import channel_service
from tms.services.email_service import email_service
from tms.services.errors import EmailDeliveryError, ServiceNotConfiguredError
from tms.services.webhook_service import dedupe_urls, webhook_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["notify"])

DEFAULT_TEST_TEXT = "TMS 테스트 알림입니다."


@router.post("/teams-test")
async def teams_test(body: TeamsTestRequest, session: Session = Depends(require_capability(SEND_NOTIFICATIONS))):
    urls = list(body.webhookUrls)
    if body.channelIds:
        channels = await channel_service.get_channels_by_ids(body.channelIds)
        urls.extend(c.webhook_url for c in channels)

    targets = dedupe_urls(urls)
    if not targets:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="발송할 웹훅 URL이 없습니다.",
        )

    try:
        tally = await webhook_service.broadcast(targets, body.text or DEFAULT_TEST_TEXT)
    except Exception as exc:
        logger.exception("Teams test send failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="테스트 발송 중 오류가 발생했습니다.",
        ) from exc
    return success(sent=tally.sent, failed=tally.failed)


@router.post("/email-test")
async def email_test(body: EmailTestRequest, session: Session = Depends(require_capability(SEND_NOTIFICATIONS))):
    try:
        await email_service.send_email(
            [str(address) for address in body.to],
            body.subject,
            body.content or DEFAULT_TEST_TEXT,
        )
    except ServiceNotConfiguredError as exc:
        raise to_http_error(exc, "이메일 발송 설정이 되어 있지 않습니다.") from exc
    except EmailDeliveryError as exc:
        logger.warning("Email test send failed: %s", exc)
        raise to_http_error(exc) from exc
    except Exception as exc:
        logger.exception("Email test send failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="테스트 발송 중 오류가 발생했습니다.",
        ) from exc
    return success(message="이메일이 발송되었습니다.")
