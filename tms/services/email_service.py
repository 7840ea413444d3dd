import html
import logging
from typing import List, Optional

import httpx

from tms.config import settings
from tms.services.errors import EmailDeliveryError, ServiceNotConfiguredError

logger = logging.getLogger(__name__)

SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"
DEFAULT_SUBJECT = "TMS 세금 알림"


def text_to_html(text: str) -> str:
    return f"<p>{html.escape(text).replace(chr(10), '<br>')}</p>"


class EmailService:
    """Transactional email through the SendGrid v3 API."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(settings.sendgrid_api_key and settings.sendgrid_from_email)

    def build_payload(
        self,
        to: List[str],
        subject: str,
        text: str,
        html_content: Optional[str] = None,
    ) -> dict:
        return {
            "personalizations": [{"to": [{"email": e} for e in to], "subject": subject}],
            "from": {"email": settings.sendgrid_from_email, "name": settings.sendgrid_from_name},
            "content": [
                {"type": "text/plain", "value": text},
                {"type": "text/html", "value": html_content or text_to_html(text)},
            ],
        }

    async def send_email(
        self,
        to: List[str],
        subject: str,
        text: str,
        html_content: Optional[str] = None,
    ) -> None:
        if not self.is_configured:
            raise ServiceNotConfiguredError("SendGrid API key or sender address not configured")
        if not to:
            raise ValueError("At least one recipient is required")

        payload = self.build_payload(to, subject, text, html_content)
        headers = {"Authorization": f"Bearer {settings.sendgrid_api_key}"}
        try:
            async with httpx.AsyncClient(timeout=30.0, transport=self.transport) as client:
                response = await client.post(SENDGRID_URL, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            raise EmailDeliveryError(f"SendGrid unreachable: {exc}") from exc

        if not response.is_success:
            raise EmailDeliveryError(f"SendGrid API error: {response.status_code} - {response.text}")
        logger.info("Email '%s' sent to %d recipient(s)", subject, len(to))


email_service = EmailService()
