"""
Reminder Dispatcher
Delivers whatever is due: a per-schedule aggregate digest of obligations due
N days from today, plus every unsent reminder record whose date is today and
whose time has arrived. Each reminder is claimed (is_sent -> true) before it
is delivered, so it goes out at most once even if runs overlap.
"""
import html
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from tms.config import _now_utc
from tms.db import get_collection
from tms.models.channels import EmailRecipient, OutboundChannel
from tms.models.reminders import Reminder, ReminderSchedule
from tms.models.taxes import TAX_TYPE_LABELS
from tms.services.channel_service import channel_service
from tms.services.date_utils import add_days, format_amount, today_and_now_hm
from tms.services.email_service import DEFAULT_SUBJECT, EmailService, email_service
from tms.services.errors import ConflictError, EmailDeliveryError, NotFoundError
from tms.services.reminder_service import reminder_service
from tms.services.schedule_service import schedule_service
from tms.services.tax_service import tax_service
from tms.services.webhook_service import DeliveryTally, WebhookService, webhook_service

logger = logging.getLogger(__name__)


@dataclass
class DispatchResult:
    dispatched: int = 0
    dispatched_manual: int = 0
    dispatched_auto: int = 0
    channels: DeliveryTally = field(default_factory=DeliveryTally)
    emails: DeliveryTally = field(default_factory=DeliveryTally)
    now: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "dispatched": self.dispatched,
            "dispatchedManual": self.dispatched_manual,
            "dispatchedAuto": self.dispatched_auto,
            "channelsSent": self.channels.sent,
            "channelsFailed": self.channels.failed,
            "emailsSent": self.emails.sent,
            "emailsFailed": self.emails.failed,
            "now": self.now.isoformat() if self.now else None,
        }


@dataclass
class Targets:
    """Active delivery targets, loaded once per run."""
    channels: List[OutboundChannel]
    recipients: List[EmailRecipient]

    @property
    def webhook_urls(self) -> List[str]:
        return [c.webhook_url for c in self.channels]

    @property
    def emails(self) -> List[str]:
        return [r.email for r in self.recipients]

    def urls_for(self, channel_id: Optional[str]) -> List[str]:
        """The reminder's own channel when it is active, otherwise every active channel."""
        if channel_id:
            by_id: Dict[str, str] = {c.id: c.webhook_url for c in self.channels}
            if channel_id in by_id:
                return [by_id[channel_id]]
        return self.webhook_urls


def aggregate_message(count: int, target_date) -> str:
    return f"세금 일정 알림\n대상 건수: {count}건\n기한: {target_date.isoformat()}"


class ReminderDispatcher:
    def __init__(
        self,
        webhooks: Optional[WebhookService] = None,
        emailer: Optional[EmailService] = None,
    ) -> None:
        self.webhooks = webhooks or webhook_service
        self.emailer = emailer or email_service

    @property
    def schedule_dispatches(self):
        return get_collection("schedule_dispatches")

    async def load_targets(self) -> Targets:
        return Targets(
            channels=await channel_service.list_active_channels(),
            recipients=await channel_service.list_active_recipients(),
        )

    async def run(self, now: Optional[datetime] = None) -> DispatchResult:
        now = now or _now_utc()
        today, now_hm = today_and_now_hm(now)
        targets = await self.load_targets()
        result = DispatchResult(now=now)

        for schedule in await schedule_service.list_active():
            await self._sweep_schedule(schedule, today, now_hm, targets, result)

        result.dispatched_manual = await self._sweep_reminders("manual", today, now_hm, now, targets, result)
        result.dispatched_auto = await self._sweep_reminders("auto", today, now_hm, now, targets, result)

        logger.info("Dispatch finished: %s", result.to_dict())
        return result

    # -----------------------
    # Schedule-triggered digest
    # -----------------------
    async def _sweep_schedule(self, schedule: ReminderSchedule, today, now_hm, targets: Targets, result: DispatchResult) -> None:
        if schedule.notification_time > now_hm:
            return
        target_date = add_days(today, schedule.days_before)
        taxes = await tax_service.list_open_due_on(target_date)
        if not taxes:
            return
        if not await self._claim_schedule(schedule.id, target_date.isoformat(), len(taxes)):
            return

        message = aggregate_message(len(taxes), target_date)
        result.channels.add(await self.webhooks.broadcast(targets.webhook_urls, message))
        await self._send_email(targets, message, message_html=None, result=result)
        result.dispatched += len(taxes)

    async def _claim_schedule(self, schedule_id: str, target_date: str, tax_count: int) -> bool:
        outcome = await self.schedule_dispatches.update_one(
            {"schedule_id": schedule_id, "target_date": target_date},
            {"$setOnInsert": {"tax_count": tax_count, "dispatched_at": _now_utc()}},
            upsert=True,
        )
        return outcome.upserted_id is not None

    # -----------------------
    # Due reminder records
    # -----------------------
    async def _sweep_reminders(self, notification_type: str, today, now_hm, now: datetime, targets: Targets, result: DispatchResult) -> int:
        delivered = 0
        for reminder in await reminder_service.list_unsent_on(notification_type, today):
            if reminder.notification_time > now_hm:
                continue
            if not await reminder_service.claim_for_sending(reminder.id, sent_at=now):
                continue
            await self.deliver(reminder, targets, result)
            delivered += 1
        return delivered

    async def deliver(self, reminder: Reminder, targets: Targets, result: DispatchResult) -> None:
        """Send an already-claimed reminder to its channels and the email list."""
        tally = await self.webhooks.broadcast(targets.urls_for(reminder.teams_channel_id), reminder.message)
        result.channels.add(tally)
        email_error = await self._send_email(
            targets, reminder.message, await self._reminder_html(reminder), result
        )
        await reminder_service.log_delivery(reminder.id, tally.sent, tally.failed, email_error)

    async def send_now(self, reminder_id: str) -> DispatchResult:
        """Immediate delivery of one reminder, regardless of its scheduled time."""
        reminder = await reminder_service.get_reminder(reminder_id)
        if reminder.is_sent or not await reminder_service.claim_for_sending(reminder.id):
            raise ConflictError(f"Reminder {reminder_id} was already sent")
        result = DispatchResult(now=_now_utc())
        await self.deliver(reminder, await self.load_targets(), result)
        if reminder.notification_type == "manual":
            result.dispatched_manual = 1
        else:
            result.dispatched_auto = 1
        return result

    async def _send_email(self, targets: Targets, message: str, message_html: Optional[str], result: DispatchResult) -> Optional[str]:
        if not targets.emails:
            return None
        if not self.emailer.is_configured:
            logger.info("Email provider not configured; skipping email for dispatch")
            return None
        try:
            await self.emailer.send_email(targets.emails, DEFAULT_SUBJECT, message, message_html)
        except EmailDeliveryError as exc:
            logger.warning("Email delivery failed: %s", exc)
            result.emails.failed += 1
            return str(exc)
        result.emails.sent += 1
        return None

    async def _reminder_html(self, reminder: Reminder) -> str:
        body = [f"<h2>{DEFAULT_SUBJECT}</h2>", f"<p>{html.escape(reminder.message)}</p>"]
        if reminder.tax_id:
            try:
                tax = await tax_service.get_tax(reminder.tax_id)
            except NotFoundError:
                tax = None
            if tax:
                body.append("<hr><h3>관련 세금 정보</h3>")
                if tax.station:
                    body.append(f"<p><strong>충전소:</strong> {html.escape(tax.station.station_name)}</p>")
                body.append(f"<p><strong>세금 유형:</strong> {TAX_TYPE_LABELS.get(tax.tax_type, tax.tax_type)}</p>")
                body.append(f"<p><strong>세금 금액:</strong> {format_amount(tax.tax_amount)}원</p>")
                if tax.due_date:
                    body.append(f"<p><strong>납부 기한:</strong> {tax.due_date.isoformat()}</p>")
        body.append("<hr><p><small>이 메시지는 TMS 시스템에서 자동으로 발송되었습니다.</small></p>")
        return "\n".join(body)


reminder_dispatcher = ReminderDispatcher()
