"""
Reminder Generator
Turns (active schedule x open tax obligation) pairs into `auto` reminder
records. Only future reminders are created and an existing reminder for the
same (tax, schedule, date, time) key is never duplicated, so the job can be
re-run at any time.
"""
import asyncio
import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Optional

from tms.models.reminders import ReminderSchedule
from tms.models.taxes import TAX_TYPE_LABELS, TaxObligation
from tms.services.date_utils import format_amount, is_future, subtract_days, today_and_now_hm
from tms.services.reminder_service import reminder_service
from tms.services.schedule_service import schedule_service
from tms.services.tax_service import tax_service

logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    created: int = 0
    skipped: int = 0
    reason: Optional[str] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        if data["reason"] is None:
            data.pop("reason")
        return data


def reminder_message(tax: TaxObligation) -> str:
    type_name = TAX_TYPE_LABELS.get(tax.tax_type, tax.tax_type)
    amount = format_amount(tax.tax_amount)
    due = tax.due_date.isoformat() if tax.due_date else ""
    station = tax.station.station_name if tax.station else ""
    if station:
        return f"{station} {type_name} {amount}원 납부 기한 {due} 리마인더"
    return f"{type_name} {amount}원 납부 기한 {due} 리마인더"


class ReminderGenerator:
    def __init__(self) -> None:
        # Serializes runs inside this process so two triggers cannot both
        # pass the existence check for the same key before either inserts.
        self._lock = asyncio.Lock()

    async def run(self, now: Optional[datetime] = None) -> GenerationResult:
        async with self._lock:
            return await self._run(now)

    async def _run(self, now: Optional[datetime]) -> GenerationResult:
        schedules = await schedule_service.list_active()
        if not schedules:
            return GenerationResult(reason="no_active_schedules")

        taxes = await tax_service.list_open_obligations()
        if not taxes:
            return GenerationResult(reason="no_taxes")

        today, now_hm = today_and_now_hm(now)
        result = GenerationResult()
        for schedule in schedules:
            for tax in taxes:
                if await self._process_pair(schedule, tax, today, now_hm):
                    result.created += 1
                else:
                    result.skipped += 1

        logger.info(
            "Reminder generation finished: created=%d skipped=%d (today=%s %s)",
            result.created, result.skipped, today, now_hm.strftime("%H:%M"),
        )
        return result

    async def _process_pair(self, schedule: ReminderSchedule, tax: TaxObligation, today, now_hm) -> bool:
        if tax.due_date is None:
            return False

        target_date = subtract_days(tax.due_date, schedule.days_before)
        target_time = schedule.notification_time
        if not is_future(target_date, target_time, today, now_hm):
            return False

        if await reminder_service.auto_exists(tax.id, schedule.id, target_date, target_time):
            return False

        await reminder_service.create_auto(
            tax_id=tax.id,
            schedule_id=schedule.id,
            target_date=target_date,
            target_time=target_time,
            message=reminder_message(tax),
        )
        return True


reminder_generator = ReminderGenerator()
