"""
Dashboard Service
Aggregates tax, station and reminder counts for the dashboard and for the AI
insights prompt.
"""
import logging
from datetime import timedelta
from typing import Dict, Optional

from pydantic import BaseModel

from tms.services.date_utils import today_and_now_hm
from tms.services.reminder_service import reminder_service
from tms.services.station_service import station_service
from tms.services.tax_service import COMPLETED, tax_service

logger = logging.getLogger(__name__)


class DashboardSummary(BaseModel):
    total_taxes: int = 0
    unpaid_taxes: int = 0
    overdue_taxes: int = 0
    monthly_due: int = 0
    weekly_due: int = 0
    unpaid_amount: float = 0
    stations_by_status: Dict[str, int] = {}
    pending_reminders: int = 0


class DashboardService:
    async def get_summary(self, now=None) -> DashboardSummary:
        today, _ = today_and_now_hm(now)
        week_end = today + timedelta(days=7)
        taxes = await tax_service.list_taxes()

        summary = DashboardSummary(total_taxes=len(taxes))
        for tax in taxes:
            if tax.status == COMPLETED:
                continue
            summary.unpaid_taxes += 1
            summary.unpaid_amount += tax.tax_amount or 0
            due = tax.due_date
            if due is None:
                continue
            if due < today:
                summary.overdue_taxes += 1
            elif due <= week_end:
                summary.weekly_due += 1
            if due >= today and (due.year, due.month) == (today.year, today.month):
                summary.monthly_due += 1

        summary.stations_by_status = await station_service.count_by_status()
        summary.pending_reminders = await reminder_service.count_pending()
        return summary


dashboard_service = DashboardService()
