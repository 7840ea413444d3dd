"""
Calendar helpers.
All reminder arithmetic happens on plain calendar dates in one fixed civil
timezone (`settings.business_timezone`), so a due date never drifts by a day
depending on where the server runs.
"""
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple, Union
from zoneinfo import ZoneInfo

from tms.config import settings

DateLike = Union[date, str]


def business_tz() -> ZoneInfo:
    return ZoneInfo(settings.business_timezone)


def to_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value[:10])


def subtract_days(due: DateLike, days: int) -> date:
    """`due - days` as pure calendar-day subtraction (no timezone involved)."""
    return to_date(due) - timedelta(days=days)


def add_days(base: DateLike, days: int) -> date:
    return to_date(base) + timedelta(days=days)


def business_now(now: Optional[datetime] = None) -> datetime:
    """`now` (or the current instant) expressed in the business timezone."""
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(business_tz())


def today_and_now_hm(now: Optional[datetime] = None) -> Tuple[date, time]:
    """Business-calendar today plus the current time truncated to the minute."""
    local = business_now(now)
    return local.date(), time(local.hour, local.minute)


def is_future(target_date: date, target_time: time, today: date, now_hm: time) -> bool:
    return target_date > today or (target_date == today and target_time > now_hm)


def format_amount(amount: Optional[float]) -> str:
    """Group digits with commas; at most three fraction digits, none for whole amounts."""
    value = round(float(amount or 0), 3)
    if value.is_integer():
        return f"{int(value):,}"
    return f"{value:,}"
