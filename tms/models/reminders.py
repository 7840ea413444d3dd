"""Reminder, schedule and delivery-log models."""
from datetime import date, datetime, time
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

ReminderType = Literal["auto", "manual"]


def _to_minute(value: time) -> time:
    return value.replace(second=0, microsecond=0, tzinfo=None)


def format_hm(value: time) -> str:
    """Canonical `HH:MM` form used for storage and comparison."""
    return value.strftime("%H:%M")


class ReminderSchedule(BaseModel):
    """Rule: notify `days_before` days ahead of a due date at `notification_time`."""
    id: str = Field(..., alias="_id")
    schedule_name: str = ""
    days_before: int = Field(0, ge=0)
    notification_time: time
    is_active: bool = True
    created_at: Optional[datetime] = None

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    @field_validator("notification_time")
    @classmethod
    def normalize_time(cls, value: time) -> time:
        return _to_minute(value)

    @field_serializer("notification_time")
    def serialize_time(self, value: time) -> str:
        return format_hm(value)


class ScheduleCreate(BaseModel):
    schedule_name: str = Field(..., min_length=1)
    days_before: int = Field(..., ge=0, le=365)
    notification_time: time = Field(..., description="HH:MM in the business timezone")
    is_active: bool = True

    @field_validator("notification_time")
    @classmethod
    def normalize_time(cls, value: time) -> time:
        return _to_minute(value)


class ScheduleUpdate(BaseModel):
    schedule_name: Optional[str] = Field(None, min_length=1)
    days_before: Optional[int] = Field(None, ge=0, le=365)
    notification_time: Optional[time] = None
    is_active: Optional[bool] = None

    @field_validator("notification_time")
    @classmethod
    def normalize_optional_time(cls, value: Optional[time]) -> Optional[time]:
        return _to_minute(value) if value is not None else None


class Reminder(BaseModel):
    """A scheduled notification instance, either derived (`auto`) or authored (`manual`)."""
    id: str = Field(..., alias="_id")
    tax_id: Optional[str] = None
    notification_type: ReminderType
    schedule_id: Optional[str] = None
    notification_date: date
    notification_time: time
    message: str
    teams_channel_id: Optional[str] = None
    is_sent: bool = False
    sent_at: Optional[datetime] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    @field_validator("notification_time")
    @classmethod
    def normalize_time(cls, value: time) -> time:
        return _to_minute(value)

    @field_serializer("notification_time")
    def serialize_time(self, value: time) -> str:
        return format_hm(value)


class ManualReminderCreate(BaseModel):
    tax_id: Optional[str] = None
    notification_date: date
    notification_time: time
    message: str = Field(..., min_length=1)
    teams_channel_id: Optional[str] = None

    @field_validator("notification_time")
    @classmethod
    def normalize_time(cls, value: time) -> time:
        return _to_minute(value)


class NotificationLog(BaseModel):
    id: str = Field(..., alias="_id")
    notification_id: str
    send_status: Literal["success", "failed"]
    channels_sent: int = 0
    channels_failed: int = 0
    error_message: Optional[str] = None
    sent_at: datetime

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)
