"""Reminder schedule rules ("N days before due date, at HH:MM")."""
import logging
from typing import List, Optional
from uuid import uuid4

from tms.config import _now_utc
from tms.db import get_collection
from tms.models.reminders import ReminderSchedule, ScheduleCreate, ScheduleUpdate, format_hm
from tms.services.errors import NotFoundError

logger = logging.getLogger(__name__)


class ScheduleService:
    @property
    def collection(self):
        return get_collection("notification_schedules")

    async def list_schedules(self, active_only: bool = False) -> List[ReminderSchedule]:
        query = {"is_active": True} if active_only else {}
        docs = await self.collection.find(query).sort("days_before", -1).to_list(length=None)
        return [ReminderSchedule.model_validate(d) for d in docs]

    async def list_active(self) -> List[ReminderSchedule]:
        return await self.list_schedules(active_only=True)

    async def get_schedule(self, schedule_id: str) -> ReminderSchedule:
        doc = await self.collection.find_one({"_id": schedule_id})
        if not doc:
            raise NotFoundError(f"Schedule {schedule_id} not found")
        return ReminderSchedule.model_validate(doc)

    async def create_schedule(self, data: ScheduleCreate) -> ReminderSchedule:
        doc = {
            "_id": str(uuid4()),
            "schedule_name": data.schedule_name,
            "days_before": data.days_before,
            "notification_time": format_hm(data.notification_time),
            "is_active": data.is_active,
            "created_at": _now_utc(),
        }
        await self.collection.insert_one(doc)
        return ReminderSchedule.model_validate(doc)

    async def update_schedule(self, schedule_id: str, data: ScheduleUpdate) -> ReminderSchedule:
        update_data = data.model_dump(exclude_unset=True, exclude_none=True)
        if "notification_time" in update_data:
            update_data["notification_time"] = format_hm(update_data["notification_time"])
        if update_data:
            result = await self.collection.update_one({"_id": schedule_id}, {"$set": update_data})
            if result.matched_count == 0:
                raise NotFoundError(f"Schedule {schedule_id} not found")
        return await self.get_schedule(schedule_id)

    async def delete_schedule(self, schedule_id: str) -> None:
        result = await self.collection.delete_one({"_id": schedule_id})
        if result.deleted_count == 0:
            raise NotFoundError(f"Schedule {schedule_id} not found")


schedule_service = ScheduleService()
