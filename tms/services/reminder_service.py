"""
Reminder Service
Storage for reminder records (`notifications`) and their delivery logs.
"""
import logging
import re
from datetime import date, datetime, time
from typing import Any, Dict, List, Optional
from uuid import uuid4

from tms.config import _now_utc
from tms.db import get_collection
from tms.models.reminders import ManualReminderCreate, NotificationLog, Reminder, format_hm
from tms.services.errors import NotFoundError

logger = logging.getLogger(__name__)


class ReminderService:
    @property
    def collection(self):
        return get_collection("notifications")

    @property
    def logs_collection(self):
        return get_collection("notification_logs")

    async def list_reminders(
        self,
        notification_type: Optional[str] = None,
        is_sent: Optional[bool] = None,
        search: Optional[str] = None,
        limit: int = 200,
    ) -> List[Reminder]:
        query: Dict[str, Any] = {}
        if notification_type:
            query["notification_type"] = notification_type
        if is_sent is not None:
            query["is_sent"] = is_sent
        if search:
            query["message"] = {"$regex": re.escape(search.strip()), "$options": "i"}
        cursor = (
            self.collection.find(query)
            .sort([("notification_date", -1), ("notification_time", -1)])
            .limit(limit)
        )
        docs = await cursor.to_list(length=None)
        return [Reminder.model_validate(d) for d in docs]

    async def get_reminder(self, reminder_id: str) -> Reminder:
        doc = await self.collection.find_one({"_id": reminder_id})
        if not doc:
            raise NotFoundError(f"Reminder {reminder_id} not found")
        return Reminder.model_validate(doc)

    async def count_pending(self) -> int:
        return await self.collection.count_documents({"is_sent": False})

    async def create_manual(self, data: ManualReminderCreate, user_id: Optional[str] = None) -> Reminder:
        doc = {
            "_id": str(uuid4()),
            "tax_id": data.tax_id or None,
            "notification_type": "manual",
            "schedule_id": None,
            "notification_date": data.notification_date.isoformat(),
            "notification_time": format_hm(data.notification_time),
            "message": data.message,
            "teams_channel_id": data.teams_channel_id or None,
            "is_sent": False,
            "sent_at": None,
            "created_by": user_id,
            "created_at": _now_utc(),
        }
        await self.collection.insert_one(doc)
        return Reminder.model_validate(doc)

    async def auto_exists(self, tax_id: str, schedule_id: str, target_date: date, target_time: time) -> bool:
        doc = await self.collection.find_one(
            {
                "notification_type": "auto",
                "tax_id": tax_id,
                "schedule_id": schedule_id,
                "notification_date": target_date.isoformat(),
                "notification_time": format_hm(target_time),
            },
            {"_id": 1},
        )
        return doc is not None

    async def create_auto(
        self,
        tax_id: str,
        schedule_id: str,
        target_date: date,
        target_time: time,
        message: str,
    ) -> str:
        reminder_id = str(uuid4())
        await self.collection.insert_one(
            {
                "_id": reminder_id,
                "tax_id": tax_id,
                "notification_type": "auto",
                "schedule_id": schedule_id,
                "notification_date": target_date.isoformat(),
                "notification_time": format_hm(target_time),
                "message": message,
                "teams_channel_id": None,
                "is_sent": False,
                "sent_at": None,
                "created_by": None,
                "created_at": _now_utc(),
            }
        )
        return reminder_id

    async def list_unsent_on(self, notification_type: str, day: date) -> List[Reminder]:
        docs = await self.collection.find(
            {
                "notification_type": notification_type,
                "is_sent": False,
                "notification_date": day.isoformat(),
            }
        ).sort("notification_time", 1).to_list(length=None)
        return [Reminder.model_validate(d) for d in docs]

    async def claim_for_sending(self, reminder_id: str, sent_at: Optional[datetime] = None) -> bool:
        """
        Flip is_sent false -> true atomically. Returns False when another
        dispatcher (or an earlier run) already claimed the reminder.
        """
        result = await self.collection.update_one(
            {"_id": reminder_id, "is_sent": False},
            {"$set": {"is_sent": True, "sent_at": sent_at or _now_utc()}},
        )
        return result.modified_count == 1

    async def delete_reminder(self, reminder_id: str) -> None:
        result = await self.collection.delete_one({"_id": reminder_id})
        if result.deleted_count == 0:
            raise NotFoundError(f"Reminder {reminder_id} not found")

    async def log_delivery(
        self,
        reminder_id: str,
        channels_sent: int,
        channels_failed: int,
        error_message: Optional[str] = None,
    ) -> NotificationLog:
        doc = {
            "_id": str(uuid4()),
            "notification_id": reminder_id,
            "send_status": "failed" if error_message or (channels_failed and not channels_sent) else "success",
            "channels_sent": channels_sent,
            "channels_failed": channels_failed,
            "error_message": error_message,
            "sent_at": _now_utc(),
        }
        await self.logs_collection.insert_one(doc)
        return NotificationLog.model_validate(doc)


reminder_service = ReminderService()
