"""
Tests for auto-reminder generation.
"""
import asyncio
from datetime import datetime, timezone

from conftest import insert_schedule, insert_station, insert_tax
from tms.services.reminder_generator import ReminderGenerator

# 2025-03-01 09:00 in Asia/Seoul
NOW = datetime(2025, 3, 1, 0, 0, tzinfo=timezone.utc)


async def _auto_reminders(db):
    return await db["notifications"].find({"notification_type": "auto"}).to_list(length=None)


class TestGeneration:

    async def test_creates_reminder_days_before_due(self, db):
        station_id = await insert_station(db, "강남 충전소")
        tax_id = await insert_tax(db, "2025-03-10", station_id=station_id)
        schedule_id = await insert_schedule(db, 7, "09:00")

        result = await ReminderGenerator().run(NOW)

        assert result.to_dict() == {"created": 1, "skipped": 0}
        [reminder] = await _auto_reminders(db)
        assert reminder["tax_id"] == tax_id
        assert reminder["schedule_id"] == schedule_id
        assert reminder["notification_date"] == "2025-03-03"
        assert reminder["notification_time"] == "09:00"
        assert reminder["is_sent"] is False
        assert reminder["message"] == "강남 충전소 재산세 1,250,000원 납부 기한 2025-03-10 리마인더"

    async def test_message_without_station(self, db):
        await insert_tax(db, "2025-03-10", tax_type="acquisition", tax_amount=500)
        await insert_schedule(db, 1)

        await ReminderGenerator().run(NOW)

        [reminder] = await _auto_reminders(db)
        assert reminder["message"] == "취득세 500원 납부 기한 2025-03-10 리마인더"

    async def test_second_run_is_idempotent(self, db):
        await insert_tax(db, "2025-03-10")
        await insert_schedule(db, 7)
        generator = ReminderGenerator()

        first = await generator.run(NOW)
        second = await generator.run(NOW)

        assert first.created == 1
        assert second.created == 0
        assert second.skipped == 1
        assert len(await _auto_reminders(db)) == 1

    async def test_concurrent_runs_create_one_reminder(self, db):
        await insert_tax(db, "2025-03-10")
        await insert_schedule(db, 7)
        generator = ReminderGenerator()

        results = await asyncio.gather(generator.run(NOW), generator.run(NOW))

        assert sum(r.created for r in results) == 1
        assert len(await _auto_reminders(db)) == 1

    async def test_past_target_is_skipped(self, db):
        await insert_tax(db, "2025-03-05")
        await insert_schedule(db, 7)

        result = await ReminderGenerator().run(NOW)

        assert result.created == 0
        assert result.skipped == 1
        assert await _auto_reminders(db) == []

    async def test_same_day_earlier_time_is_skipped(self, db):
        # target 2025-03-01 08:00 is already behind 09:00
        await insert_tax(db, "2025-03-08")
        await insert_schedule(db, 7, "08:00")

        result = await ReminderGenerator().run(NOW)

        assert result.created == 0
        assert result.skipped == 1

    async def test_one_reminder_per_schedule(self, db):
        await insert_tax(db, "2025-03-20")
        await insert_schedule(db, 7)
        await insert_schedule(db, 3, "15:30")

        result = await ReminderGenerator().run(NOW)

        assert result.created == 2
        dates = sorted(r["notification_date"] for r in await _auto_reminders(db))
        assert dates == ["2025-03-13", "2025-03-17"]


class TestEarlyExits:

    async def test_no_active_schedules(self, db):
        await insert_tax(db, "2025-03-10")
        await insert_schedule(db, 7, is_active=False)

        result = await ReminderGenerator().run(NOW)

        assert result.to_dict() == {"created": 0, "skipped": 0, "reason": "no_active_schedules"}

    async def test_paid_taxes_are_excluded(self, db):
        await insert_tax(db, "2025-03-10", status="payment_completed")
        await insert_schedule(db, 7)

        result = await ReminderGenerator().run(NOW)

        assert result.reason == "no_taxes"
        assert await _auto_reminders(db) == []
