"""
TMS - Test Configuration

Pytest fixtures: an in-memory Mongo database, sessions per role and an
HTTP client bound to the app.
"""
import os

# Settings are read at import time
os.environ.setdefault("MONGO_URI", "mongodb://localhost:27017")
os.environ.setdefault("MONGO_DB_NAME", "tms_test")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator
from uuid import uuid4

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient

import tms.db as tms_db
from tms.config import settings
from tms.main import app
from tms.models.users import Session
from tms.routes.auth.permissions import capabilities_for, get_current_session


@pytest.fixture
def db(monkeypatch):
    """Fresh in-memory database installed as the app's database."""
    database = AsyncMongoMockClient()["tms_test"]
    monkeypatch.setattr(tms_db, "_db", database)
    return database


@pytest.fixture(autouse=True)
def no_external_services(monkeypatch):
    """Outbound providers stay unconfigured unless a test opts in."""
    monkeypatch.setattr(settings, "cron_secret", None)
    monkeypatch.setattr(settings, "sendgrid_api_key", None)
    monkeypatch.setattr(settings, "sendgrid_from_email", None)
    monkeypatch.setattr(settings, "gemini_api_key", None)
    monkeypatch.setattr(settings, "openai_api_key", None)


def make_session(role: str = "admin", name: str = "테스트 사용자") -> Session:
    return Session(
        user_id=str(uuid4()),
        email=f"{role}@example.com",
        name=name,
        role=role,
        capabilities=capabilities_for(role),
        token_id=str(uuid4()),
        expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
    )


@pytest.fixture
def admin_session() -> Session:
    return make_session("admin")


@pytest.fixture
def viewer_session() -> Session:
    return make_session("viewer")


@pytest_asyncio.fixture
async def client(db) -> AsyncGenerator[AsyncClient, None]:
    """Client without a session override: real bearer-token authentication."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def login_as():
    """Resolve every request to the given session."""
    def _login(session: Session) -> Session:
        app.dependency_overrides[get_current_session] = lambda: session
        return session

    yield _login
    app.dependency_overrides.clear()


@pytest.fixture
def webhook_transport():
    """MockTransport recording every webhook POST; URLs containing 'fail' answer 500."""
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if "fail" in str(request.url):
            return httpx.Response(500, text="boom")
        return httpx.Response(200, text="1")

    transport = httpx.MockTransport(handler)
    transport.calls = calls
    return transport


async def insert_station(db, station_name: str = "강남 충전소", **extra) -> str:
    station_id = str(uuid4())
    await db["charging_stations"].insert_one({
        "_id": station_id,
        "station_name": station_name,
        "location": "서울 강남구",
        "address": None,
        "status": "operating",
        "created_at": datetime.now(timezone.utc),
        **extra,
    })
    return station_id


async def insert_tax(db, due_date: str, station_id: str = None, **extra) -> str:
    tax_id = str(uuid4())
    await db["taxes"].insert_one({
        "_id": tax_id,
        "station_id": station_id,
        "tax_type": "property",
        "tax_amount": 1250000,
        "due_date": due_date,
        "status": "payment_scheduled",
        "payment_date": None,
        "created_at": datetime.now(timezone.utc),
        **extra,
    })
    return tax_id


async def insert_schedule(db, days_before: int, notification_time: str = "09:00", **extra) -> str:
    schedule_id = str(uuid4())
    await db["notification_schedules"].insert_one({
        "_id": schedule_id,
        "schedule_name": f"D-{days_before}",
        "days_before": days_before,
        "notification_time": notification_time,
        "is_active": True,
        "created_at": datetime.now(timezone.utc),
        **extra,
    })
    return schedule_id


async def insert_channel(db, webhook_url: str, is_active: bool = True) -> str:
    channel_id = str(uuid4())
    await db["teams_channels"].insert_one({
        "_id": channel_id,
        "channel_name": webhook_url.rsplit("/", 1)[-1],
        "webhook_url": webhook_url,
        "is_active": is_active,
        "created_at": datetime.now(timezone.utc),
    })
    return channel_id


async def insert_reminder(
    db,
    notification_date: str,
    notification_time: str,
    notification_type: str = "manual",
    **extra,
) -> str:
    reminder_id = str(uuid4())
    await db["notifications"].insert_one({
        "_id": reminder_id,
        "tax_id": None,
        "notification_type": notification_type,
        "schedule_id": None,
        "notification_date": notification_date,
        "notification_time": notification_time,
        "message": "수동 알림 테스트 메시지",
        "teams_channel_id": None,
        "is_sent": False,
        "sent_at": None,
        "created_at": datetime.now(timezone.utc),
        **extra,
    })
    return reminder_id
