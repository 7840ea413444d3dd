# tms/db.py
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase

from tms.config import settings

_client: Optional[AsyncIOMotorClient] = None
_db: Optional[AsyncIOMotorDatabase] = None


def get_client() -> AsyncIOMotorClient:
    """
    Returns a singleton AsyncIOMotorClient. Creates it if not already created.
    """
    global _client
    if _client is None:
        if not settings.mongo_uri:
            raise RuntimeError("MONGO_URI not set in environment")
        _client = AsyncIOMotorClient(settings.mongo_uri, tz_aware=True)
    return _client


def get_database() -> AsyncIOMotorDatabase:
    """
    Returns the configured database object.
    """
    global _db
    if _db is None:
        if not settings.mongo_db_name:
            raise RuntimeError("MONGO_DB_NAME not set in environment")
        _db = get_client()[settings.mongo_db_name]
    return _db


def get_collection(name: str) -> AsyncIOMotorCollection:
    """
    Convenience to get a collection from the configured DB.
    Usage: taxes = get_collection('taxes'); await taxes.find_one({...})
    """
    return get_database()[name]


def close_client() -> None:
    """
    Close the motor client - call this on application shutdown.
    """
    global _client, _db
    if _client is not None:
        _client.close()
        _client = None
        _db = None


async def create_indexes() -> None:
    users = get_collection("users")
    await users.create_index("email", unique=True)

    revoked = get_collection("revoked_tokens")
    await revoked.create_index("jti", unique=True)
    # Mongo TTL monitor purges revoked tokens once they would have expired anyway
    await revoked.create_index("expires_at", expireAfterSeconds=0)

    taxes = get_collection("taxes")
    await taxes.create_index("station_id")
    await taxes.create_index([("due_date", 1), ("status", 1)])

    notifications = get_collection("notifications")
    await notifications.create_index(
        [("notification_type", 1), ("is_sent", 1), ("notification_date", 1)]
    )
    await notifications.create_index(
        [
            ("notification_type", 1),
            ("tax_id", 1),
            ("schedule_id", 1),
            ("notification_date", 1),
            ("notification_time", 1),
        ]
    )

    schedule_dispatches = get_collection("schedule_dispatches")
    await schedule_dispatches.create_index(
        [("schedule_id", 1), ("target_date", 1)], unique=True
    )

    email_recipients = get_collection("email_recipients")
    await email_recipients.create_index("email")

    audit_logs = get_collection("audit_logs")
    await audit_logs.create_index("created_at")
