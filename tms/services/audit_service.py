import json
import logging
from datetime import datetime
from typing import Any, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from tms.config import _now_utc
from tms.db import get_collection
from tms.models.users import Session

logger = logging.getLogger(__name__)

AuditAction = Literal["create", "update", "delete"]


class AuditLog(BaseModel):
    id: str = Field(..., alias="_id")
    menu: str
    action: AuditAction
    actor_id: str
    actor_name: str
    description: str
    target_table: Optional[str] = None
    target_id: Optional[str] = None
    changes: Optional[str] = None  # JSON text of the submitted fields
    created_at: datetime

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class AuditService:
    @property
    def collection(self):
        return get_collection("audit_logs")

    async def log(
        self,
        session: Session,
        *,
        menu: str,
        action: AuditAction,
        description: str,
        target_table: Optional[str] = None,
        target_id: Optional[str] = None,
        changes: Any = None,
    ) -> Optional[str]:
        """Record a mutation. Failures are logged and never reach the caller."""
        log_id = str(uuid4())
        log_doc = {
            "_id": log_id,
            "menu": menu,
            "action": action,
            "actor_id": session.user_id,
            "actor_name": session.actor_name or "사용자",
            "description": description,
            "target_table": target_table,
            "target_id": target_id,
            "changes": json.dumps(changes, default=str, ensure_ascii=False) if changes else None,
            "created_at": _now_utc(),
        }
        try:
            await self.collection.insert_one(log_doc)
        except Exception:
            logger.exception("Audit log insert failed for %s/%s", menu, action)
            return None
        return log_id

    async def get_logs(self, limit: int = 100, skip: int = 0, menu: Optional[str] = None) -> dict:
        """Get audit logs with pagination, newest first"""
        query = {"menu": menu} if menu else {}
        total_count = await self.collection.count_documents(query)
        cursor = self.collection.find(query).sort("created_at", -1).skip(skip).limit(limit)
        docs = await cursor.to_list(length=None)
        return {
            "logs": [AuditLog.model_validate(d) for d in docs],
            "total_count": total_count,
        }


# Global instance
audit_service = AuditService()
