"""Webhook channels and email recipients used as dispatch targets."""
import logging
from typing import List
from uuid import uuid4

from tms.config import _now_utc
from tms.db import get_collection
from tms.models.channels import (
    ChannelCreate,
    ChannelUpdate,
    EmailRecipient,
    OutboundChannel,
    RecipientCreate,
    RecipientUpdate,
)
from tms.services.errors import ConflictError, NotFoundError

logger = logging.getLogger(__name__)


class ChannelService:
    @property
    def channels(self):
        return get_collection("teams_channels")

    @property
    def recipients(self):
        return get_collection("email_recipients")

    # -----------------------
    # Webhook channels
    # -----------------------
    async def list_channels(self, active_only: bool = False) -> List[OutboundChannel]:
        query = {"is_active": True} if active_only else {}
        docs = await self.channels.find(query).sort("channel_name", 1).to_list(length=None)
        return [OutboundChannel.model_validate(d) for d in docs]

    async def list_active_channels(self) -> List[OutboundChannel]:
        return await self.list_channels(active_only=True)

    async def get_channels_by_ids(self, channel_ids: List[str]) -> List[OutboundChannel]:
        docs = await self.channels.find(
            {"_id": {"$in": channel_ids}, "is_active": True}
        ).to_list(length=None)
        return [OutboundChannel.model_validate(d) for d in docs]

    async def create_channel(self, data: ChannelCreate, user_id: str) -> OutboundChannel:
        doc = {
            "_id": str(uuid4()),
            "channel_name": data.channel_name,
            "webhook_url": str(data.webhook_url),
            "is_active": data.is_active,
            "created_by": user_id,
            "created_at": _now_utc(),
        }
        await self.channels.insert_one(doc)
        return OutboundChannel.model_validate(doc)

    async def update_channel(self, channel_id: str, data: ChannelUpdate) -> OutboundChannel:
        update_data = data.model_dump(exclude_unset=True, exclude_none=True)
        if "webhook_url" in update_data:
            update_data["webhook_url"] = str(update_data["webhook_url"])
        if update_data:
            result = await self.channels.update_one({"_id": channel_id}, {"$set": update_data})
            if result.matched_count == 0:
                raise NotFoundError(f"Channel {channel_id} not found")
        doc = await self.channels.find_one({"_id": channel_id})
        if not doc:
            raise NotFoundError(f"Channel {channel_id} not found")
        return OutboundChannel.model_validate(doc)

    async def delete_channel(self, channel_id: str) -> None:
        result = await self.channels.delete_one({"_id": channel_id})
        if result.deleted_count == 0:
            raise NotFoundError(f"Channel {channel_id} not found")

    # -----------------------
    # Email recipients
    # -----------------------
    async def list_recipients(self, active_only: bool = False) -> List[EmailRecipient]:
        query = {"is_active": True} if active_only else {}
        docs = await self.recipients.find(query).sort("email", 1).to_list(length=None)
        return [EmailRecipient.model_validate(d) for d in docs]

    async def list_active_recipients(self) -> List[EmailRecipient]:
        return await self.list_recipients(active_only=True)

    async def create_recipient(self, data: RecipientCreate) -> EmailRecipient:
        email = data.email.lower()
        if await self.recipients.find_one({"email": email, "is_active": True}):
            raise ConflictError(f"{email} is already a recipient")
        doc = {
            "_id": str(uuid4()),
            "email": email,
            "name": data.name or None,
            "is_active": True,
            "created_at": _now_utc(),
        }
        await self.recipients.insert_one(doc)
        return EmailRecipient.model_validate(doc)

    async def update_recipient(self, recipient_id: str, data: RecipientUpdate) -> EmailRecipient:
        update_data = data.model_dump(exclude_unset=True, exclude_none=True)
        if "email" in update_data:
            update_data["email"] = update_data["email"].lower()
            duplicate = await self.recipients.find_one(
                {"email": update_data["email"], "is_active": True, "_id": {"$ne": recipient_id}}
            )
            if duplicate:
                raise ConflictError(f"{update_data['email']} is already a recipient")
        if update_data:
            result = await self.recipients.update_one({"_id": recipient_id}, {"$set": update_data})
            if result.matched_count == 0:
                raise NotFoundError(f"Recipient {recipient_id} not found")
        doc = await self.recipients.find_one({"_id": recipient_id})
        if not doc:
            raise NotFoundError(f"Recipient {recipient_id} not found")
        return EmailRecipient.model_validate(doc)

    async def delete_recipient(self, recipient_id: str) -> None:
        result = await self.recipients.delete_one({"_id": recipient_id})
        if result.deleted_count == 0:
            raise NotFoundError(f"Recipient {recipient_id} not found")


channel_service = ChannelService()
