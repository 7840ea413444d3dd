"""Outbound delivery targets: chat webhooks and email recipients."""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, HttpUrl


class OutboundChannel(BaseModel):
    """Named webhook endpoint (`teams_channels`)."""
    id: str = Field(..., alias="_id")
    channel_name: str
    webhook_url: str
    is_active: bool = True
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class ChannelCreate(BaseModel):
    channel_name: str = Field(..., min_length=1)
    webhook_url: HttpUrl
    is_active: bool = True


class ChannelUpdate(BaseModel):
    channel_name: Optional[str] = Field(None, min_length=1)
    webhook_url: Optional[HttpUrl] = None
    is_active: Optional[bool] = None


class EmailRecipient(BaseModel):
    id: str = Field(..., alias="_id")
    email: EmailStr
    name: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class RecipientCreate(BaseModel):
    email: EmailStr
    name: Optional[str] = None


class RecipientUpdate(BaseModel):
    email: Optional[EmailStr] = None
    name: Optional[str] = None
    is_active: Optional[bool] = None


class TeamsTestRequest(BaseModel):
    webhookUrls: List[str] = Field(default_factory=list)
    channelIds: List[str] = Field(default_factory=list)
    text: Optional[str] = None


class EmailTestRequest(BaseModel):
    to: List[EmailStr] = Field(..., min_length=1)
    subject: str = Field(..., min_length=1)
    content: Optional[str] = None
