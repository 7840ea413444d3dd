# tms/models/users.py
from datetime import datetime
from typing import FrozenSet, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

Role = Literal["admin", "viewer"]


class UserInDB(BaseModel):
    id: str = Field(alias="_id")
    email: EmailStr
    name: Optional[str] = None
    password_hash: str
    role: Role = "viewer"
    created_at: datetime

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


# Input schema for signup (request body)
class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    name: Optional[str] = None


# Input schema for login (request body)
class UserLogin(BaseModel):
    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class RoleUpdate(BaseModel):
    role: Role


# Output schema (for responses)
class UserPublic(BaseModel):
    id: str
    email: EmailStr
    name: Optional[str] = None
    role: Role
    created_at: Optional[datetime] = None


class Session(BaseModel):
    """Authenticated caller, resolved once per request from the bearer token."""
    user_id: str
    email: str
    name: Optional[str] = None
    role: Role
    capabilities: FrozenSet[str]
    token_id: str
    expires_at: datetime

    model_config = ConfigDict(frozen=True)

    @property
    def actor_name(self) -> str:
        return self.name or self.email

    def can(self, capability: str) -> bool:
        return capability in self.capabilities
