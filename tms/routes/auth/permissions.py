"""
Single authorization boundary.
The bearer token is resolved into an explicit `Session` once per request,
roles map to capability sets here and only here, and routes ask for a
capability through `require_capability`.
"""
from datetime import datetime, timezone
from typing import Dict, FrozenSet, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from tms.config import JWT_ALGORITHM, JWT_SECRET
from tms.db import get_collection
from tms.models.users import Session

VIEW = "view"
CREATE_REMINDER = "create_reminder"
MANAGE_STATIONS = "manage_stations"
MANAGE_TAXES = "manage_taxes"
ADVANCE_WORKFLOW = "advance_workflow"
MANAGE_NOTIFICATIONS = "manage_notifications"
SEND_NOTIFICATIONS = "send_notifications"
MANAGE_SETTINGS = "manage_settings"
VIEW_AUDIT_LOGS = "view_audit_logs"
USE_AI = "use_ai"

ALL_CAPABILITIES: FrozenSet[str] = frozenset({
    VIEW,
    CREATE_REMINDER,
    MANAGE_STATIONS,
    MANAGE_TAXES,
    ADVANCE_WORKFLOW,
    MANAGE_NOTIFICATIONS,
    SEND_NOTIFICATIONS,
    MANAGE_SETTINGS,
    VIEW_AUDIT_LOGS,
    USE_AI,
})

ROLE_CAPABILITIES: Dict[str, FrozenSet[str]] = {
    "admin": ALL_CAPABILITIES,
    "viewer": frozenset({VIEW, CREATE_REMINDER}),
}

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


def capabilities_for(role: str) -> FrozenSet[str]:
    return ROLE_CAPABILITIES.get(role, frozenset())


def decode_token(token: str, expected_type: str) -> Optional[dict]:
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError:
        return None
    if payload.get("type") != expected_type or not payload.get("sub") or not payload.get("jti"):
        return None
    return payload


async def is_revoked(jti: str) -> bool:
    return await get_collection("revoked_tokens").find_one({"jti": jti}) is not None


async def get_current_session(token: str = Depends(oauth2_scheme)) -> Session:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = decode_token(token, "access")
    if payload is None or await is_revoked(payload["jti"]):
        raise credentials_exception

    user_doc = await get_collection("users").find_one({"_id": payload["sub"]})
    if not user_doc:
        raise credentials_exception

    role = user_doc.get("role", "viewer")
    return Session(
        user_id=user_doc["_id"],
        email=user_doc["email"],
        name=user_doc.get("name"),
        role=role,
        capabilities=capabilities_for(role),
        token_id=payload["jti"],
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    )


def require_capability(capability: str):
    """Dependency factory: resolves the session and rejects it without `capability`."""
    async def _guard(session: Session = Depends(get_current_session)) -> Session:
        if not session.can(capability):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="권한이 없습니다.",
            )
        return session

    return _guard
