from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from uuid import uuid4

from jose import jwt
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "TMS Backend"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"
    allowed_origins: str = "*"

    mongo_uri: str
    mongo_db_name: str

    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60
    refresh_token_expire_days: int = 7

    # Reminder dates and times are evaluated in this civil calendar
    business_timezone: str = "Asia/Seoul"
    # Shared secret for cron callers of the batch endpoints (disabled when unset)
    cron_secret: Optional[str] = None
    webhook_timeout_seconds: float = 10.0

    # SendGrid
    sendgrid_api_key: Optional[str] = None
    sendgrid_from_email: Optional[str] = None
    sendgrid_from_name: str = "TMS 세금 관리 시스템"

    # Gemini vision
    gemini_api_key: Optional[str] = None
    gemini_api_base_url: str = "https://generativelanguage.googleapis.com/v1beta/models"
    gemini_vision_model: str = "gemini-2.5-flash"

    # OpenAI insights
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
# -----------------------
# JWT configuration
# -----------------------
JWT_SECRET = settings.jwt_secret_key
JWT_ALGORITHM = settings.jwt_algorithm
ACCESS_TOKEN_EXPIRE_MINUTES = settings.access_token_expire_minutes  # minutes

if not JWT_SECRET:
    raise RuntimeError("JWT_SECRET_KEY must be set in environment")


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _encode(data: Dict[str, Any], token_type: str, expires_delta: timedelta) -> str:
    to_encode = data.copy()
    now = _now_utc()
    to_encode.update({
        "iat": now,
        "exp": now + expires_delta,
        "type": token_type,
        "jti": str(uuid4()),
    })
    return jwt.encode(to_encode, JWT_SECRET, algorithm=JWT_ALGORITHM)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    return _encode(data, "access", expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))


def create_refresh_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    return _encode(data, "refresh", expires_delta or timedelta(days=settings.refresh_token_expire_days))
