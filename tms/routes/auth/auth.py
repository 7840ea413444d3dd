import hashlib
import logging
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from passlib.context import CryptContext
from pymongo.errors import DuplicateKeyError

from tms.config import _now_utc, create_access_token, create_refresh_token
from tms.db import get_collection
from tms.models.users import RefreshRequest, RoleUpdate, Session, UserCreate, UserLogin, UserPublic
from tms.routes.auth.permissions import (
    MANAGE_SETTINGS,
    decode_token,
    get_current_session,
    is_revoked,
    require_capability,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

pwd_ctx = CryptContext(schemes=["bcrypt"], deprecated="auto")


def _prehash(password: str) -> bytes:
    """
    Pre-hash arbitrary-length password with SHA-256 and return raw bytes.
    This ensures bcrypt always receives a fixed-length input (32 bytes).
    """
    return hashlib.sha256(password.encode("utf-8")).digest()


def hash_password(password: str) -> str:
    return pwd_ctx.hash(_prehash(password))


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return pwd_ctx.verify(_prehash(plain), hashed)
    except ValueError:
        return False


def _public(user_doc: dict) -> dict:
    return jsonable_encoder(
        UserPublic(
            id=user_doc["_id"],
            email=user_doc["email"],
            name=user_doc.get("name"),
            role=user_doc.get("role", "viewer"),
            created_at=user_doc.get("created_at"),
        )
    )


def _issue_tokens(user_doc: dict) -> dict:
    token_data = {"sub": user_doc["_id"], "email": user_doc["email"]}
    return {
        "access_token": create_access_token(token_data),
        "refresh_token": create_refresh_token(token_data),
    }


# -----------------------
# Routes
# -----------------------
@router.post("/register")
async def register(user: UserCreate):
    users = get_collection("users")
    try:
        if await users.find_one({"email": user.email}):
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={"success": False, "error": "이미 등록된 이메일입니다."},
            )

        # The very first account administers the system
        role = "admin" if await users.count_documents({}) == 0 else "viewer"
        to_insert = {
            "_id": str(uuid4()),
            "email": user.email,
            "name": user.name,
            "password_hash": hash_password(user.password),
            "role": role,
            "created_at": _now_utc(),
        }
        await users.insert_one(to_insert)
    except DuplicateKeyError:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "error": "이미 등록된 이메일입니다."},
        )
    except Exception:
        logger.exception("Registration failed for %s", user.email)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": "회원가입 중 오류가 발생했습니다."},
        )

    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content={"success": True, "data": _public(to_insert)},
    )


@router.post("/login")
async def login(credentials: UserLogin):
    """Start a session: verify the password and issue an access/refresh pair."""
    user_doc = await get_collection("users").find_one({"email": credentials.email})
    if not user_doc or not verify_password(credentials.password, user_doc.get("password_hash", "")):
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"success": False, "error": "이메일 또는 비밀번호가 올바르지 않습니다."},
        )

    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={"success": True, "data": {"user": _public(user_doc), **_issue_tokens(user_doc)}},
    )


@router.post("/refresh")
async def refresh_token(req: RefreshRequest):
    payload = decode_token(req.refresh_token, "refresh")
    if payload is None or await is_revoked(payload["jti"]):
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"success": False, "error": "Invalid or expired refresh token"},
        )

    user_doc = await get_collection("users").find_one({"_id": payload["sub"]})
    if not user_doc:
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"success": False, "error": "User not found"},
        )

    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={"success": True, "data": _issue_tokens(user_doc)},
    )


@router.post("/logout")
async def logout(session: Session = Depends(get_current_session)):
    """End the session: the current access token is rejected from now on."""
    await get_collection("revoked_tokens").update_one(
        {"jti": session.token_id},
        {"$setOnInsert": {"user_id": session.user_id, "expires_at": session.expires_at}},
        upsert=True,
    )
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={"success": True, "message": "로그아웃되었습니다."},
    )


@router.get("/me")
async def get_current_user_details(session: Session = Depends(get_current_session)):
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={
            "success": True,
            "data": {
                "id": session.user_id,
                "email": session.email,
                "name": session.name,
                "role": session.role,
                "capabilities": sorted(session.capabilities),
            },
        },
    )


@router.put("/users/{user_id}/role")
async def update_user_role(
    user_id: str,
    body: RoleUpdate,
    session: Session = Depends(require_capability(MANAGE_SETTINGS)),
):
    if user_id == session.user_id and body.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="자신의 관리자 권한은 해제할 수 없습니다.",
        )
    users = get_collection("users")
    result = await users.update_one({"_id": user_id}, {"$set": {"role": body.role}})
    if result.matched_count == 0:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="사용자를 찾을 수 없습니다.")
    user_doc = await users.find_one({"_id": user_id})
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={"success": True, "data": _public(user_doc)},
    )
