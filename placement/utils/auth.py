from __future__ import annotations

import functools
from datetime import timedelta
from typing import Any, Callable, TypeVar

import bcrypt
import jwt
from bson import ObjectId
from bson.errors import InvalidId
from flask import current_app, g, request

from placement.utils.datetime import utc_now
from placement.utils.errors import ApiError, ErrorCode


_T = TypeVar("_T", bound=Callable[..., Any])

ROLE_STUDENT = "STUDENT"
ROLE_ADMIN = "ADMIN"
ROLES = {ROLE_STUDENT, ROLE_ADMIN}


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=current_app.config["CFG"].BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(app, user: dict[str, Any]) -> str:
    cfg = app.config["CFG"]
    now = utc_now()
    payload = {
        "sub": str(user["_id"]),
        "email": str(user.get("email") or ""),
        "role": str(user.get("role") or ""),
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=cfg.JWT_EXP_MINUTES)).timestamp()),
    }
    return jwt.encode(payload, cfg.JWT_SECRET, algorithm="HS256")


def _decode_token(token: str) -> dict[str, Any]:
    cfg = current_app.config["CFG"]
    try:
        return jwt.decode(token, cfg.JWT_SECRET, algorithms=["HS256"])
    except jwt.ExpiredSignatureError as e:
        raise ApiError(ErrorCode.AUTH_INVALID, "Token expired") from e
    except jwt.InvalidTokenError as e:
        raise ApiError(ErrorCode.AUTH_INVALID, "Invalid token") from e


def _bearer_token() -> str:
    authz = str(request.headers.get("Authorization") or "").strip()
    if authz.lower().startswith("bearer "):
        return authz.split(" ", 1)[1].strip()
    return ""


def get_current_user() -> dict[str, Any]:
    cached = getattr(g, "current_user", None)
    if cached:
        return cached

    token = _bearer_token()
    if not token:
        raise ApiError(ErrorCode.AUTH_INVALID, "Missing bearer token")

    payload = _decode_token(token)
    sub = str(payload.get("sub") or "").strip()
    if not sub:
        raise ApiError(ErrorCode.AUTH_INVALID, "Invalid token payload")

    try:
        user_id = ObjectId(sub)
    except InvalidId as e:
        raise ApiError(ErrorCode.AUTH_INVALID, "Invalid token subject") from e

    db = current_app.extensions.get("mongo_db")
    if db is None:
        raise ApiError(ErrorCode.INTERNAL, "Database not initialized")

    user = db.users.find_one({"_id": user_id})
    if not user:
        raise ApiError(ErrorCode.AUTH_INVALID, "User not found")
    if str(user.get("status") or "ACTIVE").upper() != "ACTIVE":
        raise ApiError(ErrorCode.FORBIDDEN, "User is disabled")

    current = {
        "id": user["_id"],
        "email": str(user.get("email") or "").strip().lower(),
        "name": str(user.get("name") or ""),
        "role": str(user.get("role") or "").upper().strip(),
    }
    g.current_user = current
    return current


def require_roles(roles: list[str]) -> Callable[[_T], _T]:
    allowed = {str(r or "").upper().strip() for r in (roles or []) if str(r or "").strip()}

    def _decorator(fn: _T) -> _T:
        @functools.wraps(fn)
        def _wrapped(*args, **kwargs):
            user = get_current_user()
            if allowed and user["role"] not in allowed:
                raise ApiError(ErrorCode.FORBIDDEN, "Insufficient role", details={"required": sorted(allowed)})
            return fn(*args, **kwargs)

        return _wrapped  # type: ignore[return-value]

    return _decorator


def login_required(fn: _T) -> _T:
    return require_roles([])(fn)
