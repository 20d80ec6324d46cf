from __future__ import annotations

import re
from datetime import datetime
from typing import Any

from bson import ObjectId
from bson.errors import InvalidId
from dateutil import parser as dt_parser
from flask import request

from placement.utils.datetime import ensure_utc
from placement.utils.errors import ApiError, ErrorCode

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def require_json() -> dict[str, Any]:
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise ApiError(ErrorCode.BAD_REQUEST, "JSON body must be an object")
    return body


def optional_json() -> dict[str, Any]:
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


def validate_email(value: Any) -> str:
    email = str(value or "").strip().lower()
    if not email or not _EMAIL_RE.match(email):
        raise ApiError(ErrorCode.BAD_REQUEST, "Invalid email")
    return email


def validate_password(value: Any, *, allow_short: bool) -> str:
    password = str(value or "")
    if not password:
        raise ApiError(ErrorCode.BAD_REQUEST, "Password required")
    if not allow_short and len(password) < 8:
        raise ApiError(ErrorCode.BAD_REQUEST, "Password must be at least 8 characters")
    return password


def require_text(body: dict[str, Any], field: str) -> str:
    value = str(body.get(field) or "").strip()
    if not value:
        raise ApiError(ErrorCode.BAD_REQUEST, f"{field} is required", details={"field": field})
    return value


def parse_object_id(value: Any, *, what: str = "Resource") -> ObjectId:
    """Path ids that are not valid ObjectIds can never match a document."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value or ""))
    except (InvalidId, TypeError) as e:
        raise ApiError(ErrorCode.NOT_FOUND, f"{what} not found") from e


def parse_choice(value: Any, choices: set[str], *, field: str, default: str | None = None) -> str:
    raw = str(value or "").strip().lower()
    if not raw and default is not None:
        return default
    if raw not in choices:
        raise ApiError(
            ErrorCode.BAD_REQUEST,
            f"{field} must be one of {'|'.join(sorted(choices))}",
            details={"field": field},
        )
    return raw


def parse_positive_int(value: Any, *, field: str, default: int, maximum: int | None = None) -> int:
    if value is None or str(value).strip() == "":
        return default
    try:
        n = int(str(value).strip())
    except ValueError as e:
        raise ApiError(ErrorCode.BAD_REQUEST, f"{field} must be an integer", details={"field": field}) from e
    if n < 1:
        raise ApiError(ErrorCode.BAD_REQUEST, f"{field} must be positive", details={"field": field})
    if maximum is not None:
        n = min(n, maximum)
    return n


def parse_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    raw = str(value).strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "y", "on"}


def parse_datetime(value: Any, *, field: str, required: bool = False) -> datetime | None:
    if value in (None, ""):
        if required:
            raise ApiError(ErrorCode.BAD_REQUEST, f"{field} is required", details={"field": field})
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    try:
        return ensure_utc(dt_parser.parse(str(value)))
    except (ValueError, OverflowError) as e:
        raise ApiError(ErrorCode.BAD_REQUEST, f"{field} must be a date", details={"field": field}) from e
