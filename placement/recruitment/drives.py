from __future__ import annotations

import math
import re
from typing import Any

from pymongo import ASCENDING, DESCENDING

from placement.utils.datetime import utc_now
from placement.utils.errors import ApiError, ErrorCode
from placement.utils.validators import parse_bool, parse_datetime, require_text


def _string_list(value: Any, *, field: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ApiError(ErrorCode.BAD_REQUEST, f"{field} must be a list", details={"field": field})
    return [str(v).strip() for v in value if str(v or "").strip()]


def _process(value: Any) -> list[str]:
    if not isinstance(value, list) or not value:
        raise ApiError(ErrorCode.BAD_REQUEST, "process must be a non-empty list of stages", details={"field": "process"})
    stages = [str(v or "").strip() for v in value]
    if any(not s for s in stages):
        raise ApiError(ErrorCode.BAD_REQUEST, "process stages must not be blank", details={"field": "process"})
    return stages


def _schedule(value: Any) -> list[dict[str, Any]]:
    # Items are kept as given; calendar sync skips the unusable ones.
    if value is None:
        return []
    if not isinstance(value, list) or any(not isinstance(v, dict) for v in value):
        raise ApiError(
            ErrorCode.BAD_REQUEST, "processSchedule must be a list of objects", details={"field": "processSchedule"}
        )
    keys = ("stage", "date", "time", "venue", "description")
    return [{k: item.get(k) for k in keys if item.get(k) is not None} for item in value]


def create_drive(db, body: dict[str, Any]) -> dict[str, Any]:
    now = utc_now()
    drive: dict[str, Any] = {
        "company": require_text(body, "company"),
        "role": require_text(body, "role"),
        "description": str(body.get("description") or "").strip(),
        "location": str(body.get("location") or "").strip(),
        "package": str(body.get("package") or "").strip(),
        "deadline": parse_datetime(body.get("deadline"), field="deadline"),
        "requirements": _string_list(body.get("requirements"), field="requirements"),
        "process": _process(body.get("process")),
        "processSchedule": _schedule(body.get("processSchedule")),
        "applicants": 0,
        "featured": parse_bool(body.get("featured"), False),
        "isActive": True,
        "createdAt": now,
        "updatedAt": now,
    }
    drive["_id"] = db.drives.insert_one(drive).inserted_id
    return drive


def list_drives(db, *, search: str | None, page: int, limit: int) -> dict[str, Any]:
    query: dict[str, Any] = {"isActive": True}
    if search:
        pattern = re.escape(search)
        query["$or"] = [
            {"company": {"$regex": pattern, "$options": "i"}},
            {"role": {"$regex": pattern, "$options": "i"}},
            {"requirements": {"$regex": pattern, "$options": "i"}},
        ]

    total = db.drives.count_documents(query)
    drives = list(
        db.drives.find(query)
        .sort([("featured", DESCENDING), ("deadline", ASCENDING)])
        .skip((page - 1) * limit)
        .limit(limit)
    )
    return {
        "drives": drives,
        "total": total,
        "currentPage": page,
        "totalPages": math.ceil(total / limit) if total else 0,
    }
