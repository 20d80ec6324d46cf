from __future__ import annotations

from datetime import datetime
from typing import Any

from bson import ObjectId

from placement.utils.datetime import ensure_utc


def to_json(value: Any) -> Any:
    """Convert a Mongo document (or any nesting of it) into JSON-safe values."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return ensure_utc(value).isoformat().replace("+00:00", "Z")
    if isinstance(value, dict):
        return {("id" if k == "_id" else k): to_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json(v) for v in value]
    return value
