from __future__ import annotations

from typing import Any

from flask import Blueprint, current_app, jsonify, request

from placement.recruitment.models import EventStatus
from placement.utils.auth import get_current_user, login_required
from placement.utils.datetime import utc_now
from placement.utils.serialize import to_json
from placement.utils.validators import parse_bool, parse_positive_int

events_bp = Blueprint("events", __name__)


@events_bp.get("/mine")
@login_required
def mine():
    user = get_current_user()
    query: dict[str, Any] = {"isActive": True, "attendees.userId": user["id"]}
    if request.args.get("type"):
        query["type"] = str(request.args.get("type"))
    if parse_bool(request.args.get("upcoming"), False):
        query["date"] = {"$gte": utc_now()}
        query["status"] = {"$in": [EventStatus.SCHEDULED.value, EventStatus.ONGOING.value]}

    limit = parse_positive_int(request.args.get("limit"), field="limit", default=50, maximum=200)
    db = current_app.extensions["mongo_db"]
    events = list(db.events.find(query).sort("date", 1).limit(limit))
    return jsonify({"success": True, "data": to_json(events)})
