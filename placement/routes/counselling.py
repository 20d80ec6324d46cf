from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from placement.counselling.booking import (
    apply_for_session,
    cancel_application,
    list_upcoming_sessions,
    submit_feedback,
)
from placement.utils.auth import get_current_user, login_required
from placement.utils.serialize import to_json
from placement.utils.validators import optional_json, parse_bool, parse_object_id, parse_positive_int, require_json

counselling_bp = Blueprint("counselling", __name__)


@counselling_bp.before_request
@login_required
def _logged_in():
    return None


@counselling_bp.get("/sessions")
def sessions():
    page = parse_positive_int(request.args.get("page"), field="page", default=1)
    limit = parse_positive_int(request.args.get("limit"), field="limit", default=10, maximum=100)
    upcoming = parse_bool(request.args.get("upcoming"), True)
    data = list_upcoming_sessions(current_app.extensions["mongo_db"], upcoming=upcoming, page=page, limit=limit)
    return jsonify({"success": True, "data": to_json(data)})


@counselling_bp.post("/sessions/<session_id>/apply")
def apply(session_id: str):
    user = get_current_user()
    application = apply_for_session(
        current_app.extensions["mongo_db"],
        user["id"],
        parse_object_id(session_id, what="Counselling session"),
        require_json(),
    )
    return jsonify({"success": True, "data": to_json(application)}), 201


@counselling_bp.get("/my-applications")
def my_applications():
    user = get_current_user()
    db = current_app.extensions["mongo_db"]
    applications = list(db.counselling_applications.find({"userId": user["id"]}).sort("appliedDate", -1))

    session_ids = list({a["sessionId"] for a in applications})
    fields = {"counsellorName": 1, "topic": 1, "date": 1, "time": 1, "location": 1, "status": 1}
    sessions_by_id = {s["_id"]: s for s in db.counselling_sessions.find({"_id": {"$in": session_ids}}, fields)}
    for a in applications:
        a["session"] = sessions_by_id.get(a["sessionId"])
    return jsonify({"success": True, "data": to_json(applications)})


@counselling_bp.put("/applications/<application_id>/cancel")
def cancel(application_id: str):
    user = get_current_user()
    application = cancel_application(
        current_app.extensions["mongo_db"], user["id"], parse_object_id(application_id, what="Application")
    )
    return jsonify({"success": True, "data": to_json(application)})


@counselling_bp.put("/applications/<application_id>/feedback")
def feedback(application_id: str):
    user = get_current_user()
    body = optional_json()
    application = submit_feedback(
        current_app.extensions["mongo_db"],
        user["id"],
        parse_object_id(application_id, what="Completed application"),
        body,
    )
    return jsonify({"success": True, "data": to_json(application)})
