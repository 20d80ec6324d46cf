from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from placement.recruitment.drives import list_drives
from placement.recruitment.intake import apply_to_drive
from placement.utils.auth import ROLE_STUDENT, get_current_user, login_required, require_roles
from placement.utils.errors import ApiError, ErrorCode
from placement.utils.serialize import to_json
from placement.utils.validators import parse_object_id, parse_positive_int

drives_bp = Blueprint("drives", __name__)


@drives_bp.get("")
def index():
    cfg = current_app.config["CFG"]
    page = parse_positive_int(request.args.get("page"), field="page", default=1)
    limit = parse_positive_int(request.args.get("limit"), field="limit", default=10, maximum=cfg.DRIVES_PAGE_SIZE_MAX)
    search = str(request.args.get("search") or "").strip() or None

    db = current_app.extensions["mongo_db"]
    data = list_drives(db, search=search, page=page, limit=limit)
    return jsonify({"success": True, "data": to_json(data)})


@drives_bp.get("/my-applications")
@login_required
def my_applications():
    user = get_current_user()
    db = current_app.extensions["mongo_db"]
    applications = list(db.applications.find({"userId": user["id"]}).sort("appliedDate", -1))

    drive_ids = list({a["driveId"] for a in applications})
    drives = {
        d["_id"]: d
        for d in db.drives.find({"_id": {"$in": drive_ids}}, {"company": 1, "role": 1, "location": 1, "process": 1})
    }
    for a in applications:
        a["drive"] = drives.get(a["driveId"])
    return jsonify({"success": True, "data": to_json(applications)})


@drives_bp.get("/<drive_id>")
def show(drive_id: str):
    db = current_app.extensions["mongo_db"]
    drive = db.drives.find_one({"_id": parse_object_id(drive_id, what="Company drive")})
    if not drive:
        raise ApiError(ErrorCode.NOT_FOUND, "Company drive not found")
    return jsonify({"success": True, "data": to_json(drive)})


@drives_bp.post("/<drive_id>/apply")
@require_roles([ROLE_STUDENT])
def apply(drive_id: str):
    user = get_current_user()
    db = current_app.extensions["mongo_db"]
    application = apply_to_drive(
        db, user["id"], parse_object_id(drive_id, what="Company drive"), cfg=current_app.config["CFG"]
    )
    return jsonify({"success": True, "data": to_json(application)}), 201
