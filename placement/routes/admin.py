from __future__ import annotations

from io import BytesIO

from flask import Blueprint, current_app, jsonify, request, send_file

from placement.counselling.booking import create_session, update_application_status
from placement.recruitment import outbox
from placement.recruitment.drives import create_drive
from placement.recruitment.models import SyncStatus
from placement.recruitment.stages import advance_stage, reject_application, set_stage
from placement.reports.excel import build_applications_workbook
from placement.reports.queries import drive_applications, drive_funnel
from placement.utils.auth import ROLE_ADMIN, get_current_user, require_roles
from placement.utils.errors import ApiError, ErrorCode
from placement.utils.serialize import to_json
from placement.utils.validators import optional_json, parse_choice, parse_object_id, parse_positive_int, require_json

admin_bp = Blueprint("admin", __name__)


@admin_bp.before_request
@require_roles([ROLE_ADMIN])
def _admin_only():
    return None


def _db():
    return current_app.extensions["mongo_db"]


def _drive_or_404(drive_id: str) -> dict:
    drive = _db().drives.find_one({"_id": parse_object_id(drive_id, what="Drive")})
    if not drive:
        raise ApiError(ErrorCode.NOT_FOUND, "Drive not found")
    return drive


@admin_bp.post("/drives")
def drives_create():
    drive = create_drive(_db(), require_json())
    return jsonify({"success": True, "data": to_json(drive)}), 201


@admin_bp.get("/drives/<drive_id>/applications")
def drive_applications_list(drive_id: str):
    drive = _drive_or_404(drive_id)
    return jsonify({"success": True, "data": to_json(drive_applications(_db(), drive["_id"]))})


@admin_bp.get("/drives/<drive_id>/funnel")
def drive_funnel_report(drive_id: str):
    drive = _drive_or_404(drive_id)
    data = drive_funnel(_db(), drive["_id"])
    return jsonify({"success": True, "data": {"driveId": str(drive["_id"]), "process": drive.get("process", []), **data}})


@admin_bp.get("/drives/<drive_id>/applications/export.xlsx")
def drive_applications_export(drive_id: str):
    drive = _drive_or_404(drive_id)
    db = _db()
    xlsx_bytes = build_applications_workbook(
        drive=drive,
        applications=drive_applications(db, drive["_id"]),
        funnel=drive_funnel(db, drive["_id"]),
        timezone_display=current_app.config["CFG"].TIMEZONE_DISPLAY,
    )

    filename = f"applications_{drive['_id']}.xlsx"
    return send_file(
        BytesIO(xlsx_bytes),
        as_attachment=True,
        download_name=filename,
        mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )


@admin_bp.put("/applications/<application_id>/next-stage")
def application_next_stage(application_id: str):
    application = advance_stage(
        _db(),
        parse_object_id(application_id, what="Application"),
        actor=get_current_user(),
        cfg=current_app.config["CFG"],
    )
    return jsonify({"success": True, "data": to_json(application)})


@admin_bp.put("/applications/<application_id>/reject")
def application_reject(application_id: str):
    application = reject_application(
        _db(),
        parse_object_id(application_id, what="Application"),
        actor=get_current_user(),
        cfg=current_app.config["CFG"],
    )
    return jsonify({"success": True, "data": to_json(application)})


@admin_bp.put("/applications/<application_id>/stage")
def application_set_stage(application_id: str):
    body = require_json()
    application = set_stage(
        _db(),
        parse_object_id(application_id, what="Application"),
        body.get("processStageIndex"),
        actor=get_current_user(),
        cfg=current_app.config["CFG"],
    )
    return jsonify({"success": True, "data": to_json(application)})


@admin_bp.get("/calendar-sync/jobs")
def calendar_sync_jobs():
    query = {}
    if request.args.get("status"):
        query["status"] = parse_choice(request.args.get("status"), {s.value for s in SyncStatus}, field="status")
    limit = parse_positive_int(request.args.get("limit"), field="limit", default=50, maximum=500)
    jobs = list(_db().calendar_sync_jobs.find(query).sort("createdAt", -1).limit(limit))
    return jsonify({"success": True, "data": to_json(jobs)})


@admin_bp.post("/calendar-sync/run")
def calendar_sync_run():
    body = optional_json()
    limit = parse_positive_int(body.get("limit"), field="limit", default=100, maximum=1000)
    summary = outbox.run_pending(_db(), cfg=current_app.config["CFG"], limit=limit)
    return jsonify({"success": True, "data": summary})


@admin_bp.post("/counselling/sessions")
def counselling_sessions_create():
    session = create_session(_db(), require_json())
    return jsonify({"success": True, "data": to_json(session)}), 201


@admin_bp.put("/counselling/applications/<application_id>")
def counselling_application_update(application_id: str):
    application = update_application_status(
        _db(), parse_object_id(application_id, what="Application"), require_json()
    )
    return jsonify({"success": True, "data": to_json(application)})
