from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from placement.db import ping_db
from placement.recruitment.models import SyncStatus
from placement.utils.datetime import iso_utc_now

core_bp = Blueprint("core", __name__)


@core_bp.get("/health")
def health():
    db = current_app.extensions.get("mongo_db")
    db_ok = db is not None and ping_db(db)

    body = {
        "status": "ok" if db_ok else "degraded",
        "db": "ok" if db_ok else "error",
        "time": iso_utc_now(),
        "version": current_app.config["CFG"].APP_VERSION,
    }
    if db_ok:
        body["calendarSync"] = {
            status.value: db.calendar_sync_jobs.count_documents({"status": status.value})
            for status in (SyncStatus.PENDING, SyncStatus.FAILED)
        }
    return jsonify(body), 200 if db_ok else 503


@core_bp.get("/version")
def version():
    cfg = current_app.config["CFG"]
    return jsonify(
        {"version": cfg.APP_VERSION, "env": cfg.ENV, "calendarSyncMode": cfg.CALENDAR_SYNC_MODE, "time": iso_utc_now()}
    )
