"""
Outbox for calendar synchronisation.

Each satellite calendar step is stored as a ``calendar_sync_jobs`` document
before it runs, and its outcome (``done`` with the handler result, or
``failed`` with the error text) is written back to that document. Nothing
raised while recording or running a job reaches the caller: the application
transition that triggered it has already been committed.
"""

from __future__ import annotations

import logging
from typing import Any

from pymongo.errors import PyMongoError

from placement.recruitment import calendar
from placement.recruitment.models import ApplicationStatus, SyncKind, SyncStatus
from placement.utils.datetime import utc_now
from placement.utils.logging import log_event

logger = logging.getLogger("placement.outbox")


def enqueue_and_run(db, kind: SyncKind, application_id, *, payload: dict[str, Any] | None = None, cfg) -> Any:
    now = utc_now()
    job: dict[str, Any] = {
        "kind": kind.value,
        "applicationId": application_id,
        "payload": payload or {},
        "status": SyncStatus.PENDING.value,
        "attempts": 0,
        "result": None,
        "error": None,
        "createdAt": now,
        "updatedAt": now,
    }
    try:
        job["_id"] = db.calendar_sync_jobs.insert_one(job).inserted_id
    except PyMongoError:
        logger.exception("calendar sync job could not be recorded kind=%s application=%s", kind.value, application_id)
        return None

    if cfg.CALENDAR_SYNC_MODE == "inline":
        run_job(db, job, cfg=cfg)
    return job["_id"]


def _execute(db, job: dict[str, Any], cfg) -> dict[str, Any]:
    kind = SyncKind(job["kind"])
    application = db.applications.find_one({"_id": job["applicationId"]})
    if application is None:
        raise LookupError(f"application {job['applicationId']} not found")

    if kind is SyncKind.CREATE_EVENTS:
        drive = db.drives.find_one({"_id": application.get("driveId")})
        if drive is None:
            raise LookupError(f"drive {application.get('driveId')} not found")
        return calendar.create_stage_events(
            db, application, drive, tz_name=cfg.TIMEZONE_DISPLAY, organizer=cfg.CALENDAR_ORGANIZER
        )

    if kind is SyncKind.RELABEL_EVENTS:
        if application.get("status") == ApplicationStatus.REJECTED.value:
            return {"skipped": "application rejected"}
        # a replayed job must not roll events back past later transitions
        return calendar.relabel_events(db, application["_id"], int(application.get("processStageIndex") or 0))

    return calendar.cancel_events(db, application["_id"])


def run_job(db, job: dict[str, Any], *, cfg) -> str:
    try:
        result = _execute(db, job, cfg)
    except Exception as e:
        logger.exception("calendar sync job failed id=%s kind=%s", job.get("_id"), job.get("kind"))
        _record(db, job, {"status": SyncStatus.FAILED.value, "error": f"{type(e).__name__}: {e}"[:500]})
        return SyncStatus.FAILED.value

    _record(db, job, {"status": SyncStatus.DONE.value, "result": result, "error": None})
    return SyncStatus.DONE.value


def _record(db, job: dict[str, Any], fields: dict[str, Any]) -> None:
    try:
        db.calendar_sync_jobs.update_one(
            {"_id": job["_id"]}, {"$set": {**fields, "updatedAt": utc_now()}, "$inc": {"attempts": 1}}
        )
    except PyMongoError:
        logger.exception("calendar sync job outcome not stored id=%s", job.get("_id"))
        return
    log_event(
        logger,
        "calendar_sync_job",
        level=logging.WARNING if fields["status"] == SyncStatus.FAILED.value else logging.INFO,
        jobId=str(job["_id"]),
        kind=job.get("kind"),
        applicationId=str(job.get("applicationId")),
        status=fields["status"],
    )


def run_pending(db, *, cfg, limit: int = 100) -> dict[str, int]:
    jobs = list(
        db.calendar_sync_jobs.find({"status": {"$in": [SyncStatus.PENDING.value, SyncStatus.FAILED.value]}})
        .sort("createdAt", 1)
        .limit(limit)
    )
    summary = {"processed": 0, SyncStatus.DONE.value: 0, SyncStatus.FAILED.value: 0}
    for job in jobs:
        outcome = run_job(db, job, cfg=cfg)
        summary["processed"] += 1
        summary[outcome] += 1
    return summary
