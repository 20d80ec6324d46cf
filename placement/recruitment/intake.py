from __future__ import annotations

import logging
from typing import Any

from pymongo.errors import DuplicateKeyError

from placement.recruitment import outbox
from placement.recruitment.models import ApplicationStatus, SyncKind
from placement.recruitment.stages import describe_next_step
from placement.utils.datetime import utc_now
from placement.utils.errors import ApiError, ErrorCode
from placement.utils.logging import log_event

logger = logging.getLogger("placement.workflow")


def apply_to_drive(db, user_id, drive_id, *, cfg) -> dict[str, Any]:
    drive = db.drives.find_one({"_id": drive_id})
    # closed drives are hidden from listings and behave as missing here
    if not drive or drive.get("isActive") is False:
        raise ApiError(ErrorCode.NOT_FOUND, "Company drive not found")

    process = [str(s) for s in (drive.get("process") or [])]
    if not process:
        raise ApiError(ErrorCode.BAD_REQUEST, "No process stages defined for this drive")

    if db.applications.find_one({"userId": user_id, "driveId": drive_id}, {"_id": 1}):
        raise ApiError(ErrorCode.CONFLICT, "Already applied for this drive")

    now = utc_now()
    application: dict[str, Any] = {
        "userId": user_id,
        "driveId": drive_id,
        "status": ApplicationStatus.APPLIED.value,
        "currentStage": process[0],
        "processStageIndex": 0,
        "nextStep": describe_next_step(process, 0),
        "appliedDate": now,
        "updates": [],
        "createdAt": now,
        "updatedAt": now,
    }
    try:
        application["_id"] = db.applications.insert_one(application).inserted_id
    except DuplicateKeyError as e:
        raise ApiError(ErrorCode.CONFLICT, "Already applied for this drive") from e

    log_event(logger, "drive_application_created", applicationId=str(application["_id"]), driveId=str(drive_id))

    outbox.enqueue_and_run(db, SyncKind.CREATE_EVENTS, application["_id"], cfg=cfg)

    db.drives.update_one({"_id": drive_id}, {"$inc": {"applicants": 1}})
    return application
