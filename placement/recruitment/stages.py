from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from pymongo import ReturnDocument

from placement.recruitment import outbox
from placement.recruitment.models import (
    COMPLETION_MESSAGE,
    REJECTION_MESSAGE,
    ApplicationStatus,
    SyncKind,
)
from placement.utils.datetime import utc_now
from placement.utils.errors import ApiError, ErrorCode
from placement.utils.logging import log_event

logger = logging.getLogger("placement.workflow")


@dataclass(frozen=True)
class StagePlan:
    index: int
    stage: str
    next_step: str
    status: str


def describe_next_step(process: list[str], index: int) -> str:
    if index < len(process) - 1:
        return f"Prepare for {process[index + 1]}"
    return COMPLETION_MESSAGE


def clamp_index(process: list[str], index: Any) -> int:
    try:
        i = int(index or 0)
    except (TypeError, ValueError):
        i = 0
    return max(0, min(i, len(process) - 1))


def plan_for_index(process: list[str], index: int, status: str) -> StagePlan:
    if not process:
        raise ValueError("process must not be empty")
    if index < 0 or index >= len(process):
        raise ValueError(f"stage index {index} outside pipeline of {len(process)}")
    last = index == len(process) - 1
    return StagePlan(
        index=index,
        stage=process[index],
        next_step=describe_next_step(process, index),
        status=ApplicationStatus.SELECTED.value if last else status,
    )


def plan_advance(process: list[str], current_index: Any, status: str) -> StagePlan:
    """Next position in the pipeline; the last stage is sticky and marks the candidate selected."""
    current = clamp_index(process, current_index)
    return plan_for_index(process, min(current + 1, len(process) - 1), status)


def _load_application(db, application_id) -> dict[str, Any]:
    application = db.applications.find_one({"_id": application_id})
    if not application:
        raise ApiError(ErrorCode.NOT_FOUND, "Application not found")
    return application


def _load_process(db, application: dict[str, Any]) -> list[str]:
    drive = db.drives.find_one({"_id": application.get("driveId")})
    if not drive:
        raise ApiError(ErrorCode.NOT_FOUND, "Drive not found for this application")
    process = [str(s) for s in (drive.get("process") or [])]
    if not process:
        raise ApiError(ErrorCode.BAD_REQUEST, "No process stages defined for this drive")
    return process


def _actor_label(actor: dict[str, Any] | None) -> str:
    if not actor:
        return "admin"
    return str(actor.get("email") or actor.get("id") or "admin")


def _apply_plan(db, application: dict[str, Any], plan: StagePlan, *, notes: str, actor) -> dict[str, Any]:
    now = utc_now()
    updated = db.applications.find_one_and_update(
        {
            "_id": application["_id"],
            "processStageIndex": application.get("processStageIndex"),
            "status": application.get("status"),
        },
        {
            "$set": {
                "processStageIndex": plan.index,
                "currentStage": plan.stage,
                "nextStep": plan.next_step,
                "status": plan.status,
                "updatedAt": now,
            },
            "$push": {
                "updates": {
                    "stage": plan.stage,
                    "status": plan.status,
                    "date": now,
                    "notes": notes,
                    "updatedBy": _actor_label(actor),
                }
            },
        },
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise ApiError(ErrorCode.CONFLICT, "Application was updated concurrently, please retry")
    return updated


def advance_stage(db, application_id, *, actor: dict[str, Any] | None, cfg) -> dict[str, Any]:
    application = _load_application(db, application_id)
    process = _load_process(db, application)

    status = str(application.get("status") or ApplicationStatus.APPLIED.value)
    if status == ApplicationStatus.REJECTED.value:
        raise ApiError(ErrorCode.CONFLICT, "Cannot advance a rejected application")

    plan = plan_advance(process, application.get("processStageIndex"), status)
    current = clamp_index(process, application.get("processStageIndex"))
    if plan.index == current and status == ApplicationStatus.SELECTED.value:
        log_event(logger, "stage_advance_noop", applicationId=str(application_id), stageIndex=current)
        return application

    updated = _apply_plan(db, application, plan, notes="Moved to next stage by admin", actor=actor)
    log_event(
        logger,
        "stage_advanced",
        applicationId=str(application_id),
        fromIndex=application.get("processStageIndex"),
        toIndex=plan.index,
        status=plan.status,
    )

    outbox.enqueue_and_run(db, SyncKind.RELABEL_EVENTS, application_id, payload={"stageIndex": plan.index}, cfg=cfg)
    return updated


def set_stage(db, application_id, stage_index: Any, *, actor: dict[str, Any] | None, cfg) -> dict[str, Any]:
    application = _load_application(db, application_id)
    process = _load_process(db, application)

    if isinstance(stage_index, bool) or not isinstance(stage_index, int):
        raise ApiError(ErrorCode.BAD_REQUEST, "processStageIndex must be an integer")
    if stage_index < 0 or stage_index >= len(process):
        raise ApiError(
            ErrorCode.BAD_REQUEST,
            "processStageIndex is outside the drive's process",
            details={"stages": len(process)},
        )

    status = str(application.get("status") or ApplicationStatus.APPLIED.value)
    if status == ApplicationStatus.REJECTED.value:
        raise ApiError(ErrorCode.CONFLICT, "Cannot move a rejected application")
    if status == ApplicationStatus.SELECTED.value:
        # moving back from the final stage reopens the candidacy
        status = ApplicationStatus.STAGE_PROGRESS.value

    plan = plan_for_index(process, stage_index, status)
    updated = _apply_plan(db, application, plan, notes=f"Updated by admin to stage {stage_index}", actor=actor)
    log_event(logger, "stage_set", applicationId=str(application_id), toIndex=plan.index, status=plan.status)

    outbox.enqueue_and_run(db, SyncKind.RELABEL_EVENTS, application_id, payload={"stageIndex": plan.index}, cfg=cfg)
    return updated


def reject_application(db, application_id, *, actor: dict[str, Any] | None, cfg) -> dict[str, Any]:
    application = _load_application(db, application_id)

    if application.get("status") == ApplicationStatus.REJECTED.value:
        log_event(logger, "reject_noop", applicationId=str(application_id))
        updated = application
    else:
        now = utc_now()
        updated = db.applications.find_one_and_update(
            {"_id": application_id, "status": {"$ne": ApplicationStatus.REJECTED.value}},
            {
                "$set": {
                    "status": ApplicationStatus.REJECTED.value,
                    "nextStep": REJECTION_MESSAGE,
                    "updatedAt": now,
                },
                "$push": {
                    "updates": {
                        "stage": application.get("currentStage") or "Application Review",
                        "status": ApplicationStatus.REJECTED.value,
                        "date": now,
                        "notes": "Application rejected by admin",
                        "updatedBy": _actor_label(actor),
                    }
                },
            },
            return_document=ReturnDocument.AFTER,
        )
        if updated is None:
            # rejected by a concurrent request in the meantime
            updated = _load_application(db, application_id)
        else:
            log_event(logger, "application_rejected", applicationId=str(application_id))

    outbox.enqueue_and_run(db, SyncKind.CANCEL_EVENTS, application_id, cfg=cfg)
    return updated
