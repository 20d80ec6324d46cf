from __future__ import annotations

from typing import Any


def drive_funnel(db, drive_id) -> dict[str, Any]:
    stage_pipe = [
        {"$match": {"driveId": drive_id}},
        {"$addFields": {"stage": {"$ifNull": ["$currentStage", "UNKNOWN"]}}},
        {"$group": {"_id": "$stage", "count": {"$sum": 1}}},
        {"$project": {"_id": 0, "stage": "$_id", "count": 1}},
        {"$sort": {"stage": 1}},
    ]
    by_stage = list(db.applications.aggregate(stage_pipe))

    status_pipe = [
        {"$match": {"driveId": drive_id}},
        {"$addFields": {"status": {"$ifNull": ["$status", "UNKNOWN"]}}},
        {"$group": {"_id": "$status", "count": {"$sum": 1}}},
        {"$project": {"_id": 0, "status": "$_id", "count": 1}},
        {"$sort": {"status": 1}},
    ]
    by_status = list(db.applications.aggregate(status_pipe))

    return {
        "total": sum(int(x["count"]) for x in by_status),
        "byStage": by_stage,
        "byStatus": by_status,
    }


def drive_applications(db, drive_id) -> list[dict[str, Any]]:
    """Applications of a drive, newest first, each with a trimmed ``student`` sub-document."""
    applications = list(db.applications.find({"driveId": drive_id}).sort("appliedDate", -1))
    user_ids = list({a["userId"] for a in applications if a.get("userId") is not None})
    users = {
        u["_id"]: u
        for u in db.users.find({"_id": {"$in": user_ids}}, {"email": 1, "name": 1})
    }
    for a in applications:
        u = users.get(a.get("userId")) or {}
        a["student"] = {"id": a.get("userId"), "email": u.get("email", ""), "name": u.get("name", "")}
    return applications
