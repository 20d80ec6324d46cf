"""
Counselling session booking.

Capacity counts bookings whose status is ``applied`` or ``confirmed``. The
count query gives a friendly early answer; the hard guard is a conditional
``$inc`` on the session's ``seatsTaken`` counter, which only matches while a
seat is free. Every status change into or out of a seat-holding status moves
that counter.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from placement.utils.datetime import utc_now
from placement.utils.errors import ApiError, ErrorCode
from placement.utils.logging import log_event
from placement.utils.validators import parse_bool, parse_choice, parse_datetime, require_text

logger = logging.getLogger("placement.counselling")


class BookingStatus(str, Enum):
    APPLIED = "applied"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"


class SessionStatus(str, Enum):
    SCHEDULED = "scheduled"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


SEAT_HOLDING = {BookingStatus.APPLIED.value, BookingStatus.CONFIRMED.value}
TERMINAL_FOR_CANCEL = {BookingStatus.COMPLETED.value, BookingStatus.CANCELLED.value}
BOOKING_STATUSES = {s.value for s in BookingStatus}
URGENCIES = {"low", "medium", "high"}
SESSION_TYPES = {"individual", "group"}


def _max_participants(session: dict[str, Any]) -> int:
    try:
        return max(0, int(session.get("maxParticipants", 1)))
    except (TypeError, ValueError):
        return 1


def _reserve_seat(db, session: dict[str, Any]) -> bool:
    cap = _max_participants(session)
    reserved = db.counselling_sessions.find_one_and_update(
        {
            "_id": session["_id"],
            "$or": [{"seatsTaken": {"$lt": cap}}, {"seatsTaken": {"$exists": False}}],
        },
        {"$inc": {"seatsTaken": 1}},
        return_document=ReturnDocument.AFTER,
    )
    return reserved is not None


def _release_seat(db, session_id) -> None:
    db.counselling_sessions.update_one({"_id": session_id, "seatsTaken": {"$gt": 0}}, {"$inc": {"seatsTaken": -1}})


def create_session(db, body: dict[str, Any]) -> dict[str, Any]:
    date = parse_datetime(body.get("date"), field="date", required=True)
    try:
        max_participants = int(body.get("maxParticipants") or 1)
        duration = int(body.get("duration") or 60)
    except (TypeError, ValueError) as e:
        raise ApiError(ErrorCode.BAD_REQUEST, "maxParticipants and duration must be integers") from e
    if max_participants < 1 or duration < 1:
        raise ApiError(ErrorCode.BAD_REQUEST, "maxParticipants and duration must be positive")

    session: dict[str, Any] = {
        "counsellorName": require_text(body, "counsellorName"),
        "topic": require_text(body, "topic"),
        "date": date,
        "time": require_text(body, "time"),
        "duration": duration,
        "location": str(body.get("location") or "").strip() or "Counselling Room",
        "description": str(body.get("description") or "").strip(),
        "maxParticipants": max_participants,
        "sessionType": parse_choice(body.get("sessionType"), SESSION_TYPES, field="sessionType", default="individual"),
        "status": SessionStatus.SCHEDULED.value,
        "isActive": True,
        "seatsTaken": 0,
        "createdAt": utc_now(),
    }
    session["_id"] = db.counselling_sessions.insert_one(session).inserted_id
    return session


def apply_for_session(db, user_id, session_id, body: dict[str, Any]) -> dict[str, Any]:
    session = db.counselling_sessions.find_one({"_id": session_id})
    if not session:
        raise ApiError(ErrorCode.NOT_FOUND, "Counselling session not found")

    if not session.get("isActive", True) or session.get("status") != SessionStatus.SCHEDULED.value:
        raise ApiError(ErrorCode.BAD_REQUEST, "Session is not available for applications")

    reason = require_text(body, "reason")
    urgency = parse_choice(body.get("urgency"), URGENCIES, field="urgency", default="medium")

    if db.counselling_applications.find_one({"userId": user_id, "sessionId": session_id}, {"_id": 1}):
        raise ApiError(ErrorCode.CONFLICT, "Already applied for this counselling session")

    taken = db.counselling_applications.count_documents(
        {"sessionId": session_id, "status": {"$in": sorted(SEAT_HOLDING)}}
    )
    if taken >= _max_participants(session) or not _reserve_seat(db, session):
        raise ApiError(ErrorCode.CAPACITY_EXCEEDED, "Session is full")

    now = utc_now()
    application: dict[str, Any] = {
        "userId": user_id,
        "sessionId": session_id,
        "status": BookingStatus.APPLIED.value,
        "appliedDate": now,
        "reason": reason,
        "urgency": urgency,
        "previousCounselling": parse_bool(body.get("previousCounselling"), False),
        "notes": str(body.get("notes") or "").strip(),
        "counsellorNotes": "",
        "updates": [],
    }
    try:
        application["_id"] = db.counselling_applications.insert_one(application).inserted_id
    except DuplicateKeyError as e:
        _release_seat(db, session_id)
        raise ApiError(ErrorCode.CONFLICT, "Already applied for this counselling session") from e

    log_event(logger, "counselling_booked", applicationId=str(application["_id"]), sessionId=str(session_id))
    return application


def cancel_application(db, user_id, application_id) -> dict[str, Any]:
    application = db.counselling_applications.find_one({"_id": application_id, "userId": user_id})
    if not application:
        raise ApiError(ErrorCode.NOT_FOUND, "Application not found")

    if application.get("status") in TERMINAL_FOR_CANCEL:
        raise ApiError(ErrorCode.BAD_REQUEST, "Cannot cancel this application")

    updated = db.counselling_applications.find_one_and_update(
        {"_id": application_id, "status": application.get("status")},
        {
            "$set": {"status": BookingStatus.CANCELLED.value},
            "$push": {
                "updates": {
                    "status": BookingStatus.CANCELLED.value,
                    "date": utc_now(),
                    "notes": "Cancelled by student",
                    "updatedBy": "student",
                }
            },
        },
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise ApiError(ErrorCode.CONFLICT, "Application was updated concurrently, please retry")

    if application.get("status") in SEAT_HOLDING:
        _release_seat(db, application["sessionId"])

    log_event(logger, "counselling_cancelled", applicationId=str(application_id))
    return updated


def submit_feedback(db, user_id, application_id, body: dict[str, Any]) -> dict[str, Any]:
    application = db.counselling_applications.find_one(
        {"_id": application_id, "userId": user_id, "status": BookingStatus.COMPLETED.value}
    )
    if not application:
        raise ApiError(ErrorCode.NOT_FOUND, "Completed application not found")

    rating = body.get("rating")
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise ApiError(ErrorCode.BAD_REQUEST, "rating must be an integer between 1 and 5", details={"field": "rating"})

    feedback = {
        "rating": rating,
        "comments": str(body.get("comments") or "").strip(),
        "submittedAt": utc_now(),
    }
    return db.counselling_applications.find_one_and_update(
        {"_id": application_id},
        {"$set": {"feedback": feedback}},
        return_document=ReturnDocument.AFTER,
    )


def update_application_status(db, application_id, body: dict[str, Any]) -> dict[str, Any]:
    application = db.counselling_applications.find_one({"_id": application_id})
    if not application:
        raise ApiError(ErrorCode.NOT_FOUND, "Application not found")

    old_status = str(application.get("status") or BookingStatus.APPLIED.value)
    new_status = old_status
    if body.get("status"):
        new_status = parse_choice(body.get("status"), BOOKING_STATUSES, field="status")
    notes = str(body.get("counsellorNotes") or "").strip()

    fields: dict[str, Any] = {"status": new_status}
    if notes:
        fields["counsellorNotes"] = notes

    updated = db.counselling_applications.find_one_and_update(
        {"_id": application_id, "status": application.get("status")},
        {
            "$set": fields,
            "$push": {
                "updates": {
                    "status": new_status,
                    "date": utc_now(),
                    "notes": notes or f"Status updated to {new_status}",
                    "updatedBy": "admin",
                }
            },
        },
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise ApiError(ErrorCode.CONFLICT, "Application was updated concurrently, please retry")

    was_holding, now_holding = old_status in SEAT_HOLDING, new_status in SEAT_HOLDING
    if was_holding and not now_holding:
        _release_seat(db, application["sessionId"])
    elif now_holding and not was_holding:
        # admin override: no capacity check
        db.counselling_sessions.update_one({"_id": application["sessionId"]}, {"$inc": {"seatsTaken": 1}})

    log_event(
        logger, "counselling_status_updated", applicationId=str(application_id), fromStatus=old_status, toStatus=new_status
    )
    return updated


def list_upcoming_sessions(db, *, upcoming: bool, page: int, limit: int) -> dict[str, Any]:
    query: dict[str, Any] = {"isActive": True}
    if upcoming:
        query["date"] = {"$gte": utc_now()}
        query["status"] = SessionStatus.SCHEDULED.value

    total = db.counselling_sessions.count_documents(query)
    sessions = list(db.counselling_sessions.find(query).sort("date", 1).skip((page - 1) * limit).limit(limit))
    return {"sessions": sessions, "total": total, "currentPage": page}
