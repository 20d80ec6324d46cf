from __future__ import annotations

import copy

import mongomock
import pytest
from bson import ObjectId

from placement.config import TestingConfig
from placement.counselling.booking import apply_for_session
from placement.db import ensure_indexes
from placement.recruitment.intake import apply_to_drive
from placement.recruitment.stages import advance_stage
from placement.utils.datetime import utc_now
from placement.utils.errors import ApiError, ErrorCode


class StaleReads:
    """Collection whose ``find_one`` answers with what was stored before a concurrent write."""

    def __init__(self, collection, snapshot=None):
        self._collection = collection
        self._snapshot = snapshot

    def find_one(self, *args, **kwargs):
        return copy.deepcopy(self._snapshot)

    def __getattr__(self, name):
        return getattr(self._collection, name)


class DbView:
    def __init__(self, db, **collections):
        self._db = db
        self._collections = collections

    def __getattr__(self, name):
        if name in self._collections:
            return self._collections[name]
        return getattr(self._db, name)


@pytest.fixture()
def db():
    database = mongomock.MongoClient().placement_guards
    ensure_indexes(database)
    return database


@pytest.fixture()
def cfg(monkeypatch):
    monkeypatch.delenv("CALENDAR_SYNC_MODE", raising=False)
    return TestingConfig()


def _drive(db, process=("OA", "Interview", "HR")):
    drive = {
        "company": "Acme",
        "role": "SDE Intern",
        "process": list(process),
        "processSchedule": [],
        "applicants": 0,
        "isActive": True,
    }
    drive["_id"] = db.drives.insert_one(drive).inserted_id
    return drive


def _session(db, *, cap, taken):
    session = {
        "counsellorName": "Dr. Rao",
        "topic": "Careers",
        "date": utc_now(),
        "time": "10:00 AM",
        "maxParticipants": cap,
        "status": "scheduled",
        "isActive": True,
        "seatsTaken": taken,
    }
    session["_id"] = db.counselling_sessions.insert_one(session).inserted_id
    return session


def test_unique_index_catches_application_that_passed_the_lookup(db, cfg):
    drive = _drive(db)
    user_id = ObjectId()
    db.applications.insert_one({"userId": user_id, "driveId": drive["_id"], "status": "applied"})
    view = DbView(db, applications=StaleReads(db.applications))

    with pytest.raises(ApiError) as exc:
        apply_to_drive(view, user_id, drive["_id"], cfg=cfg)

    assert exc.value.code is ErrorCode.CONFLICT
    assert exc.value.status == 400
    assert db.applications.count_documents({"userId": user_id, "driveId": drive["_id"]}) == 1
    assert db.drives.find_one({"_id": drive["_id"]})["applicants"] == 0
    assert db.calendar_sync_jobs.count_documents({}) == 0


def test_seat_counter_refuses_when_full_even_if_count_is_low(db):
    session = _session(db, cap=2, taken=2)

    with pytest.raises(ApiError) as exc:
        apply_for_session(db, ObjectId(), session["_id"], {"reason": "Resume review"})

    assert exc.value.code is ErrorCode.CAPACITY_EXCEEDED
    assert db.counselling_applications.count_documents({}) == 0
    assert db.counselling_sessions.find_one({"_id": session["_id"]})["seatsTaken"] == 2


def test_seat_counter_without_field_still_reserves(db):
    session = _session(db, cap=1, taken=0)
    db.counselling_sessions.update_one({"_id": session["_id"]}, {"$unset": {"seatsTaken": ""}})

    apply_for_session(db, ObjectId(), session["_id"], {"reason": "Mock interview"})

    assert db.counselling_sessions.find_one({"_id": session["_id"]})["seatsTaken"] == 1


def test_duplicate_booking_releases_the_reserved_seat(db):
    session = _session(db, cap=5, taken=1)
    user_id = ObjectId()
    db.counselling_applications.insert_one({"userId": user_id, "sessionId": session["_id"], "status": "applied"})
    view = DbView(db, counselling_applications=StaleReads(db.counselling_applications))

    with pytest.raises(ApiError) as exc:
        apply_for_session(view, user_id, session["_id"], {"reason": "Resume review"})

    assert exc.value.code is ErrorCode.CONFLICT
    assert db.counselling_applications.count_documents({"sessionId": session["_id"]}) == 1
    assert db.counselling_sessions.find_one({"_id": session["_id"]})["seatsTaken"] == 1


def test_advance_loses_race_to_concurrent_transition(db, cfg):
    drive = _drive(db)
    application = {
        "userId": ObjectId(),
        "driveId": drive["_id"],
        "status": "applied",
        "currentStage": "OA",
        "processStageIndex": 0,
        "updates": [],
    }
    application["_id"] = db.applications.insert_one(application).inserted_id
    snapshot = db.applications.find_one({"_id": application["_id"]})

    # another admin moves the candidate first
    db.applications.update_one(
        {"_id": application["_id"]},
        {"$set": {"processStageIndex": 1, "currentStage": "Interview"}, "$push": {"updates": {"notes": "rival"}}},
    )
    view = DbView(db, applications=StaleReads(db.applications, snapshot))

    with pytest.raises(ApiError) as exc:
        advance_stage(view, application["_id"], actor={"email": "admin@example.com"}, cfg=cfg)

    assert exc.value.code is ErrorCode.CONFLICT
    stored = db.applications.find_one({"_id": application["_id"]})
    assert stored["processStageIndex"] == 1
    assert [u["notes"] for u in stored["updates"]] == ["rival"]
    assert db.calendar_sync_jobs.count_documents({}) == 0
