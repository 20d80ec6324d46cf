from __future__ import annotations

import logging
import threading
from datetime import timezone

from flask import Flask
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.errors import PyMongoError

logger = logging.getLogger("placement.db")

_clients: dict[str, MongoClient] = {}
_clients_lock = threading.Lock()


def _connect(uri: str, *, timeout_ms: int) -> MongoClient:
    if uri.startswith("mongomock://"):
        import mongomock  # type: ignore[import-not-found]

        return mongomock.MongoClient(tz_aware=True, tzinfo=timezone.utc)

    return MongoClient(uri, serverSelectionTimeoutMS=timeout_ms, tz_aware=True, tzinfo=timezone.utc, retryWrites=True)


def get_client(app: Flask) -> MongoClient:
    """One client per URI for the whole process; pymongo clients are thread-safe."""
    cfg = app.config["CFG"]
    with _clients_lock:
        client = _clients.get(cfg.MONGODB_URI)
        if client is None:
            client = _connect(cfg.MONGODB_URI, timeout_ms=cfg.MONGO_SERVER_SELECTION_TIMEOUT_MS)
            _clients[cfg.MONGODB_URI] = client
    return client


def get_db(app: Flask):
    return get_client(app)[app.config["CFG"].DB_NAME]


def ping_db(db) -> bool:
    try:
        db.command("ping")
    except NotImplementedError:
        # mongomock
        return True
    except PyMongoError:
        logger.warning("mongo ping failed", exc_info=True)
        return False
    return True


def ensure_indexes(db) -> None:
    db.users.create_index([("email", ASCENDING)], unique=True, name="users_email_unique")

    db.drives.create_index(
        [("isActive", ASCENDING), ("featured", DESCENDING), ("deadline", ASCENDING)], name="drives_listing"
    )

    # One application per (student, drive); the pre-insert lookup is only a shortcut.
    db.applications.create_index(
        [("userId", ASCENDING), ("driveId", ASCENDING)], unique=True, name="applications_user_drive_unique"
    )
    db.applications.create_index([("driveId", ASCENDING), ("appliedDate", DESCENDING)], name="applications_drive")

    db.events.create_index([("metadata.applicationId", ASCENDING)], name="events_applicationId")
    db.events.create_index([("attendees.userId", ASCENDING), ("date", ASCENDING)], name="events_attendee_date")

    db.counselling_applications.create_index(
        [("userId", ASCENDING), ("sessionId", ASCENDING)], unique=True, name="counselling_user_session_unique"
    )
    db.counselling_applications.create_index(
        [("sessionId", ASCENDING), ("status", ASCENDING)], name="counselling_session_status"
    )

    db.calendar_sync_jobs.create_index(
        [("status", ASCENDING), ("createdAt", ASCENDING)], name="calendar_sync_jobs_status_createdAt"
    )


def init_mongo(app: Flask) -> None:
    db = get_db(app)
    ensure_indexes(db)
    app.extensions["mongo_db"] = db


def reset_client_for_tests() -> None:
    with _clients_lock:
        _clients.clear()
