"""
Calendar events mirroring a drive application's stage schedule.

Events are created from ``drive.processSchedule`` when a student applies,
relabelled when the application moves through ``drive.process`` and cancelled
when it is rejected. Every function here is a satellite step: callers run it
through :mod:`placement.recruitment.outbox` so a failure never fails the
application transition itself.
"""

from __future__ import annotations

import logging
import re
from collections import deque
from datetime import date, datetime
from typing import Any

from dateutil import parser as dt_parser

from placement.recruitment.models import PLACEMENT_EVENT_TYPE, EventLink, EventStatus
from placement.utils.datetime import ensure_utc, get_zone, utc_now
from placement.utils.logging import log_event

logger = logging.getLogger("placement.calendar")

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})\s*(AM|PM)$", re.IGNORECASE)

DEFAULT_TIME_TEXT = "10:00 AM"
DEFAULT_TIME = (10, 0)

COMPLETED_PREFIX = "[COMPLETED]"
CURRENT_PREFIX = "[CURRENT]"
CANCELLED_PREFIX = "[CANCELLED]"
_STATUS_PREFIXES = (COMPLETED_PREFIX, CURRENT_PREFIX, CANCELLED_PREFIX)

DEFAULT_DETAILS = "Please check with placement cell for more details."


def parse_event_time(text: Any) -> tuple[int, int]:
    """Parse ``H:MM AM|PM`` into a 24-hour ``(hour, minute)``, falling back to 10:00."""
    m = _TIME_RE.match(str(text or "").strip())
    if not m:
        return DEFAULT_TIME

    hour, minute, period = int(m.group(1)), int(m.group(2)), m.group(3).upper()
    if not 1 <= hour <= 12 or minute > 59:
        return DEFAULT_TIME

    if period == "PM" and hour != 12:
        hour += 12
    elif period == "AM" and hour == 12:
        hour = 0
    return hour, minute


def parse_schedule_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return ensure_utc(value).date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return dt_parser.parse(value.strip()).date()
    except (ValueError, OverflowError):
        return None


def assign_stage_indexes(process: list[str], schedule: list[Any]) -> list[int]:
    """Pipeline index for every schedule item.

    The n-th item naming a stage takes the n-th occurrence of that name in
    ``process``, so repeated names never share an index. Items whose stage has
    no unclaimed occurrence keep their schedule position.
    """
    free: dict[str, deque[int]] = {}
    for i, name in enumerate(process):
        free.setdefault(str(name).strip(), deque()).append(i)

    indexes: list[int] = []
    for position, item in enumerate(schedule):
        stage = str(item.get("stage") or "").strip() if isinstance(item, dict) else ""
        slots = free.get(stage)
        indexes.append(slots.popleft() if slots else position)
    return indexes


def strip_status_prefix(title: str) -> str:
    text = str(title or "").strip()
    changed = True
    while changed:
        changed = False
        for prefix in _STATUS_PREFIXES:
            if text.startswith(prefix):
                text = text[len(prefix):].lstrip()
                changed = True
    return text


def with_status_prefix(title: str, prefix: str) -> str:
    return f"{prefix} {strip_status_prefix(title)}"


def compose_event(
    drive: dict[str, Any],
    item: Any,
    *,
    application: dict[str, Any],
    position: int,
    stage_index: int,
    tz_name: str,
    organizer: str,
) -> dict[str, Any] | None:
    """Build the event document for one schedule item, or ``None`` if the item is unusable."""
    if not isinstance(item, dict):
        return None

    stage = str(item.get("stage") or "").strip()
    if not stage or not item.get("date"):
        return None

    day = parse_schedule_date(item.get("date"))
    if day is None:
        return None

    time_text = str(item.get("time") or "").strip() or DEFAULT_TIME_TEXT
    hour, minute = parse_event_time(time_text)
    local = datetime(day.year, day.month, day.day, hour, minute, tzinfo=get_zone(tz_name))

    link = EventLink(application_id=application["_id"], drive_id=drive["_id"], stage_index=stage_index)

    company = str(drive.get("company") or "")
    role = str(drive.get("role") or "")
    details = str(item.get("description") or "").strip() or DEFAULT_DETAILS
    now = utc_now()

    return {
        "title": f"{company} - {stage}",
        "type": PLACEMENT_EVENT_TYPE,
        "date": ensure_utc(local),
        "time": time_text,
        "location": str(item.get("venue") or "").strip() or "TBD",
        "description": f"{stage} for {role} position at {company}. {details}",
        "organizer": organizer,
        "attendees": [{"userId": application["userId"], "status": "registered"}],
        "status": EventStatus.SCHEDULED.value,
        "isActive": True,
        "metadata": link.to_doc(),
        "scheduleIndex": position,
        "createdAt": now,
        "updatedAt": now,
    }


def create_stage_events(
    db, application: dict[str, Any], drive: dict[str, Any], *, tz_name: str, organizer: str
) -> dict[str, int]:
    counts = {"created": 0, "skipped": 0, "failed": 0, "existing": 0}
    schedule = drive.get("processSchedule") or []
    if not schedule:
        log_event(logger, "calendar_no_schedule", driveId=str(drive["_id"]))
        return counts

    existing = {
        e.get("scheduleIndex")
        for e in db.events.find({"metadata.applicationId": application["_id"]}, {"scheduleIndex": 1})
    }
    stage_indexes = assign_stage_indexes([str(s) for s in (drive.get("process") or [])], schedule)

    for position, item in enumerate(schedule):
        if position in existing:
            counts["existing"] += 1
            continue
        try:
            doc = compose_event(
                drive,
                item,
                application=application,
                position=position,
                stage_index=stage_indexes[position],
                tz_name=tz_name,
                organizer=organizer,
            )
            if doc is None:
                counts["skipped"] += 1
                log_event(
                    logger,
                    "calendar_item_skipped",
                    level=logging.WARNING,
                    driveId=str(drive["_id"]),
                    scheduleIndex=position,
                )
                continue
            db.events.insert_one(doc)
            counts["created"] += 1
        except Exception:
            # one bad item must not stop the rest of the batch
            counts["failed"] += 1
            logger.exception("calendar event creation failed drive=%s scheduleIndex=%s", drive["_id"], position)

    log_event(logger, "calendar_events_created", applicationId=str(application["_id"]), **counts)
    return counts


def relabel_events(db, application_id, stage_index: int) -> dict[str, int]:
    counts = {"completed": 0, "ongoing": 0, "reset": 0, "unchanged": 0}
    now = utc_now()

    for event in db.events.find({"metadata.applicationId": application_id}):
        status = str(event.get("status") or "")
        if status == EventStatus.CANCELLED.value:
            counts["unchanged"] += 1
            continue

        try:
            link = EventLink.from_doc(event.get("metadata"))
        except (TypeError, ValueError):
            counts["unchanged"] += 1
            log_event(logger, "calendar_bad_link", level=logging.WARNING, eventId=str(event["_id"]))
            continue

        title = str(event.get("title") or "")
        if link.stage_index < stage_index:
            key, new_status, new_title = "completed", EventStatus.COMPLETED.value, with_status_prefix(title, COMPLETED_PREFIX)
        elif link.stage_index == stage_index:
            key, new_status, new_title = "ongoing", EventStatus.ONGOING.value, with_status_prefix(title, CURRENT_PREFIX)
        elif status != EventStatus.SCHEDULED.value:
            # left over from a stage that was later moved back
            key, new_status, new_title = "reset", EventStatus.SCHEDULED.value, strip_status_prefix(title)
        else:
            counts["unchanged"] += 1
            continue

        if new_title == title and new_status == status:
            counts["unchanged"] += 1
            continue

        db.events.update_one(
            {"_id": event["_id"]}, {"$set": {"title": new_title, "status": new_status, "updatedAt": now}}
        )
        counts[key] += 1

    log_event(logger, "calendar_events_relabelled", applicationId=str(application_id), stageIndex=stage_index, **counts)
    return counts


def cancel_events(db, application_id) -> dict[str, int]:
    counts = {"cancelled": 0, "unchanged": 0}
    now = utc_now()

    for event in db.events.find({"metadata.applicationId": application_id}):
        title = str(event.get("title") or "")
        if title.startswith(CANCELLED_PREFIX):
            counts["unchanged"] += 1
            continue

        db.events.update_one(
            {"_id": event["_id"]},
            {
                "$set": {
                    "title": with_status_prefix(title, CANCELLED_PREFIX),
                    "description": f"{CANCELLED_PREFIX} {event.get('description') or ''}",
                    "status": EventStatus.CANCELLED.value,
                    "updatedAt": now,
                }
            },
        )
        counts["cancelled"] += 1

    log_event(logger, "calendar_events_cancelled", applicationId=str(application_id), **counts)
    return counts
