from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from bson import ObjectId


class ApplicationStatus(str, Enum):
    APPLIED = "applied"
    STAGE_PROGRESS = "stage-progress"
    SELECTED = "selected"
    REJECTED = "rejected"


class EventStatus(str, Enum):
    SCHEDULED = "scheduled"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class SyncKind(str, Enum):
    CREATE_EVENTS = "CREATE_EVENTS"
    RELABEL_EVENTS = "RELABEL_EVENTS"
    CANCEL_EVENTS = "CANCEL_EVENTS"


class SyncStatus(str, Enum):
    PENDING = "pending"
    DONE = "done"
    FAILED = "failed"


PLACEMENT_EVENT_TYPE = "Placement Drive"

COMPLETION_MESSAGE = "Congratulations! You have completed all stages."
REJECTION_MESSAGE = "Application has been rejected"


@dataclass(frozen=True)
class EventLink:
    """Foreign key from a calendar event back to the application stage it mirrors."""

    application_id: ObjectId
    drive_id: ObjectId
    stage_index: int

    def __post_init__(self) -> None:
        if not isinstance(self.application_id, ObjectId) or not isinstance(self.drive_id, ObjectId):
            raise TypeError("EventLink ids must be ObjectId")
        if isinstance(self.stage_index, bool) or not isinstance(self.stage_index, int) or self.stage_index < 0:
            raise ValueError(f"invalid stage index: {self.stage_index!r}")

    def to_doc(self) -> dict[str, Any]:
        return {
            "applicationId": self.application_id,
            "driveId": self.drive_id,
            "stageIndex": self.stage_index,
        }

    @classmethod
    def from_doc(cls, doc: dict[str, Any] | None) -> "EventLink":
        doc = doc or {}
        return cls(
            application_id=doc.get("applicationId"),
            drive_id=doc.get("driveId"),
            stage_index=doc.get("stageIndex"),
        )
