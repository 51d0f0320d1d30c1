"""
Workflow entities

Plain dataclasses shared by every workflow service. Segments are replaced as a
whole on each transition (dataclasses.replace), so no half-applied update is
ever visible in the store.
"""
import datetime as dt
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, List, Optional


def utc_now() -> dt.datetime:
    """Current UTC datetime with timezone information."""
    return dt.datetime.now(dt.timezone.utc)


class Role(str, Enum):
    WORKER = "worker"
    ADMIN = "admin"
    SUPER_ADMIN = "super-admin"


class Action(str, Enum):
    VIEW_DASHBOARD = "view-dashboard"
    EDIT_SEGMENT = "edit-segment"
    VIEW_REVIEW_QUEUE = "view-review-queue"
    APPROVE_OR_DENY = "approve-or-deny"
    UPLOAD_BATCH = "upload-batch"
    EXPORT = "export"
    MANAGE_USERS = "manage-users"
    VIEW_ANALYTICS = "view-analytics"
    VIEW_GUIDELINES = "view-guidelines"


class SegmentStatus(str, Enum):
    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    RETURNED = "returned"


class BatchStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class DenialReason(str, Enum):
    POOR_AUDIO_QUALITY = "poor-audio-quality"
    INCORRECT_TRANSCRIPTION = "incorrect-transcription"
    INCOMPLETE_TRANSCRIPTION = "incomplete-transcription"
    FORMATTING_ISSUES = "formatting-issues"
    OTHER = "other"


# Display labels used by the guidelines endpoint and the review UI
DENIAL_REASON_LABELS = {
    DenialReason.POOR_AUDIO_QUALITY: "Poor audio quality",
    DenialReason.INCORRECT_TRANSCRIPTION: "Incorrect transcription",
    DenialReason.INCOMPLETE_TRANSCRIPTION: "Incomplete transcription",
    DenialReason.FORMATTING_ISSUES: "Formatting issues",
    DenialReason.OTHER: "Other",
}


class ReviewOutcome(str, Enum):
    APPROVE = "approve"
    DENY = "deny"


@dataclass
class Actor:
    """The acting user as seen by the workflow: identity plus current role."""
    id: str
    role: Role


@dataclass
class Segment:
    """
    One audio clip that needs a single transcription.

    return_reason is present if and only if status is RETURNED; the check runs
    on construction and on every dataclasses.replace().
    """
    id: str
    batch_id: str
    filename: str
    duration: float
    status: SegmentStatus = SegmentStatus.NOT_STARTED
    transcription: str = ""
    assigned_to: Optional[str] = None
    reviewed_by: Optional[str] = None
    return_reason: Optional[DenialReason] = None
    created_at: dt.datetime = field(default_factory=utc_now)
    updated_at: dt.datetime = field(default_factory=utc_now)

    def __post_init__(self):
        if self.duration < 0:
            raise ValueError("duration must be >= 0")
        if (self.status == SegmentStatus.RETURNED) != (self.return_reason is not None):
            raise ValueError("return_reason must be set exactly when status is 'returned'")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "batchId": self.batch_id,
            "filename": self.filename,
            "duration": self.duration,
            "status": self.status.value,
            "transcription": self.transcription,
            "assignedTo": self.assigned_to,
            "reviewedBy": self.reviewed_by,
            "returnReason": self.return_reason.value if self.return_reason else None,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


@dataclass
class BatchRecord:
    """Stored batch metadata. Counts and status are never stored, see Batch."""
    id: str
    name: str
    assigned_workers: List[str] = field(default_factory=list)
    created_at: dt.datetime = field(default_factory=utc_now)
    updated_at: dt.datetime = field(default_factory=utc_now)


@dataclass
class Batch:
    """Read model of a batch, aggregated from its member segments."""
    id: str
    name: str
    total_segments: int
    completed_segments: int
    status: BatchStatus
    assigned_workers: List[str]
    created_at: dt.datetime
    updated_at: dt.datetime

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "totalSegments": self.total_segments,
            "completedSegments": self.completed_segments,
            "status": self.status.value,
            "assignedWorkers": list(self.assigned_workers),
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


@dataclass
class TranscriptionProgress:
    """Advisory draft bookkeeping; never read by a status transition."""
    segment_id: str
    progress: int = 0
    last_saved: Optional[dt.datetime] = None
    auto_save_enabled: bool = True

    def to_dict(self) -> dict:
        return {
            "segmentId": self.segment_id,
            "progress": self.progress,
            "lastSaved": self.last_saved.isoformat() if self.last_saved else None,
            "autoSaveEnabled": self.auto_save_enabled,
        }


@dataclass
class ReviewDecision:
    segment_id: str
    decision: ReviewOutcome
    reviewed_by: str
    reviewed_at: dt.datetime
    reason: Optional[DenialReason] = None
    comments: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "segmentId": self.segment_id,
            "decision": self.decision.value,
            "reason": self.reason.value if self.reason else None,
            "comments": self.comments,
            "reviewedBy": self.reviewed_by,
            "reviewedAt": self.reviewed_at.isoformat(),
        }


@dataclass
class ExportCriteria:
    """
    Export predicate set. Every provided criterion must match (AND).
    An empty status set means every status.
    """
    statuses: FrozenSet[SegmentStatus] = frozenset()
    start: Optional[dt.datetime] = None
    end: Optional[dt.datetime] = None
    assigned_to: Optional[str] = None
    batch_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "status": sorted(s.value for s in self.statuses),
            "dateRange": {
                "start": self.start.isoformat() if self.start else None,
                "end": self.end.isoformat() if self.end else None,
            },
            "assignedTo": self.assigned_to,
            "batchId": self.batch_id,
        }
