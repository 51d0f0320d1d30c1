# scribeflow/models/segment.py
"""
Database model for segment snapshots.
One row per audio segment holding the latest field set handed to the
persistence collaborator. The in-memory workflow store stays the source of
truth; this table is what external consumers read.
"""
from tortoise import fields, models

from scribeflow.services.entities import Segment

class SegmentSnapshot(models.Model):
    id = fields.CharField(max_length=64, pk=True)
    batch_id = fields.CharField(max_length=64, index=True)
    filename = fields.CharField(max_length=512)
    duration = fields.FloatField(default=0)
    status = fields.CharField(max_length=16, index=True)  # not-started | in-progress | completed | returned
    transcription = fields.TextField(default="")
    assigned_to = fields.CharField(max_length=64, null=True)  # May outlive the user (orphan id)
    reviewed_by = fields.CharField(max_length=64, null=True)
    return_reason = fields.CharField(max_length=32, null=True)
    created_at = fields.DatetimeField()
    updated_at = fields.DatetimeField()

    class Meta:
        table = "segment_snapshots"

    @staticmethod
    def fields_from_segment(segment: Segment) -> dict:
        return {
            "batch_id": segment.batch_id,
            "filename": segment.filename,
            "duration": segment.duration,
            "status": segment.status.value,
            "transcription": segment.transcription,
            "assigned_to": segment.assigned_to,
            "reviewed_by": segment.reviewed_by,
            "return_reason": segment.return_reason.value if segment.return_reason else None,
            "created_at": segment.created_at,
            "updated_at": segment.updated_at,
        }

