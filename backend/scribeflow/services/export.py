"""
Export filter engine

filter_segments() selects segments matching an ExportCriteria; materialize()
flattens them into one of three formats:

  - structured: JSON document with export metadata and the full field set
  - tabular:    CSV with a fixed column order, CRLF rows, doubled quotes
  - plain-text: "=== filename ===" header + transcription, blank line between

An empty selection is a valid export. The caller decides whether to block.
"""
import csv
import datetime as dt
import io
import json
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional

from scribeflow.core.errors import ValidationError
from scribeflow.services.entities import Action, ExportCriteria, Segment, utc_now

TABULAR_COLUMNS = ["ID", "Filename", "Duration", "Status", "AssignedTo", "BatchId", "Transcription"]


class ExportFormat(str, Enum):
    STRUCTURED = "json"
    TABULAR = "csv"
    PLAIN_TEXT = "txt"


_MEDIA_TYPES = {
    ExportFormat.STRUCTURED: "application/json",
    ExportFormat.TABULAR: "text/csv",
    ExportFormat.PLAIN_TEXT: "text/plain",
}


@dataclass
class ExportResult:
    content: str
    media_type: str
    filename: str
    count: int


def _as_utc(value: dt.datetime) -> dt.datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value


def matches(segment: Segment, criteria: ExportCriteria) -> bool:
    if criteria.statuses and segment.status not in criteria.statuses:
        return False
    created = _as_utc(segment.created_at)
    if criteria.start is not None and created < _as_utc(criteria.start):
        return False
    if criteria.end is not None and created > _as_utc(criteria.end):
        return False
    if criteria.assigned_to and segment.assigned_to != criteria.assigned_to:
        return False
    if criteria.batch_id and segment.batch_id != criteria.batch_id:
        return False
    return True


def filter_segments(segments: Iterable[Segment], criteria: Optional[ExportCriteria] = None) -> List[Segment]:
    """Segments matching every provided criterion, in input order."""
    if criteria is None:
        return list(segments)
    return [s for s in segments if matches(s, criteria)]


def to_structured(segments: List[Segment], criteria: ExportCriteria, exported_at: dt.datetime) -> str:
    payload = {
        "exportDate": exported_at.isoformat(),
        "totalSegments": len(segments),
        "filters": criteria.to_dict(),
        "segments": [s.to_dict() for s in segments],
    }
    return json.dumps(payload, ensure_ascii=False, indent=2)


def to_tabular(segments: List[Segment]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\r\n", quoting=csv.QUOTE_MINIMAL)
    writer.writerow(TABULAR_COLUMNS)
    for s in segments:
        writer.writerow([
            s.id,
            s.filename,
            s.duration,
            s.status.value,
            s.assigned_to or "",
            s.batch_id,
            s.transcription or "",
        ])
    return buf.getvalue()


def to_plain_text(segments: List[Segment]) -> str:
    blocks = [
        f"=== {s.filename} ===\n{s.transcription}\n"
        for s in segments
        if s.transcription and s.transcription.strip()
    ]
    return "\n".join(blocks)


def materialize(
    fmt: ExportFormat | str,
    segments: List[Segment],
    criteria: Optional[ExportCriteria] = None,
    exported_at: Optional[dt.datetime] = None,
) -> str:
    """
    Render segments in the requested format.

    Raises:
        ValidationError: If fmt is not a known export format
    """
    fmt = parse_format(fmt)
    if fmt == ExportFormat.STRUCTURED:
        return to_structured(segments, criteria or ExportCriteria(), exported_at or utc_now())
    if fmt == ExportFormat.TABULAR:
        return to_tabular(segments)
    return to_plain_text(segments)


def parse_format(fmt) -> ExportFormat:
    try:
        return ExportFormat(fmt)
    except ValueError:
        raise ValidationError(f"Unknown export format '{fmt}'", code="EXPORT_FORMAT_INVALID")


class ExportFilterEngine:
    """Permission-checked export over a snapshot of the store."""

    def __init__(self, engine):
        self._engine = engine

    async def export(
        self,
        user_id: str,
        fmt: ExportFormat | str,
        criteria: Optional[ExportCriteria] = None,
    ) -> ExportResult:
        fmt = parse_format(fmt)
        await self._engine.gate.require(user_id, Action.EXPORT)
        criteria = criteria or ExportCriteria()
        exported_at = self._engine.now()
        selected = filter_segments(self._engine.store.segments(), criteria)
        return ExportResult(
            content=materialize(fmt, selected, criteria, exported_at),
            media_type=_MEDIA_TYPES[fmt],
            filename=f"transcriptions_{exported_at.date().isoformat()}.{fmt.value}",
            count=len(selected),
        )
