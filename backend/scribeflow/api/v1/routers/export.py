# scribeflow/api/v1/routers/export.py
import datetime as dt
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response
from scribeflow.api.v1.deps import get_current_user, get_services, to_http_error
from scribeflow.core.errors import WorkflowError
from scribeflow.models.user import User
from scribeflow.schemas.workflow import ExportIn
from scribeflow.services.entities import ExportCriteria, SegmentStatus
from scribeflow.services.factory import WorkflowServices

router = APIRouter(prefix="/export", tags=["export"])

def parse_bound(value: Optional[str], end_of_day: bool = False) -> Optional[dt.datetime]:
    """
    Parse an ISO date or datetime into an aware UTC datetime.
    A bare date covers the whole day: 00:00 for a start bound, 23:59:59.999999
    for an end bound.

    Raises:
        HTTPException (400): INVALID_DATE
    """
    if value is None or not value.strip():
        return None
    raw = value.strip()
    try:
        if len(raw) == 10:
            day = dt.date.fromisoformat(raw)
            moment = dt.datetime.combine(day, dt.time.max if end_of_day else dt.time.min)
        else:
            moment = dt.datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "INVALID_DATE", "message": f"Invalid date '{value}'"},
        )
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=dt.timezone.utc)
    return moment

def criteria_from_request(body: ExportIn) -> ExportCriteria:
    try:
        statuses = frozenset(SegmentStatus(s) for s in body.status)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "INVALID_STATUS", "message": f"Unknown status in {body.status}"},
        )
    return ExportCriteria(
        statuses=statuses,
        start=parse_bound(body.startDate),
        end=parse_bound(body.endDate, end_of_day=True),
        assigned_to=body.assignedTo or None,
        batch_id=body.batchId or None,
    )

@router.post("")
async def export_segments(
    body: ExportIn,
    user: User = Depends(get_current_user),
    services: WorkflowServices = Depends(get_services),
):
    """
    Download the segments matching every given filter.

    The body is the file itself (json, csv or txt) with a Content-Disposition
    attachment header. An empty selection still produces a valid file; the
    X-Export-Count header carries the number of segments.

    Raises:
        HTTPException (400): INVALID_DATE / INVALID_STATUS
        HTTPException (403): If the role cannot export
    """
    criteria = criteria_from_request(body)
    try:
        result = await services.export.export(str(user.id), body.format, criteria)
    except WorkflowError as e:
        raise to_http_error(e)
    return Response(
        content=result.content.encode("utf-8"),
        media_type=f"{result.media_type}; charset=utf-8",
        headers={
            "Content-Disposition": f'attachment; filename="{result.filename}"',
            "X-Export-Count": str(result.count),
        },
    )
