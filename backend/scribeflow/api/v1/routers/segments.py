# scribeflow/api/v1/routers/segments.py
from typing import Optional
from fastapi import APIRouter, Depends
from scribeflow.api.v1.deps import get_current_user, get_services, to_http_error
from scribeflow.core.errors import WorkflowError
from scribeflow.models.user import User
from scribeflow.schemas.workflow import DraftIn
from scribeflow.services.factory import WorkflowServices

router = APIRouter(prefix="/segments", tags=["segments"])

def _draft_payload(services: WorkflowServices, segment_id: str) -> Optional[dict]:
    status = services.autosave.status(segment_id)
    return status.to_dict() if status else None

@router.get("")
async def list_my_segments(
    user: User = Depends(get_current_user),
    services: WorkflowServices = Depends(get_services),
):
    """
    Segments assigned to the current worker, in ingestion order.

    Raises:
        HTTPException (403): If the role has no dashboard
    """
    try:
        segments = await services.engine.segments_for(str(user.id))
    except WorkflowError as e:
        raise to_http_error(e)
    return {"success": True, "data": {"items": [s.to_dict() for s in segments], "total": len(segments)}}

@router.get("/dashboard")
async def my_dashboard(
    user: User = Depends(get_current_user),
    services: WorkflowServices = Depends(get_services),
):
    """Counts and completion percentage for the current worker."""
    try:
        summary = await services.analytics.dashboard(str(user.id))
    except WorkflowError as e:
        raise to_http_error(e)
    return {"success": True, "data": summary}

@router.get("/{segment_id}")
async def get_segment(
    segment_id: str,
    user: User = Depends(get_current_user),
    services: WorkflowServices = Depends(get_services),
):
    """
    A single segment plus its draft status.
    Workers see their own segments; reviewers see any segment.
    """
    try:
        segment = await services.engine.get(str(user.id), segment_id)
    except WorkflowError as e:
        raise to_http_error(e)
    return {"success": True, "data": {"segment": segment.to_dict(),
                                      "draft": _draft_payload(services, segment_id)}}

@router.post("/{segment_id}/open")
async def open_segment(
    segment_id: str,
    user: User = Depends(get_current_user),
    services: WorkflowServices = Depends(get_services),
):
    """
    Open a segment for editing. A not-started segment moves to in-progress
    and a new draft session starts.

    Raises:
        HTTPException (403): Not a worker role or not the assignee
        HTTPException (404): Unknown segment
        HTTPException (503): The segment could not be persisted
    """
    try:
        segment = await services.autosave.open(str(user.id), segment_id)
    except WorkflowError as e:
        raise to_http_error(e)
    return {"success": True, "data": {"segment": segment.to_dict(),
                                      "draft": _draft_payload(services, segment_id)}}

@router.put("/{segment_id}/draft")
async def edit_draft(
    segment_id: str,
    body: DraftIn,
    user: User = Depends(get_current_user),
    services: WorkflowServices = Depends(get_services),
):
    """
    Record the latest draft text. The save itself happens after the
    auto-save debounce delay; the response only reflects the draft state.
    """
    try:
        await services.engine.check_editable(str(user.id), segment_id)
    except WorkflowError as e:
        raise to_http_error(e)
    status = services.autosave.on_edit(str(user.id), segment_id, body.text)
    return {"success": True, "data": status.to_dict()}

@router.get("/{segment_id}/draft")
async def get_draft_status(
    segment_id: str,
    user: User = Depends(get_current_user),
    services: WorkflowServices = Depends(get_services),
):
    """Draft state, progress and last-saved time of a segment."""
    try:
        await services.engine.get(str(user.id), segment_id)
    except WorkflowError as e:
        raise to_http_error(e)
    return {"success": True, "data": _draft_payload(services, segment_id)}

@router.post("/{segment_id}/submit")
async def submit_segment(
    segment_id: str,
    user: User = Depends(get_current_user),
    services: WorkflowServices = Depends(get_services),
):
    """
    Submit the current draft for review (bypasses the debounce).
    Submitting an already completed segment succeeds without changes.

    Raises:
        HTTPException (400): EMPTY_TRANSCRIPTION
        HTTPException (409): INVALID_TRANSITION (segment never opened)
    """
    try:
        segment = await services.autosave.complete(str(user.id), segment_id)
    except WorkflowError as e:
        raise to_http_error(e)
    return {"success": True, "data": {"segment": segment.to_dict(),
                                      "draft": _draft_payload(services, segment_id)}}

@router.post("/{segment_id}/close")
async def close_segment(
    segment_id: str,
    user: User = Depends(get_current_user),
    services: WorkflowServices = Depends(get_services),
):
    """Navigation away from a segment: cancels the pending auto-save."""
    try:
        await services.engine.get(str(user.id), segment_id)
    except WorkflowError as e:
        raise to_http_error(e)
    status = services.autosave.close(segment_id)
    return {"success": True, "data": status.to_dict() if status else None}
