# scribeflow/api/v1/routers/review.py
from fastapi import APIRouter, Depends
from scribeflow.api.v1.deps import get_current_user, get_services, to_http_error
from scribeflow.core.errors import WorkflowError
from scribeflow.models.user import User
from scribeflow.schemas.workflow import DenyIn
from scribeflow.services.factory import WorkflowServices

router = APIRouter(prefix="/review", tags=["review"])

@router.get("/queue")
async def review_queue(
    user: User = Depends(get_current_user),
    services: WorkflowServices = Depends(get_services),
):
    """
    Completed segments waiting for review, oldest activity first.

    Raises:
        HTTPException (403): If the role cannot view the review queue
    """
    try:
        pending = await services.review.list_pending(str(user.id))
    except WorkflowError as e:
        raise to_http_error(e)
    return {"success": True, "data": {"items": [s.to_dict() for s in pending], "total": len(pending)}}

@router.get("/stats")
async def review_stats(
    user: User = Depends(get_current_user),
    services: WorkflowServices = Depends(get_services),
):
    try:
        stats = await services.review.stats(str(user.id))
    except WorkflowError as e:
        raise to_http_error(e)
    return {"success": True, "data": stats}

@router.post("/{segment_id}/approve")
async def approve_segment(
    segment_id: str,
    user: User = Depends(get_current_user),
    services: WorkflowServices = Depends(get_services),
):
    """
    Approve a completed transcription. The segment stays completed and
    records the reviewer; approving again overwrites the reviewer.

    Raises:
        HTTPException (403): If the role cannot approve
        HTTPException (404): Unknown segment
        HTTPException (409): Segment is not completed
    """
    try:
        decision = await services.review.approve(segment_id, str(user.id))
    except WorkflowError as e:
        raise to_http_error(e)
    return {"success": True, "data": decision.to_dict()}

@router.post("/{segment_id}/deny")
async def deny_segment(
    segment_id: str,
    body: DenyIn,
    user: User = Depends(get_current_user),
    services: WorkflowServices = Depends(get_services),
):
    """
    Return a completed transcription to its worker with a reason.

    Raises:
        HTTPException (400): DENIAL_REASON_REQUIRED / DENIAL_REASON_INVALID
        HTTPException (403): If the role cannot deny
        HTTPException (409): Segment is not completed
    """
    try:
        decision = await services.review.deny(segment_id, str(user.id), body.reason, body.comments)
    except WorkflowError as e:
        raise to_http_error(e)
    return {"success": True, "data": decision.to_dict()}
