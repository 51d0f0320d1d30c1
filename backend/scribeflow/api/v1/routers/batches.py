# scribeflow/api/v1/routers/batches.py
from fastapi import APIRouter, Depends
from scribeflow.api.v1.deps import get_current_user, get_services, require_action, to_http_error
from scribeflow.core.errors import WorkflowError
from scribeflow.models.user import User
from scribeflow.schemas.workflow import BatchCreateIn
from scribeflow.services.entities import Action
from scribeflow.services.factory import WorkflowServices

router = APIRouter(prefix="/batches", tags=["batches"])

@router.post("")
async def create_batch(
    body: BatchCreateIn,
    user: User = Depends(get_current_user),
    services: WorkflowServices = Depends(get_services),
):
    """
    Ingest a batch of audio segments. Segments start not-started and are
    dealt to the listed workers round-robin.

    Raises:
        HTTPException (400): Empty batch, missing name, bad segment or assignee
        HTTPException (403): If the role cannot upload batches
        HTTPException (503): A segment could not be persisted
    """
    try:
        batch = await services.ingestion.ingest(
            str(user.id),
            body.name,
            [s.model_dump() for s in body.segments],
            body.workerIds,
        )
    except WorkflowError as e:
        raise to_http_error(e)
    segments = services.store.segments_in_batch(batch.id)
    return {"success": True, "data": {"batch": batch.to_dict(),
                                      "segments": [s.to_dict() for s in segments]}}

@router.get("", dependencies=[Depends(require_action(Action.UPLOAD_BATCH))])
async def list_batches(services: WorkflowServices = Depends(get_services)):
    """All batches with their derived status, newest first."""
    batches = sorted(services.store.batches(), key=lambda b: b.created_at, reverse=True)
    return {"success": True, "data": {"items": [b.to_dict() for b in batches], "total": len(batches)}}
