# scribeflow/api/v1/routers/analytics.py
from fastapi import APIRouter, Depends
from scribeflow.api.v1.deps import get_current_user, get_services, to_http_error
from scribeflow.core.errors import WorkflowError
from scribeflow.models.user import User
from scribeflow.services.factory import WorkflowServices

router = APIRouter(prefix="/analytics", tags=["analytics"])

@router.get("")
async def system_analytics(
    user: User = Depends(get_current_user),
    services: WorkflowServices = Depends(get_services),
):
    """
    System-wide statistics (super-admin only).

    Returns:
        dict: Response containing:
            - success: bool (always True)
            - data: totals, averageProcessingTime (seconds from createdAt to updatedAt
              of completed segments), approvalRate, activeWorkers and
              dailyProgress for the last 7 days
    """
    try:
        stats = await services.analytics.system(str(user.id))
    except WorkflowError as e:
        raise to_http_error(e)
    stats["registeredUsers"] = await User.all().count()
    return {"success": True, "data": stats}
