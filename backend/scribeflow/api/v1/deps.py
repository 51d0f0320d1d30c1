from fastapi import Depends, Header, HTTPException, Request, status
from scribeflow.core.errors import (
    AuthorizationError,
    InvalidTransitionError,
    NotFoundError,
    PersistenceFailure,
    ValidationError,
    WorkflowError,
)
from scribeflow.core.security import decode_access_token
from scribeflow.models.user import User
from scribeflow.services.entities import Action
from scribeflow.services.factory import WorkflowServices

def request_token(request: Request, authorization: str | None) -> str | None:
    """
    The JWT sent with a request, if any:
    1. Authorization header (Bearer token) - preferred method
    2. HttpOnly cookie (accessToken) - fallback method
    """
    token = None
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization.split(" ", 1)[1].strip()
    if not token:
        token = request.cookies.get("accessToken")
    return token or None

async def get_current_user(
    request: Request,
    authorization: str | None = Header(default=None),
):
    """
    FastAPI dependency to get the current authenticated user.

    Raises:
        HTTPException (401): AUTH_REQUIRED / AUTH_INVALID_TOKEN / AUTH_USER_NOT_FOUND
    """
    token = request_token(request, authorization)

    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="AUTH_REQUIRED")

    try:
        payload = decode_access_token(token)
        user_id: str = payload.get("sub")
    except Exception:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="AUTH_INVALID_TOKEN")

    user = await User.get_or_none(id=user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="AUTH_USER_NOT_FOUND")
    return user

def get_services(request: Request) -> WorkflowServices:
    """The workflow services built at startup (see scribeflow.main)."""
    return request.app.state.workflow

def require_action(action: Action):
    """
    Build a dependency that lets the request through only if the current
    user's role may perform `action`.

    Usage:
        @router.get("/review/queue", dependencies=[Depends(require_action(Action.VIEW_REVIEW_QUEUE))])
    """
    async def _dependency(
        current: User = Depends(get_current_user),
        services: WorkflowServices = Depends(get_services),
    ) -> User:
        result = await services.gate.check(str(current.id), action)
        if not result.allowed:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="FORBIDDEN")
        return current

    return _dependency

def to_http_error(exc: WorkflowError) -> HTTPException:
    """Translate a workflow error into the HTTPException the routers raise."""
    if isinstance(exc, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, AuthorizationError):
        code = status.HTTP_403_FORBIDDEN
    elif isinstance(exc, InvalidTransitionError):
        code = status.HTTP_409_CONFLICT
    elif isinstance(exc, ValidationError):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, PersistenceFailure):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail=exc.to_detail())
