# scribeflow/api/v1/routers/auth.py
import datetime as dt
import logging
import jwt
from fastapi import APIRouter, HTTPException, Header, Request, Response, status, Depends
from scribeflow.core.security import verify_password, create_access_token, decode_access_token
from scribeflow.api.v1.deps import get_current_user, get_services, request_token
from scribeflow.services.factory import WorkflowServices
from scribeflow.models.user import User
from scribeflow.schemas.auth import LoginRequest

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)

@router.post("/login")
async def login(payload: LoginRequest, response: Response):
    """
    Authenticate a team member and create an access token.

    The token is returned in the body and also set as an HttpOnly cookie
    for browser clients. last_active is updated on every successful login.

    Returns:
        dict: {"success": True, "data": {"user": {...}, "accessToken": str}}

    Raises:
        HTTPException (401): AUTH_INVALID_CREDENTIALS
    """
    user = await User.get_or_none(email=payload.email.strip().lower())
    if not user or not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED,
                            detail={"code": "AUTH_INVALID_CREDENTIALS", "message": "Invalid email or password"})
    user.last_active = dt.datetime.now(dt.timezone.utc)
    await user.save(update_fields=["last_active"])
    token = create_access_token(str(user.id), user.role)
    response.set_cookie("accessToken", token, httponly=True, secure=False, samesite="lax")
    return {"success": True, "data": {"user": user.to_dict(), "accessToken": token}}

@router.get("/me")
async def me(user: User = Depends(get_current_user)):
    """
    Current authenticated user.

    Raises:
        HTTPException (401): If user is not authenticated
    """
    return {"success": True, "data": user.to_dict()}

@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    authorization: str | None = Header(default=None),
    services: WorkflowServices = Depends(get_services),
):
    """
    End the session: cancel the caller's pending draft auto-saves and clear
    the access token cookie. In-flight saves still land.

    Always succeeds, with or without a valid token; the JWT itself stays
    valid until it expires.
    """
    token = request_token(request, authorization)
    if token:
        try:
            user_id = decode_access_token(token).get("sub")
        except jwt.InvalidTokenError:
            user_id = None
        if user_id:
            closed = services.autosave.close_user(user_id)
            logger.info("[auth] logout of %s closed %d draft(s)", user_id, closed)
    response.delete_cookie("accessToken")
    return {"success": True}
