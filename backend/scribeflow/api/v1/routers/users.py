# scribeflow/api/v1/routers/users.py
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from tortoise.expressions import Q

from scribeflow.api.v1.deps import require_action
from scribeflow.core.security import hash_password
from scribeflow.models.user import User
from scribeflow.schemas.users import UserCreateIn, UserListOut, UserUpdateIn
from scribeflow.services.entities import Action

router = APIRouter(prefix="/users", tags=["users"])

manage_users = require_action(Action.MANAGE_USERS)


async def _get_user_or_404(user_id: str) -> User:
    try:
        uuid.UUID(str(user_id))
    except ValueError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="USER_NOT_FOUND")
    u = await User.get_or_none(id=user_id)
    if not u:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="USER_NOT_FOUND")
    return u


@router.get("", response_model=UserListOut)
async def list_users(
    q: Optional[str] = Query(default=None, description="Fuzzy search by name/email"),
    role: Optional[str] = Query(default=None, description="Exact role filter"),
    offset: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    _admin: User = Depends(manage_users),
):
    """
    Get paginated list of team members (super-admin only).

    Results are ordered by creation date (newest first).

    Args:
        q: Optional search query for fuzzy matching name or email
        role: Optional role filter (worker, admin, super-admin)
        offset: Number of items to skip (for pagination)
        limit: Maximum number of items to return (1-100)

    Raises:
        HTTPException (403): If user is not a super-admin
        HTTPException (401): If user is not authenticated
    """
    qs = User.all().order_by("-created_at")
    if q:
        qs = qs.filter(Q(name__icontains=q) | Q(email__icontains=q))
    if role:
        qs = qs.filter(role=role)

    total = await qs.count()
    rows = await qs.offset(offset).limit(limit)
    return {"items": [u.to_dict() for u in rows], "offset": offset, "limit": limit, "total": total}


@router.get("/{user_id}")
async def get_user_detail(user_id: str, _admin: User = Depends(manage_users)):
    """
    Raises:
        HTTPException (404): If user not found
        HTTPException (403): If user is not a super-admin
    """
    u = await _get_user_or_404(user_id)
    return {"success": True, "data": {"user": u.to_dict()}}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_user(body: UserCreateIn, _admin: User = Depends(manage_users)):
    """
    Add a team member. The email is stored lowercased and must be unique.

    Raises:
        HTTPException (400): EMAIL_EXISTS
        HTTPException (403): If user is not a super-admin
    """
    email = body.email.strip().lower()
    if await User.filter(email=email).exists():
        raise HTTPException(
            status_code=400,
            detail={"code": "EMAIL_EXISTS", "message": "Email already registered"},
        )
    u = await User.create(
        name=body.name.strip(),
        email=email,
        role=body.role,
        password_hash=hash_password(body.password),
    )
    return {"success": True, "data": {"user": u.to_dict()}}


@router.patch("/{user_id}")
async def update_user(
    user_id: str,
    body: UserUpdateIn,
    _admin: User = Depends(manage_users),
):
    """
    Update a member's name or email.

    Roles are fixed at creation, so a role different from the current one
    is rejected instead of applied.

    Raises:
        HTTPException (404): If user not found
        HTTPException (400): EMAIL_EXISTS / ROLE_IMMUTABLE / NAME_REQUIRED
        HTTPException (403): If user is not a super-admin
    """
    u = await _get_user_or_404(user_id)

    if body.role is not None and body.role != u.role:
        raise HTTPException(
            status_code=400,
            detail={"code": "ROLE_IMMUTABLE", "message": "A user's role cannot be changed"},
        )

    if body.name is not None:
        name = body.name.strip()
        if not name:
            raise HTTPException(
                status_code=400,
                detail={"code": "NAME_REQUIRED", "message": "Name cannot be empty"},
            )
        u.name = name

    if body.email is not None:
        email = body.email.strip().lower()
        if email != u.email:
            taken = await User.filter(email=email).exclude(id=u.id).exists()
            if taken:
                raise HTTPException(
                    status_code=400,
                    detail={"code": "EMAIL_EXISTS", "message": "Email already registered"},
                )
            u.email = email

    await u.save()
    return {"success": True, "data": {"user": u.to_dict()}}


@router.delete("/{user_id}")
async def delete_user(user_id: str, current: User = Depends(manage_users)):
    """
    Delete a team member. Their role stops resolving immediately, so any
    in-flight workflow request from them is refused on its next check.

    Raises:
        HTTPException (404): If user not found
        HTTPException (400): CANNOT_DELETE_SELF
        HTTPException (403): If user is not a super-admin
    """
    u = await _get_user_or_404(user_id)

    if str(current.id) == str(u.id):
        raise HTTPException(
            status_code=400,
            detail={"code": "CANNOT_DELETE_SELF", "message": "Cannot delete yourself"},
        )

    await u.delete()
    return {"success": True, "data": {"ok": True}}
