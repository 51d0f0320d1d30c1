"""
Pydantic schemas for user management endpoints (super-admin only).
"""
from pydantic import BaseModel, Field
from typing import Optional, List, Literal

class UserOut(BaseModel):
    """User information returned by the management API."""
    id: str
    name: str
    email: str
    role: Literal["worker", "admin", "super-admin"]
    createdAt: Optional[str] = None
    lastActive: Optional[str] = None

class UserListOut(BaseModel):
    """Paginated user list."""
    items: List[UserOut]
    offset: int
    limit: int
    total: int

class UserCreateIn(BaseModel):
    """Request model for creating a team member."""
    name: str = Field(min_length=1, max_length=128)
    email: str = Field(min_length=3, max_length=256)
    role: Literal["worker", "admin", "super-admin"] = "worker"
    password: str = Field(min_length=6)

class UserUpdateIn(BaseModel):
    """
    Request model for updating a team member.
    All fields are optional. role is accepted only to reject changes to it.
    """
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None
