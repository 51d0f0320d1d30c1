"""
Pydantic schemas for authentication endpoints.
"""
from pydantic import BaseModel

class LoginRequest(BaseModel):
    """
    Request model for the login endpoint.
    Team members log in with their email address.
    """
    email: str
    password: str  # Plain text, verified against the stored hash
