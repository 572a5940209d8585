# community_gate/schemas/auth.py
"""
Pydantic schemas for authentication endpoints.
Defines request/response models for login and session information.
"""
from pydantic import BaseModel


class LoginRequest(BaseModel):
    """
    Request model for user login endpoint.
    Contains credentials for authentication.
    """
    username: str  # User login name (compared case-insensitively)
    password: str  # User password (plain text, verified against the stored hash)


class SessionUserOut(BaseModel):
    """
    User information returned after login.
    """
    id: str
    username: str
    role: str = "user"


class LoginResponse(BaseModel):
    message: str
    user: SessionUserOut
