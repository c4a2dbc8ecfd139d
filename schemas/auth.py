"""
Authentication-related Pydantic schemas.
"""
from typing import Optional
from pydantic import BaseModel, Field

from .user import UserRead


class TokenData(BaseModel):
    """Token payload schema."""
    username: Optional[str] = None


class LoginRequest(BaseModel):
    """Login request schema."""
    username: str = Field(..., description="Username or email")
    password: str = Field(..., min_length=8, description="Password")


class LoginResponse(BaseModel):
    """Login response schema."""
    access_token: str
    token_type: str
    user: UserRead
    expires_in: int = Field(..., description="Token expiration time in seconds")


class LogoutResponse(BaseModel):
    message: str
