"""
User-related Pydantic schemas for request/response validation.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, EmailStr, Field, field_validator

from models.models import AppRoleEnum


class UserRead(BaseModel):
    """Schema for reading user data (excludes sensitive information)."""
    id: int
    username: str
    email: EmailStr
    full_name: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None
    roles: List[AppRoleEnum] = Field(default_factory=list)

    @field_validator("roles", mode="before")
    @classmethod
    def flatten_roles(cls, value):
        # ORM rows carry UserRole objects; expose the role names only
        return [getattr(item, "role", item) for item in value or []]

    class Config:
        from_attributes = True
