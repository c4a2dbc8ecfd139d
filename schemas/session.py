"""
Route guard session schemas.
"""
from typing import List, Optional
from pydantic import BaseModel, Field

from models.models import AppRoleEnum
from services.route_guard import GuardOutcome


class SessionStateRead(BaseModel):
    authenticated: bool
    loading: bool = False
    roles: List[AppRoleEnum] = Field(default_factory=list)
    has_enrollment: bool = False
    has_subjects: bool = False


class RouteCheckRequest(BaseModel):
    """Declarative requirements of one client view."""
    require_enrollment: bool = False
    require_subjects: bool = False
    require_admin: bool = False
    require_creator: bool = False
    require_cmo: bool = False
    require_head_ops: bool = False
    block_roles: List[AppRoleEnum] = Field(default_factory=list)


class RouteCheckResponse(BaseModel):
    outcome: GuardOutcome
    redirect_to: Optional[str] = None
    state: SessionStateRead
