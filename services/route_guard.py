"""
Client route guard evaluation.

Advisory only: it decides whether a client view should render, wait or
redirect given the session state the client already holds. Server-side
operations never consult its result.
"""
import enum
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional

from models.models import ADMIN_ROLES, AppRoleEnum

AUTH_PATH = "/auth"
HOME_PATH = "/"
ACCESS_PATH = "/access"
SELECT_SUBJECTS_PATH = "/select-subjects"

ROLE_HOME_PATHS = {
    AppRoleEnum.super_admin: "/admin",
    AppRoleEnum.content_admin: "/admin",
    AppRoleEnum.support_admin: "/admin",
    AppRoleEnum.cmo: "/cmo/dashboard",
    AppRoleEnum.content_creator: "/creator/dashboard",
    AppRoleEnum.head_ops: "/head-ops/dashboard",
    AppRoleEnum.student: "/dashboard",
}


class GuardOutcome(str, enum.Enum):
    LOADING = "loading"
    RENDER = "render"
    REDIRECT = "redirect"


@dataclass
class SessionState:
    authenticated: bool = False
    loading: bool = False
    roles: FrozenSet[AppRoleEnum] = frozenset()
    has_enrollment: bool = False
    has_subjects: bool = False

    @property
    def is_admin(self) -> bool:
        return bool(self.roles & ADMIN_ROLES)


@dataclass
class RouteRequirements:
    require_enrollment: bool = False
    require_subjects: bool = False
    require_admin: bool = False
    require_creator: bool = False
    require_cmo: bool = False
    require_head_ops: bool = False
    block_roles: FrozenSet[AppRoleEnum] = field(default_factory=frozenset)


@dataclass
class GuardDecision:
    outcome: GuardOutcome
    redirect_to: Optional[str] = None

    @classmethod
    def render(cls) -> "GuardDecision":
        return cls(GuardOutcome.RENDER)

    @classmethod
    def redirect(cls, path: str) -> "GuardDecision":
        return cls(GuardOutcome.REDIRECT, path)


def role_home(role: AppRoleEnum) -> str:
    return ROLE_HOME_PATHS.get(role, HOME_PATH)


def _missing_required_role(requirements: RouteRequirements, state: SessionState) -> bool:
    checks = (
        (requirements.require_admin, state.is_admin),
        (requirements.require_creator, AppRoleEnum.content_creator in state.roles),
        (requirements.require_cmo, AppRoleEnum.cmo in state.roles),
        (requirements.require_head_ops, AppRoleEnum.head_ops in state.roles),
    )
    return any(required and not held for required, held in checks)


def _first_blocked_role(block_roles: Iterable[AppRoleEnum], state: SessionState) -> Optional[AppRoleEnum]:
    # Sorted so a user holding several blocked roles always lands on the same page
    for role in sorted(block_roles, key=lambda r: r.value):
        if role in state.roles:
            return role
    return None


def evaluate_route_guard(requirements: RouteRequirements, state: SessionState) -> GuardDecision:
    """
    Decide what a protected view should do.

    Checks run in a fixed order and the first failing one wins: loading,
    authentication, required role, blocked role, enrollment, subject
    selection. Admins are exempt from the enrollment and subject checks.
    """
    if state.loading:
        return GuardDecision(GuardOutcome.LOADING)

    if not state.authenticated:
        return GuardDecision.redirect(AUTH_PATH)

    if _missing_required_role(requirements, state):
        return GuardDecision.redirect(HOME_PATH)

    blocked = _first_blocked_role(requirements.block_roles, state)
    if blocked is not None:
        return GuardDecision.redirect(role_home(blocked))

    if state.is_admin:
        return GuardDecision.render()

    if requirements.require_enrollment and not state.has_enrollment:
        return GuardDecision.redirect(ACCESS_PATH)

    if requirements.require_subjects and not state.has_subjects:
        return GuardDecision.redirect(SELECT_SUBJECTS_PATH)

    return GuardDecision.render()
