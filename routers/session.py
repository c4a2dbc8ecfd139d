"""
Session state for the client route guard.

These endpoints only help the client decide what to render. Every protected
operation re-checks entitlement on its own.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.security import get_current_active_user
from db_config import get_db
from models.models import User
from schemas.session import RouteCheckRequest, RouteCheckResponse, SessionStateRead
from services.route_guard import RouteRequirements, SessionState, evaluate_route_guard
from services.session_service import SessionStateService

router = APIRouter(prefix="/session", tags=["Session"])


def _state_read(state: SessionState) -> SessionStateRead:
    return SessionStateRead(
        authenticated=state.authenticated,
        loading=state.loading,
        roles=sorted(state.roles, key=lambda r: r.value),
        has_enrollment=state.has_enrollment,
        has_subjects=state.has_subjects,
    )


@router.get("/state", response_model=SessionStateRead)
async def get_session_state(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    return _state_read(SessionStateService(db).build_state(current_user))


@router.post("/route-check", response_model=RouteCheckResponse)
async def check_route(
    requirements: RouteCheckRequest,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """Evaluate a view's requirements against the caller's current session state."""
    state = SessionStateService(db).build_state(current_user)
    decision = evaluate_route_guard(
        RouteRequirements(
            require_enrollment=requirements.require_enrollment,
            require_subjects=requirements.require_subjects,
            require_admin=requirements.require_admin,
            require_creator=requirements.require_creator,
            require_cmo=requirements.require_cmo,
            require_head_ops=requirements.require_head_ops,
            block_roles=frozenset(requirements.block_roles),
        ),
        state,
    )
    return RouteCheckResponse(outcome=decision.outcome, redirect_to=decision.redirect_to, state=_state_read(state))
