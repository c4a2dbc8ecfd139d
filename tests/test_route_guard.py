"""
Route guard decisions for client views.
"""
import pytest

from models.models import AppRoleEnum
from services.route_guard import (
    GuardOutcome,
    RouteRequirements,
    SessionState,
    evaluate_route_guard,
)

STUDENT = frozenset({AppRoleEnum.student})


def student(**overrides):
    values = dict(authenticated=True, roles=STUDENT, has_enrollment=True, has_subjects=True)
    values.update(overrides)
    return SessionState(**values)


def test_loading_state_never_redirects_or_renders():
    decision = evaluate_route_guard(RouteRequirements(require_admin=True), SessionState(loading=True))
    assert decision.outcome is GuardOutcome.LOADING
    assert decision.redirect_to is None


def test_unauthenticated_goes_to_auth():
    decision = evaluate_route_guard(RouteRequirements(), SessionState(authenticated=False))
    assert (decision.outcome, decision.redirect_to) == (GuardOutcome.REDIRECT, "/auth")


@pytest.mark.parametrize("flag, role", [
    ("require_admin", AppRoleEnum.content_admin),
    ("require_creator", AppRoleEnum.content_creator),
    ("require_cmo", AppRoleEnum.cmo),
    ("require_head_ops", AppRoleEnum.head_ops),
])
def test_required_roles(flag, role):
    requirements = RouteRequirements(**{flag: True})

    denied = evaluate_route_guard(requirements, student())
    assert (denied.outcome, denied.redirect_to) == (GuardOutcome.REDIRECT, "/")

    allowed = evaluate_route_guard(requirements, student(roles=frozenset({role})))
    assert allowed.outcome is GuardOutcome.RENDER


def test_blocked_role_is_sent_to_its_home():
    requirements = RouteRequirements(require_enrollment=True, block_roles=frozenset({AppRoleEnum.content_creator}))
    state = student(roles=frozenset({AppRoleEnum.content_creator}))
    decision = evaluate_route_guard(requirements, state)
    assert decision.redirect_to == "/creator/dashboard"


def test_enrollment_then_subject_selection():
    requirements = RouteRequirements(require_enrollment=True, require_subjects=True)

    no_enrollment = evaluate_route_guard(requirements, student(has_enrollment=False, has_subjects=False))
    assert no_enrollment.redirect_to == "/access"

    no_subjects = evaluate_route_guard(requirements, student(has_subjects=False))
    assert no_subjects.redirect_to == "/select-subjects"

    assert evaluate_route_guard(requirements, student()).outcome is GuardOutcome.RENDER


def test_admins_skip_enrollment_and_subject_checks():
    requirements = RouteRequirements(require_enrollment=True, require_subjects=True)
    admin = SessionState(authenticated=True, roles=frozenset({AppRoleEnum.super_admin}))
    assert evaluate_route_guard(requirements, admin).outcome is GuardOutcome.RENDER


def test_role_check_runs_before_enrollment_check():
    requirements = RouteRequirements(require_cmo=True, require_enrollment=True)
    decision = evaluate_route_guard(requirements, student(has_enrollment=False))
    assert decision.redirect_to == "/"


def test_unrestricted_view_renders_for_any_signed_in_user():
    state = SessionState(authenticated=True)
    assert evaluate_route_guard(RouteRequirements(), state).outcome is GuardOutcome.RENDER
