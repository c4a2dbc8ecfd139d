"""
Session state and route checks served to the client.
"""
from datetime import datetime, timedelta, timezone

from conftest import auth_headers, make_enrollment, make_user
from models.models import AppRoleEnum, UserSubjectSelection


def select_subjects(db, user, enrollment):
    db.add(UserSubjectSelection(
        user_id=user.id,
        enrollment_id=enrollment.id,
        subject_1="Combined Maths",
        subject_2="Physics",
        subject_3="Chemistry",
    ))
    db.commit()


def test_state_requires_authentication(client):
    response = client.get("/session/state")
    assert response.status_code == 401
    assert response.json()["code"] == "NO_AUTH"


def test_state_for_new_student(client, db_session):
    user = make_user(db_session)
    body = client.get("/session/state", headers=auth_headers(db_session, user)).json()
    assert body == {
        "authenticated": True,
        "loading": False,
        "roles": ["student"],
        "has_enrollment": False,
        "has_subjects": False,
    }


def test_state_with_enrollment_and_subjects(client, db_session):
    user = make_user(db_session)
    enrollment = make_enrollment(db_session, user)
    select_subjects(db_session, user, enrollment)

    body = client.get("/session/state", headers=auth_headers(db_session, user)).json()
    assert body["has_enrollment"] is True
    assert body["has_subjects"] is True


def test_expired_enrollment_hides_its_subject_selection(client, db_session):
    user = make_user(db_session)
    expired = make_enrollment(db_session, user, expires_at=datetime.now(timezone.utc) - timedelta(days=1))
    select_subjects(db_session, user, expired)

    body = client.get("/session/state", headers=auth_headers(db_session, user)).json()
    assert (body["has_enrollment"], body["has_subjects"]) == (False, False)


def test_route_check_redirects_unenrolled_student(client, db_session):
    user = make_user(db_session)
    response = client.post("/session/route-check", json={"require_enrollment": True, "require_subjects": True},
                           headers=auth_headers(db_session, user))
    assert response.status_code == 200, response.text
    body = response.json()
    assert (body["outcome"], body["redirect_to"]) == ("redirect", "/access")


def test_route_check_sends_enrolled_student_to_subject_selection(client, db_session):
    user = make_user(db_session)
    make_enrollment(db_session, user)
    body = client.post("/session/route-check", json={"require_enrollment": True, "require_subjects": True},
                       headers=auth_headers(db_session, user)).json()
    assert body["redirect_to"] == "/select-subjects"


def test_route_check_blocks_creators_from_student_views(client, db_session):
    creator = make_user(db_session, username="creator", roles=(AppRoleEnum.content_creator,))
    body = client.post("/session/route-check", json={"block_roles": ["content_creator"]},
                       headers=auth_headers(db_session, creator)).json()
    assert (body["outcome"], body["redirect_to"]) == ("redirect", "/creator/dashboard")


def test_route_check_renders_admin_pages_for_admins(client, db_session):
    admin = make_user(db_session, username="admin", roles=(AppRoleEnum.content_admin,))
    body = client.post("/session/route-check", json={"require_admin": True, "require_enrollment": True},
                       headers=auth_headers(db_session, admin)).json()
    assert body["outcome"] == "render"
    assert body["redirect_to"] is None
