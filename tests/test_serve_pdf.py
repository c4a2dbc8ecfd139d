"""
Note access gate over HTTP: every rejection code and the signed grant.
"""
import re
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from conftest import SIGNED_URL, auth_headers, make_enrollment, make_note, make_user
from core.security import create_access_token
from models.models import (
    AppRoleEnum,
    DownloadLog,
    GradeLevelEnum,
    MediumEnum,
    Note,
    StreamEnum,
    TierEnum,
    Topic,
)
from services.enrollment_service import EnrollmentService


def serve(client, headers, note_id):
    return client.post("/serve-pdf", json={"noteId": note_id}, headers=headers)


def past():
    return datetime.now(timezone.utc) - timedelta(days=1)


def future():
    return datetime.now(timezone.utc) + timedelta(days=30)


@pytest.fixture
def student(db_session):
    return make_user(db_session)


@pytest.fixture
def headers(db_session, student):
    return auth_headers(db_session, student)


def test_missing_header_is_no_auth(client, db_session):
    note = make_note(db_session)
    response = client.post("/serve-pdf", json={"noteId": str(note.id)})
    assert response.status_code == 401
    assert response.json()["code"] == "NO_AUTH"


def test_garbage_token_is_auth_failed(client, db_session):
    note = make_note(db_session)
    response = serve(client, {"Authorization": "Bearer not-a-jwt"}, str(note.id))
    assert response.status_code == 401
    assert response.json()["code"] == "AUTH_FAILED"


def test_token_without_session_is_auth_failed(client, db_session, student):
    token = create_access_token({"sub": student.username})
    response = serve(client, {"Authorization": f"Bearer {token}"}, "1")
    assert response.status_code == 401
    assert response.json()["code"] == "AUTH_FAILED"


@pytest.mark.parametrize("body", [{}, {"noteId": ""}, {"noteId": "   "}, {"noteId": None}])
def test_missing_note_id(client, headers, body):
    response = client.post("/serve-pdf", json=body, headers=headers)
    assert response.status_code == 400, response.text
    assert response.json()["code"] == "MISSING_NOTE_ID"


@pytest.mark.parametrize("note_id", ["424242", "not-a-number"])
def test_unknown_note(client, headers, note_id):
    response = serve(client, headers, note_id)
    assert response.status_code == 404
    assert response.json()["code"] == "NOTE_NOT_FOUND"


def test_inactive_note(client, db_session, headers):
    note = make_note(db_session, is_active=False)
    response = serve(client, headers, str(note.id))
    assert response.status_code == 403
    assert response.json()["code"] == "NOTE_INACTIVE"


def test_note_without_file(client, db_session, headers):
    note = make_note(db_session, file_url=None)
    response = serve(client, headers, str(note.id))
    assert response.status_code == 404
    assert response.json()["code"] == "NO_FILE"


def test_orphaned_topic(client, db_session, headers):
    note = Note(topic_id=9999, title="Orphan", file_url="notes/orphan.pdf")
    db_session.add(note)
    db_session.commit()
    response = serve(client, headers, str(note.id))
    assert response.status_code == 404
    assert response.json()["code"] == "TOPIC_NOT_FOUND"


def test_orphaned_subject(client, db_session, headers):
    topic = Topic(subject_id=9999, name="Lost topic")
    db_session.add(topic)
    db_session.flush()
    note = Note(topic_id=topic.id, title="Orphan", file_url="notes/orphan.pdf")
    db_session.add(note)
    db_session.commit()
    response = serve(client, headers, str(note.id))
    assert response.status_code == 404
    assert response.json()["code"] == "SUBJECT_NOT_FOUND"


def test_no_enrollment_reports_content_tuple(client, db_session, student, headers):
    note = make_note(db_session, stream=StreamEnum.maths)
    make_enrollment(db_session, student, stream=StreamEnum.biology)

    response = serve(client, headers, str(note.id))
    assert response.status_code == 403
    body = response.json()
    assert body["code"] == "NO_ENROLLMENT"
    assert body["details"] == {"grade": "al_grade12", "stream": "maths", "medium": "english"}


def test_inactive_enrollment_does_not_count(client, db_session, student, headers):
    note = make_note(db_session)
    make_enrollment(db_session, student, is_active=False)
    response = serve(client, headers, str(note.id))
    assert response.json()["code"] == "NO_ENROLLMENT"


def test_expired_enrollment_even_while_active(client, db_session, student, headers):
    note = make_note(db_session)
    make_enrollment(db_session, student, expires_at=past(), is_active=True)
    response = serve(client, headers, str(note.id))
    assert response.status_code == 403
    assert response.json()["code"] == "ENROLLMENT_EXPIRED"


@pytest.mark.parametrize("held, required, allowed", [
    (TierEnum.starter, TierEnum.standard, False),
    (TierEnum.standard, TierEnum.lifetime, False),
    (TierEnum.standard, TierEnum.standard, True),
    (TierEnum.lifetime, TierEnum.starter, True),
])
def test_tier_gate(client, db_session, student, headers, held, required, allowed):
    note = make_note(db_session, min_tier=required)
    make_enrollment(db_session, student, tier=held, expires_at=future())
    response = serve(client, headers, str(note.id))

    if allowed:
        assert response.status_code == 200, response.text
    else:
        assert response.status_code == 403
        body = response.json()
        assert body["code"] == "TIER_INSUFFICIENT"
        assert body["details"] == {"userTier": held.value, "requiredTier": required.value}


def test_grant_payload_headers_and_access_log(client, db_session, student, headers, storage):
    note = make_note(db_session, file_url="https://abc.supabase.co/storage/v1/object/public/notes/al/maths/limits.pdf")
    make_enrollment(db_session, student, tier=TierEnum.standard)

    response = client.post("/serve-pdf", json={"noteId": str(note.id)},
                           headers={**headers, "X-Forwarded-For": "203.0.113.7, 10.0.0.1"})
    assert response.status_code == 200, response.text
    assert response.headers["Cache-Control"] == "no-store, no-cache, must-revalidate"
    assert response.headers["Pragma"] == "no-cache"

    body = response.json()
    assert body["signedUrl"] == SIGNED_URL
    assert body["expiresIn"] == 300
    assert body["noteTitle"] == "Limits and Continuity"
    assert body["watermark"]["email"] == "student@example.com"
    assert re.fullmatch(r"[0-9A-F]{8}", body["watermark"]["orderId"])
    assert storage.calls == [("al/maths/limits.pdf", 300)]

    db_session.expire_all()
    log = db_session.query(DownloadLog).one()
    assert log.order_id == body["watermark"]["orderId"]
    assert log.ip_address == "203.0.113.7"
    assert db_session.get(Note, note.id).download_count == 1


def test_numeric_note_id_is_accepted(client, db_session, student, headers):
    note = make_note(db_session)
    make_enrollment(db_session, student)
    response = client.post("/serve-pdf", json={"noteId": note.id}, headers=headers)
    assert response.status_code == 200, response.text


def test_each_grant_gets_a_fresh_order_id(client, db_session, student, headers):
    note = make_note(db_session)
    make_enrollment(db_session, student)
    first = serve(client, headers, str(note.id)).json()["watermark"]["orderId"]
    second = serve(client, headers, str(note.id)).json()["watermark"]["orderId"]
    assert first != second


@pytest.mark.parametrize("role", [AppRoleEnum.super_admin, AppRoleEnum.content_admin, AppRoleEnum.support_admin])
def test_admins_bypass_entitlement_checks(client, db_session, role):
    admin = make_user(db_session, username=f"admin_{role.value}", roles=(role,))
    note = make_note(db_session, min_tier=TierEnum.lifetime)
    response = serve(client, auth_headers(db_session, admin), str(note.id))
    assert response.status_code == 200, response.text


def test_admins_still_see_missing_and_inactive_notes(client, db_session):
    admin = make_user(db_session, username="admin", roles=(AppRoleEnum.super_admin,))
    headers = auth_headers(db_session, admin)
    inactive = make_note(db_session, is_active=False)

    assert serve(client, headers, "987654").json()["code"] == "NOTE_NOT_FOUND"
    assert serve(client, headers, str(inactive.id)).json()["code"] == "NOTE_INACTIVE"


def test_highest_live_enrollment_is_used(client, db_session, student, headers):
    note = make_note(db_session, min_tier=TierEnum.lifetime)
    make_enrollment(db_session, student, tier=TierEnum.lifetime, expires_at=past())
    make_enrollment(db_session, student, tier=TierEnum.starter, expires_at=future())
    make_enrollment(db_session, student, tier=TierEnum.lifetime, expires_at=future())
    assert serve(client, headers, str(note.id)).status_code == 200


def test_signing_failure(client, db_session, student, headers, storage):
    storage.fail = True
    note = make_note(db_session)
    make_enrollment(db_session, student)
    response = serve(client, headers, str(note.id))
    assert response.status_code == 500
    assert response.json()["code"] == "SIGNED_URL_FAILED"


def test_access_check_failure(client, db_session, student, headers, monkeypatch):
    note = make_note(db_session)

    def broken_lookup(self, *args, **kwargs):
        raise OperationalError("SELECT enrollment", {}, Exception("connection lost"))

    monkeypatch.setattr(EnrollmentService, "find_for_content", broken_lookup)
    response = serve(client, headers, str(note.id))
    assert response.status_code == 500
    assert response.json()["code"] == "ACCESS_CHECK_FAILED"


def test_unexpected_failure_is_internal_error(client, db_session, student, headers, monkeypatch):
    note = make_note(db_session)
    make_enrollment(db_session, student)

    def explode(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr("services.content_gate.meets_tier", explode)
    response = serve(client, headers, str(note.id))
    assert response.status_code == 500
    assert response.json()["code"] == "INTERNAL_ERROR"


@pytest.mark.parametrize("error", [
    OperationalError("INSERT INTO download_log", {}, Exception("disk full")),
    RuntimeError("audit sink down"),
])
def test_access_log_failure_does_not_block_grant(client, db_session, student, headers, monkeypatch, error):
    note = make_note(db_session)
    make_enrollment(db_session, student)

    def broken_record(*args, **kwargs):
        raise error

    monkeypatch.setattr("services.content_gate.DownloadLog", broken_record)
    response = serve(client, headers, str(note.id))
    assert response.status_code == 200, response.text
    assert response.json()["signedUrl"] == SIGNED_URL

    db_session.expire_all()
    assert db_session.query(DownloadLog).count() == 0


def test_grade_and_medium_must_match_too(client, db_session, student, headers):
    note = make_note(db_session, grade=GradeLevelEnum.al_grade13, medium=MediumEnum.sinhala)
    make_enrollment(db_session, student, grade=GradeLevelEnum.al_grade12, medium=MediumEnum.sinhala)
    assert serve(client, headers, str(note.id)).json()["code"] == "NO_ENROLLMENT"
