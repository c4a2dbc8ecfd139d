"""
Shared fixtures: in-memory SQLite database, TestClient with stubbed storage and
AI backends, and small factories for users, content and enrollments.
"""
import os
import sys
from datetime import datetime, timedelta, timezone

# Settings are read at import time, so the environment must be in place first
os.environ["DATABASE_URL_OVERRIDE"] = "sqlite://"
os.environ["ENABLE_FILE_LOGGING"] = "false"
os.environ["LOG_FORMAT"] = "text"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"

# Add the parent directory to the path so we can import the application modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import pytest
from fastapi.testclient import TestClient

from app import app
from core.security import create_access_token, get_password_hash
from db_config import Base, SessionLocal, engine
from models.models import (
    AppRoleEnum,
    Enrollment,
    GradeLevelEnum,
    MediumEnum,
    Note,
    StreamEnum,
    Subject,
    TierEnum,
    Topic,
    User,
    UserRole,
    UserSession,
)
from services.ai_manager import get_ai_manager
from services.storage_service import SignedUrlError, get_storage_client

FIXED_NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
TEST_PASSWORD = "testpass123"
SIGNED_URL = "https://storage.test/storage/v1/object/sign/notes/al/maths/limits.pdf?token=abc"


class FakeStorage:
    """Records sign requests; optionally fails like an unreachable storage backend."""

    bucket = "notes"

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []

    async def create_signed_url(self, path, expires_in):
        self.calls.append((path, expires_in))
        if self.fail:
            raise SignedUrlError()
        return SIGNED_URL


class FakeAI:
    """Stands in for the AI backend: records prompts and returns a canned reply."""

    def __init__(self, reply: str = "Here is how limits work.", error: Exception = None):
        self.reply = reply
        self.error = error
        self.prompts = []

    async def complete(self, messages):
        self.prompts.append(messages)
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def fake_ai():
    return FakeAI()


@pytest.fixture
def client(db_session, storage, fake_ai):
    app.dependency_overrides[get_storage_client] = lambda: storage
    app.dependency_overrides[get_ai_manager] = lambda: fake_ai
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# --- Factories -----------------------------------------------------------------

def make_user(db, username="student", roles=(AppRoleEnum.student,), is_active=True, password=TEST_PASSWORD):
    user = User(
        username=username,
        email=f"{username}@example.com",
        full_name=username.title(),
        password_hash=get_password_hash(password),
        is_active=is_active,
    )
    for role in roles:
        user.roles.append(UserRole(role=role))
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(db, user):
    """Issue a token backed by a live session row, as /auth/login would."""
    token = create_access_token({"sub": user.username})
    db.add(UserSession(
        user_id=user.id,
        session_token=token,
        expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
    ))
    db.commit()
    return {"Authorization": f"Bearer {token}"}


def make_note(
    db,
    grade=GradeLevelEnum.al_grade12,
    stream=StreamEnum.maths,
    medium=MediumEnum.english,
    min_tier=TierEnum.starter,
    file_url="notes/al/maths/limits.pdf",
    is_active=True,
    title="Limits and Continuity",
):
    subject = Subject(name="Combined Maths", grade=grade, stream=stream, medium=medium)
    db.add(subject)
    db.flush()
    topic = Topic(subject_id=subject.id, name="Limits")
    db.add(topic)
    db.flush()
    note = Note(topic_id=topic.id, title=title, file_url=file_url, min_tier=min_tier, is_active=is_active)
    db.add(note)
    db.commit()
    db.refresh(note)
    return note


def make_enrollment(
    db,
    user,
    tier=TierEnum.standard,
    grade=GradeLevelEnum.al_grade12,
    stream=StreamEnum.maths,
    medium=MediumEnum.english,
    expires_at=None,
    is_active=True,
):
    enrollment = Enrollment(
        user_id=user.id,
        grade=grade,
        stream=stream,
        medium=medium,
        tier=tier,
        expires_at=expires_at,
        is_active=is_active,
    )
    db.add(enrollment)
    db.commit()
    db.refresh(enrollment)
    return enrollment
