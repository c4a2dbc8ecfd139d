"""
Database models for the application.
"""
import enum
from sqlalchemy import (
    Column, Integer, String, DateTime, Boolean, Text, ForeignKey, Enum as SAEnum,
    UniqueConstraint, Index, CheckConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from db_config import Base

# --- ENUM Types (mirroring PostgreSQL ENUMs) ---
class AppRoleEnum(enum.Enum):
    super_admin = "super_admin"
    content_admin = "content_admin"
    support_admin = "support_admin"
    student = "student"
    cmo = "cmo"
    content_creator = "content_creator"
    head_ops = "head_ops"

class GradeLevelEnum(enum.Enum):
    ol = "ol"
    al_grade12 = "al_grade12"
    al_grade13 = "al_grade13"

class StreamEnum(enum.Enum):
    maths = "maths"
    biology = "biology"
    commerce = "commerce"
    arts = "arts"
    technology = "technology"

class MediumEnum(enum.Enum):
    english = "english"
    sinhala = "sinhala"

class TierEnum(enum.Enum):
    starter = "starter"    # Silver
    standard = "standard"  # Gold
    lifetime = "lifetime"  # Platinum

class ChatRoleEnum(enum.Enum):
    user = "user"
    assistant = "assistant"


ADMIN_ROLES = frozenset({AppRoleEnum.super_admin, AppRoleEnum.content_admin, AppRoleEnum.support_admin})

# --- Model Definitions ---

# User and Authentication Models
class User(Base):
    __tablename__ = "user"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    username = Column(String(50), nullable=False, unique=True, index=True)
    email = Column(String(100), nullable=False, unique=True, index=True)
    full_name = Column(String(100), nullable=True)
    password_hash = Column(String(255), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now())  # DB trigger handles updates
    last_login = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, nullable=False, server_default='true', default=True)

    roles = relationship("UserRole", back_populates="user", cascade="all, delete-orphan", lazy="selectin")
    sessions = relationship("UserSession", back_populates="user", cascade="all, delete-orphan")
    enrollments = relationship("Enrollment", back_populates="user", cascade="all, delete-orphan")
    credit_records = relationship("AiCreditRecord", back_populates="user", cascade="all, delete-orphan")

    @property
    def role_set(self) -> frozenset:
        return frozenset(r.role for r in self.roles)

    @property
    def is_admin(self) -> bool:
        return bool(self.role_set & ADMIN_ROLES)

class UserRole(Base):
    __tablename__ = "user_role"
    __table_args__ = (UniqueConstraint("user_id", "role", name="uq_user_role"),)

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("user.id"), nullable=False, index=True)
    role = Column(SAEnum(AppRoleEnum, name="app_role_enum"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="roles")

class UserSession(Base):
    __tablename__ = "user_session"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("user.id"), nullable=False)
    session_token = Column(String(512), nullable=False, unique=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now())  # DB trigger handles updates
    expires_at = Column(DateTime(timezone=True), nullable=True)

    user = relationship("User", back_populates="sessions")

# Content Models (subject -> topic -> note)
class Subject(Base):
    __tablename__ = "subject"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    grade = Column(SAEnum(GradeLevelEnum, name="grade_level_enum"), nullable=False)
    stream = Column(SAEnum(StreamEnum, name="stream_enum"), nullable=False)
    medium = Column(SAEnum(MediumEnum, name="medium_enum"), nullable=False)
    sort_order = Column(Integer, nullable=False, server_default='0', default=0)
    is_active = Column(Boolean, nullable=False, server_default='true', default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    topics = relationship("Topic", back_populates="subject")

class Topic(Base):
    __tablename__ = "topic"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    subject_id = Column(Integer, ForeignKey("subject.id"), nullable=False, index=True)
    name = Column(String(150), nullable=False)
    sort_order = Column(Integer, nullable=False, server_default='0', default=0)
    is_active = Column(Boolean, nullable=False, server_default='true', default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    subject = relationship("Subject", back_populates="topics")
    notes = relationship("Note", back_populates="topic")

class Note(Base):
    __tablename__ = "note"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    topic_id = Column(Integer, ForeignKey("topic.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    file_url = Column(String(1024), nullable=True)
    file_size = Column(Integer, nullable=True)
    min_tier = Column(SAEnum(TierEnum, name="tier_enum"), nullable=False,
                      server_default=TierEnum.starter.value, default=TierEnum.starter)
    view_count = Column(Integer, nullable=False, server_default='0', default=0)
    download_count = Column(Integer, nullable=False, server_default='0', default=0)
    is_active = Column(Boolean, nullable=False, server_default='true', default=True)
    created_by = Column(Integer, ForeignKey("user.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now())

    topic = relationship("Topic", back_populates="notes")

# Entitlement Models
class Enrollment(Base):
    __tablename__ = "enrollment"
    __table_args__ = (
        Index("ix_enrollment_lookup", "user_id", "grade", "stream", "medium", "is_active"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("user.id"), nullable=False)
    grade = Column(SAEnum(GradeLevelEnum, name="grade_level_enum"), nullable=False)
    stream = Column(SAEnum(StreamEnum, name="stream_enum"), nullable=False)
    medium = Column(SAEnum(MediumEnum, name="medium_enum"), nullable=False)
    tier = Column(SAEnum(TierEnum, name="tier_enum"), nullable=False)
    is_active = Column(Boolean, nullable=False, server_default='true', default=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    payment_order_id = Column(String(100), nullable=True)
    access_code = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="enrollments")
    subject_selection = relationship("UserSubjectSelection", back_populates="enrollment", uselist=False)

class UserSubjectSelection(Base):
    __tablename__ = "user_subject_selection"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("user.id"), nullable=False, index=True)
    enrollment_id = Column(Integer, ForeignKey("enrollment.id"), nullable=False, unique=True)
    subject_1 = Column(String(100), nullable=False)
    subject_2 = Column(String(100), nullable=False)
    subject_3 = Column(String(100), nullable=False)
    is_locked = Column(Boolean, nullable=False, server_default='false', default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    enrollment = relationship("Enrollment", back_populates="subject_selection")

# AI Credit Models
class AiCreditRecord(Base):
    __tablename__ = "ai_credit"
    __table_args__ = (
        UniqueConstraint("user_id", "month_year", name="uq_ai_credit_user_month"),
        CheckConstraint("credits_used >= 0", name="ck_ai_credit_used_non_negative"),
        CheckConstraint("strikes >= 0", name="ck_ai_credit_strikes_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("user.id"), nullable=False, index=True)
    enrollment_id = Column(Integer, ForeignKey("enrollment.id"), nullable=True)
    month_year = Column(String(7), nullable=False)  # YYYY-MM
    credits_used = Column(Integer, nullable=False, server_default='0', default=0)
    credits_limit = Column(Integer, nullable=False)
    strikes = Column(Integer, nullable=False, server_default='0', default=0)
    is_suspended = Column(Boolean, nullable=False, server_default='false', default=False)
    suspended_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="credit_records")

    @property
    def remaining(self) -> int:
        return max(self.credits_limit - self.credits_used, 0)

class AiChatMessage(Base):
    __tablename__ = "ai_chat_message"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("user.id"), nullable=False, index=True)
    enrollment_id = Column(Integer, ForeignKey("enrollment.id"), nullable=True)
    role = Column(SAEnum(ChatRoleEnum, name="chat_role_enum"), nullable=False)
    content = Column(Text, nullable=False)
    word_count = Column(Integer, nullable=True)  # NULL for assistant replies, which are never charged
    created_at = Column(DateTime(timezone=True), server_default=func.now())

# Audit Models
class DownloadLog(Base):
    __tablename__ = "download_log"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("user.id"), nullable=False, index=True)
    note_id = Column(Integer, ForeignKey("note.id"), nullable=False, index=True)
    order_id = Column(String(16), nullable=False, index=True)
    ip_address = Column(String(64), nullable=True)
    downloaded_at = Column(DateTime(timezone=True), server_default=func.now())
