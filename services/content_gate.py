"""
Tiered note access: decides whether a caller may open a note and, if so,
issues a short-lived signed URL plus watermark data.

Every check is terminal and runs in a fixed order; the first failing check
determines the error code returned to the client.
"""
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import structlog

from core.config import settings
from core.exceptions import (
    APIException,
    DataIntegrityException,
    EnrollmentExpiredException,
    NoEnrollmentException,
    NoFileException,
    NoteInactiveException,
    NoteNotFoundException,
    TierInsufficientException,
)
from core.file_utils import normalize_storage_path
from core.security import utcnow
from models.models import DownloadLog, Note, Subject, Topic, User
from services.enrollment_service import AccessCapability, EnrollmentService
from services.storage_service import SignedUrlError, StorageClient
from services.tier_ranking import meets_tier

logger = structlog.get_logger("content_gate")


@dataclass
class SignedAccessGrant:
    signed_url: str
    expires_in: int
    email: str
    order_id: str
    note_title: str


def new_order_id() -> str:
    """Fresh 8-character uppercase hex token embedded in each watermark."""
    return uuid.uuid4().hex[:8].upper()


def _enum_value(value):
    return getattr(value, "value", value)


class ContentGateService:
    """Runs the note access checks for one request."""

    def __init__(
        self,
        db: Session,
        storage: StorageClient,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.storage = storage
        self.clock = clock
        self.enrollments = EnrollmentService(db, clock)

    async def request_access(self, user: User, note_id: str, ip_address: str = "unknown") -> SignedAccessGrant:
        try:
            return await self._request_access(user, note_id, ip_address)
        except APIException:
            raise
        except Exception as e:
            logger.error("Unexpected error serving note", user_id=user.id, note_id=note_id,
                         exception_type=type(e).__name__, error=str(e))
            raise APIException(detail="Internal server error", code="INTERNAL_ERROR")

    async def _request_access(self, user: User, note_id: str, ip_address: str) -> SignedAccessGrant:
        note = self._load_note(note_id)
        topic, subject = self._load_hierarchy(note)

        try:
            decision = self.enrollments.resolve_capability(user, subject.grade, subject.stream, subject.medium)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Enrollment lookup failed", user_id=user.id, note_id=note.id, error=str(e))
            raise APIException(detail="Failed to verify access", code="ACCESS_CHECK_FAILED")

        if decision.capability is AccessCapability.NOT_ENTITLED:
            logger.info("Access denied, no enrollment", user_id=user.id, note_id=note.id)
            raise NoEnrollmentException(
                detail="You do not have an active enrollment for this content",
                details={
                    "grade": _enum_value(subject.grade),
                    "stream": _enum_value(subject.stream),
                    "medium": _enum_value(subject.medium),
                },
            )

        if decision.capability is AccessCapability.ENTITLED:
            enrollment = decision.enrollment
            if self.enrollments.is_expired(enrollment):
                logger.info("Access denied, enrollment expired", user_id=user.id,
                            note_id=note.id, enrollment_id=enrollment.id)
                raise EnrollmentExpiredException()

            if not meets_tier(enrollment.tier, note.min_tier):
                logger.info("Access denied, tier insufficient", user_id=user.id, note_id=note.id,
                            user_tier=_enum_value(enrollment.tier), required_tier=_enum_value(note.min_tier))
                raise TierInsufficientException(
                    user_tier=_enum_value(enrollment.tier),
                    required_tier=_enum_value(note.min_tier),
                )

        path = normalize_storage_path(note.file_url, self.storage.bucket)
        if not path:
            raise NoFileException()

        expires_in = settings.signed_url_expires_in
        try:
            signed_url = await self.storage.create_signed_url(path, expires_in)
        except SignedUrlError:
            raise
        except APIException as e:
            raise SignedUrlError() from e

        order_id = new_order_id()
        self._record_access(user, note, order_id, ip_address)

        logger.info("Note access granted", user_id=user.id, note_id=note.id, order_id=order_id,
                    capability=decision.capability.value)
        return SignedAccessGrant(
            signed_url=signed_url,
            expires_in=expires_in,
            email=user.email,
            order_id=order_id,
            note_title=note.title,
        )

    def _load_note(self, note_id: str) -> Note:
        try:
            key = int(note_id)
        except (TypeError, ValueError):
            raise NoteNotFoundException()

        note = self.db.get(Note, key)
        if note is None:
            raise NoteNotFoundException()
        if not note.is_active:
            raise NoteInactiveException()
        if not note.file_url:
            raise NoFileException()
        return note

    def _load_hierarchy(self, note: Note):
        topic = self.db.get(Topic, note.topic_id)
        if topic is None:
            logger.error("Note references a missing topic", note_id=note.id, topic_id=note.topic_id)
            raise DataIntegrityException(detail="Topic not found", code="TOPIC_NOT_FOUND")

        subject = self.db.get(Subject, topic.subject_id)
        if subject is None:
            logger.error("Topic references a missing subject", note_id=note.id,
                         topic_id=topic.id, subject_id=topic.subject_id)
            raise DataIntegrityException(detail="Subject not found", code="SUBJECT_NOT_FOUND")
        return topic, subject

    def _record_access(self, user: User, note: Note, order_id: str, ip_address: str) -> None:
        """Write the access log row and bump the download counter. Never fails the grant."""
        try:
            self.db.add(DownloadLog(
                user_id=user.id,
                note_id=note.id,
                order_id=order_id,
                ip_address=ip_address,
                downloaded_at=self.clock(),
            ))
            self.db.execute(
                update(Note)
                .where(Note.id == note.id)
                .values(download_count=Note.download_count + 1)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.warning("Failed to record note access", user_id=user.id, note_id=note.id,
                           order_id=order_id, error=str(e))
