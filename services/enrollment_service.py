"""
Read-side entitlement lookups over the enrollment table.

Expiry is always evaluated against the clock at call time; an enrollment
whose ``expires_at`` has passed counts as expired even while ``is_active``
is still set.
"""
import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from sqlalchemy.orm import Session

from core.security import as_utc, utcnow
from models.models import Enrollment, GradeLevelEnum, MediumEnum, StreamEnum, User
from services.tier_ranking import tier_rank


class AccessCapability(enum.Enum):
    """Caller's standing for one content tuple, resolved once per request."""

    ADMIN = "admin"
    ENTITLED = "entitled"
    NOT_ENTITLED = "not_entitled"


@dataclass
class AccessDecision:
    capability: AccessCapability
    enrollment: Optional[Enrollment] = None


class EnrollmentService:
    """Enrollment queries with expiry evaluated lazily at access time."""

    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.clock = clock

    def is_expired(self, enrollment: Enrollment) -> bool:
        expires_at = as_utc(enrollment.expires_at)
        return expires_at is not None and expires_at < self.clock()

    def select_enrollment(self, candidates: Iterable[Enrollment]) -> Optional[Enrollment]:
        """
        Pick the single enrollment consulted for a decision.

        Unexpired rows win, highest tier first; if every row has expired the
        most recently created one is returned so the caller can report expiry.
        """
        candidates = list(candidates)
        if not candidates:
            return None

        live = [e for e in candidates if not self.is_expired(e)]
        if live:
            return max(live, key=lambda e: (tier_rank(e.tier), e.id))
        return max(candidates, key=lambda e: e.id)

    def active_enrollments(self, user_id: int) -> List[Enrollment]:
        return (
            self.db.query(Enrollment)
            .filter(Enrollment.user_id == user_id, Enrollment.is_active.is_(True))
            .all()
        )

    def find_for_content(
        self,
        user_id: int,
        grade: GradeLevelEnum,
        stream: StreamEnum,
        medium: MediumEnum,
    ) -> Optional[Enrollment]:
        """The enrollment gating one (grade, stream, medium) tuple, possibly expired."""
        candidates = (
            self.db.query(Enrollment)
            .filter(
                Enrollment.user_id == user_id,
                Enrollment.grade == grade,
                Enrollment.stream == stream,
                Enrollment.medium == medium,
                Enrollment.is_active.is_(True),
            )
            .all()
        )
        return self.select_enrollment(candidates)

    def find_current(self, user_id: int) -> Optional[Enrollment]:
        """Best live enrollment across all tuples, or None."""
        enrollment = self.select_enrollment(self.active_enrollments(user_id))
        if enrollment is None or self.is_expired(enrollment):
            return None
        return enrollment

    def resolve_capability(
        self,
        user: User,
        grade: GradeLevelEnum,
        stream: StreamEnum,
        medium: MediumEnum,
    ) -> AccessDecision:
        if user.is_admin:
            return AccessDecision(AccessCapability.ADMIN)

        enrollment = self.find_for_content(user.id, grade, stream, medium)
        if enrollment is None:
            return AccessDecision(AccessCapability.NOT_ENTITLED)
        return AccessDecision(AccessCapability.ENTITLED, enrollment)
