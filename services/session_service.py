"""
Builds the route guard's session state from the store.
"""
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from core.security import utcnow
from models.models import User, UserSubjectSelection
from services.enrollment_service import EnrollmentService
from services.route_guard import SessionState


class SessionStateService:
    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.enrollments = EnrollmentService(db, clock)

    def build_state(self, user: Optional[User]) -> SessionState:
        if user is None:
            return SessionState(authenticated=False)

        live = [e for e in self.enrollments.active_enrollments(user.id)
                if not self.enrollments.is_expired(e)]

        has_subjects = False
        if live:
            has_subjects = (
                self.db.query(UserSubjectSelection)
                .filter(
                    UserSubjectSelection.user_id == user.id,
                    UserSubjectSelection.enrollment_id.in_([e.id for e in live]),
                )
                .first()
                is not None
            )

        return SessionState(
            authenticated=True,
            loading=False,
            roles=user.role_set,
            has_enrollment=bool(live),
            has_subjects=has_subjects,
        )
