"""
Monthly AI credit ledger.

One record per (user, calendar month). Credits are whitespace-delimited words
of user input. Every mutation is a single conditional UPDATE so concurrent
submissions from the same user cannot overdraw the monthly limit or race a
suspension.

Record lifecycle within a month::

    Active(strikes 0..2) --abuse--> Active(strikes + 1)
    Active(strikes 2)    --abuse--> Suspended (balance burned, terminal)
    Active               --usage--> Active(balance 0)   # exhaustion is not suspension
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy import and_, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
import structlog

from core.config import settings
from core.exceptions import (
    AbuseWarningException,
    InsufficientCreditsException,
    ResourceNotFoundException,
    SuspendedException,
    TierIneligibleException,
)
from core.security import utcnow
from models.models import AiCreditRecord
from services.abuse_detection import AbuseDetector
from services.tier_ranking import TierLike, credits_for_tier

logger = structlog.get_logger("credit_ledger")


def month_key(now: datetime) -> str:
    """Calendar month key, ``YYYY-MM``."""
    return now.strftime("%Y-%m")


def count_words(text: str) -> int:
    """Credit cost of a message: its whitespace-delimited word count."""
    return len(text.split())


@dataclass
class ChargeResult:
    """Outcome of a successful submission."""

    record: AiCreditRecord
    cost: int

    @property
    def used(self) -> int:
        return self.record.credits_used

    @property
    def limit(self) -> int:
        return self.record.credits_limit

    @property
    def remaining(self) -> int:
        return self.record.remaining

    @property
    def strikes(self) -> int:
        return self.record.strikes


class CreditLedger:
    """Credit accounting, abuse strikes and suspension for one database session."""

    def __init__(
        self,
        db: Session,
        detector: AbuseDetector,
        clock: Callable[[], datetime] = utcnow,
        strike_threshold: Optional[int] = None,
    ):
        self.db = db
        self.detector = detector
        self.clock = clock
        self.strike_threshold = settings.abuse_strike_threshold if strike_threshold is None else strike_threshold

    def current_month(self) -> str:
        return month_key(self.clock())

    def get_record(self, user_id: int, month_year: Optional[str] = None) -> Optional[AiCreditRecord]:
        """Look up a record without creating it."""
        return (
            self.db.query(AiCreditRecord)
            .filter(
                AiCreditRecord.user_id == user_id,
                AiCreditRecord.month_year == (month_year or self.current_month()),
            )
            .first()
        )

    def ensure_eligible(self, tier: TierLike) -> int:
        """Return the tier's monthly allotment, rejecting tiers without AI access."""
        limit = credits_for_tier(tier)
        if limit <= 0:
            raise TierIneligibleException()
        return limit

    def resolve_record(self, user_id: int, tier: TierLike, enrollment_id: Optional[int] = None) -> AiCreditRecord:
        """
        Fetch this month's record, creating it on first use.

        The limit is snapshotted from ``tier`` at creation; later tier changes
        within the month do not alter an existing record.
        """
        limit = self.ensure_eligible(tier)
        month_year = self.current_month()

        record = self.get_record(user_id, month_year)
        if record is not None:
            return record

        record = AiCreditRecord(
            user_id=user_id,
            enrollment_id=enrollment_id,
            month_year=month_year,
            credits_used=0,
            credits_limit=limit,
            strikes=0,
            is_suspended=False,
        )
        self.db.add(record)
        try:
            self.db.commit()
        except IntegrityError:
            # A concurrent request created this month's record first
            self.db.rollback()
            record = self.get_record(user_id, month_year)
            if record is None:
                raise
            return record

        self.db.refresh(record)
        logger.info("Credit record created", user_id=user_id, month_year=month_year, credits_limit=limit)
        return record

    def submit(
        self,
        user_id: int,
        tier: TierLike,
        message: str,
        enrollment_id: Optional[int] = None,
    ) -> ChargeResult:
        """
        Meter one message.

        Raises:
            TierIneligibleException: tier has no AI allotment (nothing is created).
            SuspendedException: record is, or just became, suspended.
            AbuseWarningException: message flagged, strikes below threshold.
            InsufficientCreditsException: cost exceeds the remaining balance.
        """
        record = self.resolve_record(user_id, tier, enrollment_id)

        if record.is_suspended:
            raise SuspendedException(strikes=record.strikes)

        if self.detector(message):
            self._register_strike(record)

        cost = count_words(message)
        self._charge(record, cost)
        return ChargeResult(record=record, cost=cost)

    def _register_strike(self, record: AiCreditRecord) -> None:
        """Add a strike and always raise: a warning, or suspension at the threshold."""
        result = self.db.execute(
            update(AiCreditRecord)
            .where(AiCreditRecord.id == record.id, AiCreditRecord.is_suspended.is_(False))
            .values(strikes=AiCreditRecord.strikes + 1, updated_at=self.clock())
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        self.db.refresh(record)

        if result.rowcount == 0:
            raise SuspendedException(strikes=record.strikes)

        logger.warning("Abuse pattern detected", user_id=record.user_id,
                       month_year=record.month_year, strikes=record.strikes)

        if record.strikes >= self.strike_threshold:
            self.suspend(record)
            raise SuspendedException(strikes=record.strikes, newly_suspended=True)

        raise AbuseWarningException(
            strikes=record.strikes,
            remaining_warnings=self.strike_threshold - record.strikes,
        )

    def _charge(self, record: AiCreditRecord, cost: int) -> None:
        """Atomically add ``cost`` if the record is live and the balance covers it."""
        result = self.db.execute(
            update(AiCreditRecord)
            .where(
                AiCreditRecord.id == record.id,
                AiCreditRecord.is_suspended.is_(False),
                AiCreditRecord.credits_used + cost <= AiCreditRecord.credits_limit,
            )
            .values(credits_used=AiCreditRecord.credits_used + cost, updated_at=self.clock())
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        self.db.refresh(record)

        if result.rowcount == 1:
            logger.info("Credits charged", user_id=record.user_id, month_year=record.month_year,
                        cost=cost, credits_used=record.credits_used, credits_limit=record.credits_limit)
            return

        if record.is_suspended:
            raise SuspendedException(strikes=record.strikes)
        raise InsufficientCreditsException(
            required=cost,
            remaining=record.remaining,
            credits_used=record.credits_used,
            credits_limit=record.credits_limit,
        )

    def suspend(self, record: AiCreditRecord) -> AiCreditRecord:
        """Suspend for the rest of the month and burn the remaining balance."""
        self.db.execute(
            update(AiCreditRecord)
            .where(AiCreditRecord.id == record.id, AiCreditRecord.is_suspended.is_(False))
            .values(
                is_suspended=True,
                suspended_at=self.clock(),
                credits_used=AiCreditRecord.credits_limit,
                updated_at=self.clock(),
            )
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        self.db.refresh(record)
        logger.warning("AI access suspended", user_id=record.user_id,
                       month_year=record.month_year, strikes=record.strikes)
        return record

    def unsuspend(self, record: AiCreditRecord) -> AiCreditRecord:
        """Lift a suspension. Burned credits stay burned."""
        self.db.execute(
            update(AiCreditRecord)
            .where(AiCreditRecord.id == record.id)
            .values(is_suspended=False, suspended_at=None, updated_at=self.clock())
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        self.db.refresh(record)
        logger.info("AI suspension lifted", user_id=record.user_id, month_year=record.month_year)
        return record

    def set_suspension(self, record_id: int, suspend: bool) -> AiCreditRecord:
        record = self.db.get(AiCreditRecord, record_id)
        if record is None:
            raise ResourceNotFoundException(detail="Credit record not found", code="CREDIT_RECORD_NOT_FOUND")
        return self.suspend(record) if suspend else self.unsuspend(record)

    def flagged_records(self, month_year: Optional[str] = None) -> List[AiCreditRecord]:
        """Records with strikes or a suspension for a month, worst first."""
        return (
            self.db.query(AiCreditRecord)
            .filter(
                and_(
                    AiCreditRecord.month_year == (month_year or self.current_month()),
                    or_(AiCreditRecord.is_suspended.is_(True), AiCreditRecord.strikes > 0),
                )
            )
            .order_by(AiCreditRecord.strikes.desc(), AiCreditRecord.id)
            .all()
        )
