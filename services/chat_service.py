"""
AI chat orchestration: entitlement, metering, transcript storage and the
upstream completion call.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session
import structlog

from core.config import settings
from core.exceptions import BadRequestException, NoEnrollmentException
from core.security import utcnow
from models.models import AiChatMessage, ChatRoleEnum, Enrollment, User
from services.abuse_detection import AbuseDetector
from services.ai_manager import AIManager, ChatMessages
from services.credit_ledger import ChargeResult, CreditLedger
from services.enrollment_service import EnrollmentService
from services.tier_ranking import credits_for_tier, tier_label

logger = structlog.get_logger("chat_service")

CHAT_ROLES = {ChatRoleEnum.user.value, ChatRoleEnum.assistant.value}


@dataclass
class ChatReply:
    message: str
    charge: ChargeResult


@dataclass
class CreditBalance:
    eligible: bool
    tier: Optional[str]
    tier_label: Optional[str]
    month_year: str
    used: int
    limit: int
    remaining: int
    strikes: int
    is_suspended: bool


def build_prompt(
    history: Iterable[Dict[str, str]],
    message: str,
    tier,
    remaining: int,
    window: Optional[int] = None,
) -> ChatMessages:
    """
    Messages sent upstream: the tail of the client's history followed by the
    current message with a short membership note prepended.
    """
    window = window if window is not None else settings.ai_history_window
    recent = list(history)[-window:] if window > 0 else []

    messages = [
        {"role": entry["role"], "content": entry["content"]}
        for entry in recent
        if entry.get("role") in CHAT_ROLES
    ]
    context_note = f"[Context: {tier_label(tier)} member, {remaining:,} credits remaining this month]"
    messages.append({"role": ChatRoleEnum.user.value, "content": f"{context_note}\n\n{message}"})
    return messages


class ChatService:
    def __init__(
        self,
        db: Session,
        ai: AIManager,
        detector: AbuseDetector,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.ai = ai
        self.enrollments = EnrollmentService(db, clock)
        self.ledger = CreditLedger(db, detector, clock=clock)

    def _require_enrollment(self, user: User) -> Enrollment:
        enrollment = self.enrollments.find_current(user.id)
        if enrollment is None:
            raise NoEnrollmentException(detail="No active enrollment found")
        return enrollment

    async def send(
        self,
        user: User,
        message: Optional[str],
        history: Optional[List[Dict[str, str]]] = None,
    ) -> ChatReply:
        """
        Meter ``message`` against this month's credits and return the AI reply.

        Credits are charged before the upstream call and are not refunded if
        that call fails.
        """
        enrollment = self._require_enrollment(user)
        self.ledger.ensure_eligible(enrollment.tier)

        if not message or not message.strip():
            raise BadRequestException(detail="Message is required", code="MISSING_MESSAGE")

        charge = self.ledger.submit(user.id, enrollment.tier, message, enrollment_id=enrollment.id)
        self._store(user, enrollment, ChatRoleEnum.user, message, word_count=charge.cost)

        prompt = build_prompt(history or [], message, enrollment.tier, charge.remaining)
        reply = await self.ai.complete(prompt)

        self._store(user, enrollment, ChatRoleEnum.assistant, reply, word_count=None)
        logger.info("Chat reply delivered", user_id=user.id, cost=charge.cost,
                    credits_used=charge.used, credits_limit=charge.limit)
        return ChatReply(message=reply, charge=charge)

    def _store(self, user: User, enrollment: Enrollment, role: ChatRoleEnum,
               content: str, word_count: Optional[int]) -> None:
        self.db.add(AiChatMessage(
            user_id=user.id,
            enrollment_id=enrollment.id,
            role=role,
            content=content,
            word_count=word_count,
        ))
        self.db.commit()

    def balance(self, user: User) -> CreditBalance:
        """Current-month balance. Read only: no record is created."""
        month_year = self.ledger.current_month()
        enrollment = self.enrollments.find_current(user.id)
        tier = enrollment.tier.value if enrollment is not None else None
        allotment = credits_for_tier(tier)

        record = self.ledger.get_record(user.id, month_year) if enrollment is not None else None
        if record is not None:
            return CreditBalance(
                eligible=allotment > 0,
                tier=tier,
                tier_label=tier_label(tier),
                month_year=month_year,
                used=record.credits_used,
                limit=record.credits_limit,
                remaining=record.remaining,
                strikes=record.strikes,
                is_suspended=record.is_suspended,
            )

        return CreditBalance(
            eligible=allotment > 0,
            tier=tier,
            tier_label=tier_label(tier) if tier else None,
            month_year=month_year,
            used=0,
            limit=allotment,
            remaining=allotment,
            strikes=0,
            is_suspended=False,
        )
