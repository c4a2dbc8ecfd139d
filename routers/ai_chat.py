"""
AI study assistant routes: metered chat and the monthly credit balance.
"""
from typing import Optional
from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from core.security import get_current_active_user
from db_config import get_db
from models.models import User
from schemas.chat import ChatRequest, ChatResponse, CreditUsage
from schemas.credits import CreditBalanceResponse
from services.abuse_detection import AbuseDetector, get_abuse_detector
from services.ai_manager import AIManager, get_ai_manager
from services.chat_service import ChatService

router = APIRouter(prefix="/ai-chat", tags=["AI Chat"])


@router.post("", response_model=ChatResponse, response_model_by_alias=True)
async def send_message(
    payload: Optional[ChatRequest] = Body(None),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
    ai: AIManager = Depends(get_ai_manager),
    detector: AbuseDetector = Depends(get_abuse_detector),
):
    """
    Send one message to the assistant.

    The message costs one credit per word and is charged before the reply is
    generated; the reply itself is free.
    """
    payload = payload or ChatRequest()
    service = ChatService(db, ai, detector)
    reply = await service.send(
        current_user,
        payload.message,
        [entry.model_dump() for entry in payload.conversation_history],
    )

    return ChatResponse(
        message=reply.message,
        credits=CreditUsage(
            used=reply.charge.used,
            limit=reply.charge.limit,
            remaining=reply.charge.remaining,
            words_cost=reply.charge.cost,
        ),
        strikes=reply.charge.strikes,
    )


@router.get("/credits", response_model=CreditBalanceResponse, response_model_by_alias=True)
async def get_credit_balance(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
    ai: AIManager = Depends(get_ai_manager),
    detector: AbuseDetector = Depends(get_abuse_detector),
):
    """Current month's credit balance. Does not create a credit record."""
    balance = ChatService(db, ai, detector).balance(current_user)
    return CreditBalanceResponse(
        eligible=balance.eligible,
        tier=balance.tier,
        tier_label=balance.tier_label,
        month_year=balance.month_year,
        used=balance.used,
        limit=balance.limit,
        remaining=balance.remaining,
        strikes=balance.strikes,
        is_suspended=balance.is_suspended,
    )
