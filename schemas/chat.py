"""
AI chat request/response schemas.
"""
from typing import List, Optional
from pydantic import BaseModel, Field


class ChatHistoryEntry(BaseModel):
    role: str
    content: str


class ChatRequest(BaseModel):
    message: Optional[str] = None
    conversation_history: List[ChatHistoryEntry] = Field(default_factory=list, alias="conversationHistory")

    class Config:
        populate_by_name = True


class CreditUsage(BaseModel):
    used: int
    limit: int
    remaining: int
    words_cost: int = Field(..., alias="wordsCost")

    class Config:
        populate_by_name = True


class ChatResponse(BaseModel):
    message: str
    credits: CreditUsage
    strikes: int
