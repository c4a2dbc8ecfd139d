# Schemas package for Pydantic models
from .user import UserRead
from .auth import TokenData, LoginRequest, LoginResponse, LogoutResponse
from .content import NoteAccessRequest, SignedAccessGrantResponse, Watermark
from .chat import ChatHistoryEntry, ChatRequest, ChatResponse, CreditUsage
from .credits import CreditBalanceResponse, CreditRecordRead, SuspensionUpdate
from .session import SessionStateRead, RouteCheckRequest, RouteCheckResponse

__all__ = [
    "UserRead",
    "TokenData", "LoginRequest", "LoginResponse", "LogoutResponse",
    "NoteAccessRequest", "SignedAccessGrantResponse", "Watermark",
    "ChatHistoryEntry", "ChatRequest", "ChatResponse", "CreditUsage",
    "CreditBalanceResponse", "CreditRecordRead", "SuspensionUpdate",
    "SessionStateRead", "RouteCheckRequest", "RouteCheckResponse",
]
