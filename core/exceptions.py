"""
Exception hierarchy and global exception handlers.

Every error response shares one envelope: ``{"error": <message>,
"code": <MACHINE_CODE>, ...extra}`` so clients can branch on ``code`` and
render actionable messages from the extra fields without a second request.
"""
import traceback
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
import structlog

logger = structlog.get_logger("exceptions")


class APIException(Exception):
    """Base API exception class."""

    def __init__(
        self,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail: str = "Internal server error",
        code: str = "INTERNAL_ERROR",
        extra: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail
        self.code = code
        self.extra = extra or {}
        self.headers = headers or {}

    def to_payload(self) -> Dict[str, Any]:
        return {"error": self.detail, "code": self.code, **self.extra}


class AuthenticationException(APIException):
    """Missing or invalid credential. Never says which part failed."""

    def __init__(self, detail: str = "Authentication failed", code: str = "AUTH_FAILED"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            code=code,
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationException(APIException):
    """Caller is known but not entitled."""

    def __init__(
        self,
        detail: str = "Insufficient permissions",
        code: str = "FORBIDDEN",
        extra: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail, code=code, extra=extra)


class BadRequestException(APIException):
    """Malformed or incomplete request body."""

    def __init__(self, detail: str = "Bad request", code: str = "BAD_REQUEST"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail, code=code)


class ResourceNotFoundException(APIException):
    """Resource not found exception."""

    def __init__(self, detail: str = "Resource not found", code: str = "NOT_FOUND"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail, code=code)


class DataIntegrityException(APIException):
    """Orphaned content references. Indicates an authoring bug, not a user error."""

    def __init__(
        self,
        detail: str = "Content structure error",
        code: str = "STRUCTURE_ERROR",
        status_code: int = status.HTTP_404_NOT_FOUND,
    ):
        super().__init__(status_code=status_code, detail=detail, code=code)


class UpstreamServiceException(APIException):
    """Storage or AI backend failure. Single attempt, no retry."""

    def __init__(
        self,
        detail: str = "Service temporarily unavailable",
        code: str = "SERVICE_UNAVAILABLE",
        status_code: int = status.HTTP_502_BAD_GATEWAY,
        provider: Optional[str] = None,
    ):
        super().__init__(status_code=status_code, detail=detail, code=code)
        self.provider = provider


class AIServiceException(UpstreamServiceException):
    """AI backend failure or misconfiguration."""

    def __init__(
        self,
        detail: str = "AI service temporarily unavailable",
        code: str = "SERVICE_UNAVAILABLE",
        status_code: int = status.HTTP_502_BAD_GATEWAY,
        provider: Optional[str] = None,
    ):
        super().__init__(detail=detail, code=code, status_code=status_code, provider=provider)


# --- Content gate -----------------------------------------------------------

class NoteNotFoundException(ResourceNotFoundException):
    def __init__(self):
        super().__init__(detail="Note not found", code="NOTE_NOT_FOUND")


class NoteInactiveException(AuthorizationException):
    def __init__(self):
        super().__init__(detail="Note is not available", code="NOTE_INACTIVE")


class NoFileException(ResourceNotFoundException):
    def __init__(self):
        super().__init__(detail="No file associated with this note", code="NO_FILE")


class NoEnrollmentException(AuthorizationException):
    def __init__(self, detail: str = "No enrollment found for this content", details: Optional[dict] = None):
        extra = {"details": details} if details else None
        super().__init__(detail=detail, code="NO_ENROLLMENT", extra=extra)


class EnrollmentExpiredException(AuthorizationException):
    def __init__(self):
        super().__init__(detail="Your enrollment has expired", code="ENROLLMENT_EXPIRED")


class TierInsufficientException(AuthorizationException):
    def __init__(self, user_tier: Optional[str], required_tier: Optional[str]):
        super().__init__(
            detail="Your tier does not have access to this content",
            code="TIER_INSUFFICIENT",
            extra={"details": {"userTier": user_tier, "requiredTier": required_tier}},
        )
        self.user_tier = user_tier
        self.required_tier = required_tier


# --- Credit ledger ----------------------------------------------------------

class TierIneligibleException(AuthorizationException):
    def __init__(self):
        super().__init__(
            detail="AI Assistant is only available for Gold and Platinum members",
            code="TIER_INELIGIBLE",
        )


class SuspendedException(AuthorizationException):
    def __init__(self, strikes: int, newly_suspended: bool = False):
        if newly_suspended:
            detail = ("Your AI access has been suspended for the remainder of this month "
                      "due to repeated policy violations")
        else:
            detail = "Your AI access is suspended for this month due to policy violations"
        super().__init__(detail=detail, code="SUSPENDED", extra={"strikes": strikes})
        self.strikes = strikes


class AbuseWarningException(APIException):
    def __init__(self, strikes: int, remaining_warnings: int):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(f"Your message was flagged as inappropriate. You have {remaining_warnings} "
                    f"warning(s) remaining before suspension."),
            code="ABUSE_WARNING",
            extra={"strikes": strikes, "remainingWarnings": remaining_warnings},
        )
        self.strikes = strikes
        self.remaining_warnings = remaining_warnings


class InsufficientCreditsException(AuthorizationException):
    def __init__(self, required: int, remaining: int, credits_used: int, credits_limit: int):
        super().__init__(
            detail="Insufficient credits for this message",
            code="INSUFFICIENT_CREDITS",
            extra={
                "required": required,
                "remaining": remaining,
                "creditsUsed": credits_used,
                "creditsLimit": credits_limit,
            },
        )
        self.required = required
        self.remaining = remaining


def _request_context(request: Request) -> dict:
    return {
        "path": str(request.url.path),
        "method": request.method,
        "client_host": request.client.host if request.client else None,
    }


async def api_exception_handler(request: Request, exc: APIException) -> JSONResponse:
    """Handle custom API exceptions."""
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        "API exception occurred",
        exception_type=type(exc).__name__,
        status_code=exc.status_code,
        code=exc.code,
        detail=exc.detail,
        **_request_context(request),
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload(), headers=exc.headers)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTP exceptions."""
    logger.warning(
        "HTTP exception occurred",
        status_code=exc.status_code,
        detail=exc.detail,
        **_request_context(request),
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail, "code": "HTTP_ERROR"},
        headers=exc.headers,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation errors."""
    logger.warning("Validation error occurred", errors=exc.errors(), **_request_context(request))
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "Request validation failed",
            "code": "VALIDATION_ERROR",
            "details": jsonable_errors(exc),
        },
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may hold exception instances that JSONResponse cannot encode
    return [{k: v for k, v in error.items() if k != "ctx"} for error in exc.errors()]


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Handle SQLAlchemy database exceptions."""
    logger.error(
        "Database error occurred",
        exception_type=type(exc).__name__,
        error_detail=str(exc),
        **_request_context(request),
    )
    if isinstance(exc, IntegrityError):
        status_code, detail = status.HTTP_400_BAD_REQUEST, "Database constraint violation"
    else:
        status_code, detail = status.HTTP_500_INTERNAL_SERVER_ERROR, "Database operation failed"
    return JSONResponse(status_code=status_code, content={"error": detail, "code": "DATABASE_ERROR"})


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle all other uncaught exceptions."""
    logger.error(
        "Unhandled exception occurred",
        exception_type=type(exc).__name__,
        error_detail=str(exc),
        traceback=traceback.format_exc(),
        **_request_context(request),
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error", "code": "INTERNAL_ERROR"},
    )


def setup_exception_handlers(app):
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(APIException, api_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
