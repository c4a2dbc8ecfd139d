"""
Security and request-logging middleware.
"""
import asyncio
import time
import uuid

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
import structlog

logger = structlog.get_logger("access")


def get_client_ip(request: Request) -> str:
    """Best-effort origin address: proxy headers first, then the socket peer."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    cf_ip = request.headers.get("CF-Connecting-IP")
    if cf_ip:
        return cf_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"

        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with a request id and timing."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        start_time = time.time()

        logger.info(
            "Request started",
            request_id=request_id,
            method=request.method,
            path=str(request.url.path),
            client_host=get_client_ip(request),
            user_agent=request.headers.get("User-Agent", "unknown"),
        )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                request_id=request_id,
                exception=str(e),
                process_time_ms=round((time.time() - start_time) * 1000, 2),
            )
            raise

        process_time_ms = round((time.time() - start_time) * 1000, 2)
        logger.info(
            "Request completed",
            request_id=request_id,
            status_code=response.status_code,
            process_time_ms=process_time_ms,
        )
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = str(process_time_ms)
        return response


class RequestSizeMiddleware(BaseHTTPMiddleware):
    """Reject request bodies above a fixed size."""

    def __init__(self, app, max_size: int = 1024 * 1024):
        super().__init__(app)
        self.max_size = max_size

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        content_length = request.headers.get("Content-Length")
        if content_length and content_length.isdigit() and int(content_length) > self.max_size:
            logger.warning(
                "Request body too large",
                content_length=int(content_length),
                max_size=self.max_size,
                client_host=get_client_ip(request),
            )
            return JSONResponse(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                content={
                    "error": f"Request body too large. Maximum size: {self.max_size} bytes",
                    "code": "PAYLOAD_TOO_LARGE",
                },
            )
        return await call_next(request)


class RequestTimeoutMiddleware(BaseHTTPMiddleware):
    """Enforce an upper bound on request processing time."""

    def __init__(self, app, timeout_seconds: int = 120):
        super().__init__(app)
        self.timeout_seconds = timeout_seconds

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            return await asyncio.wait_for(call_next(request), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.error(
                "Request timeout",
                timeout_seconds=self.timeout_seconds,
                path=str(request.url.path),
                method=request.method,
            )
            return JSONResponse(
                status_code=status.HTTP_504_GATEWAY_TIMEOUT,
                content={
                    "error": f"Request timeout after {self.timeout_seconds} seconds",
                    "code": "GATEWAY_TIMEOUT",
                },
            )


def setup_middleware(app, config: dict = None):
    """Setup all security middleware for the application."""
    config = config or {}

    # Last added runs first
    if config.get("enable_timeout", True):
        app.add_middleware(RequestTimeoutMiddleware, timeout_seconds=config.get("timeout_seconds", 120))

    if config.get("enable_size_limit", True):
        app.add_middleware(RequestSizeMiddleware, max_size=config.get("max_request_size", 1024 * 1024))

    if config.get("enable_request_logging", True):
        app.add_middleware(RequestLoggingMiddleware)

    if config.get("enable_security_headers", True):
        app.add_middleware(SecurityHeadersMiddleware)
