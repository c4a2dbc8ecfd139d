from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Import logging system
from core.config import settings
from core.logging import setup_logging, get_logger, app_logger
from core.exceptions import setup_exception_handlers
from core.middleware import setup_middleware

# Import routers
from routers import admin_credits, ai_chat, auth, health, serve_pdf, session

# Initialize logging system early
setup_logging()
logger = get_logger("fastapi")

# Create FastAPI app instance
app = FastAPI(
    title=settings.app_name,
    description="Tiered note access, metered AI study assistant and session state for the Notebase client",
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Setup global exception handlers
setup_exception_handlers(app)

# Setup security middleware
middleware_config = {
    "enable_security_headers": settings.enable_security_headers,
    "enable_request_logging": settings.enable_request_logging,
    "enable_size_limit": settings.enable_request_size_limit,
    "max_request_size": settings.max_request_size_bytes,
    "enable_timeout": True,
    "timeout_seconds": settings.request_timeout_seconds,
}
setup_middleware(app, middleware_config)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=False,
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)

# Include routers
app.include_router(auth.router)
app.include_router(serve_pdf.router)
app.include_router(ai_chat.router)
app.include_router(admin_credits.router)
app.include_router(session.router)
if settings.enable_health_checks:
    app.include_router(health.router)


# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint providing basic API information.
    """
    logger.info("Root endpoint accessed")
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "docs": "/docs",
        "health_checks": {
            "basic": "/health",
            "detailed": "/health/detailed",
            "database": "/health/database",
            "system": "/health/system",
        },
    }


# Application lifecycle events
@app.on_event("startup")
async def startup_event():
    """Handle application startup."""
    app_logger.info("FastAPI application starting up", component="startup")


@app.on_event("shutdown")
async def shutdown_event():
    """Handle application shutdown."""
    app_logger.info("FastAPI application shutting down", component="shutdown")
