#!/usr/bin/env python3
"""
Production run script for the Notebase backend.
"""
import os
import signal
import sys
from pathlib import Path

# Add the project root to the Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

import uvicorn
from core.logging import setup_logging, get_logger
from core.config import settings

# Setup logging first
setup_logging()
logger = get_logger("production")

REQUIRED_VARS = ["JWT_SECRET_KEY", "STORAGE_URL", "STORAGE_SERVICE_KEY"]


def handle_signal(signum, frame):
    """Handle shutdown signals gracefully."""
    logger.info("Received shutdown signal", signal=signum)
    sys.exit(0)


def missing_configuration() -> list:
    missing = [var for var in REQUIRED_VARS if not os.getenv(var)]
    if not settings.database_url_override and not os.getenv("DB_HOST"):
        missing.append("DB_HOST or DATABASE_URL_OVERRIDE")
    if settings.ai_provider == "gemini" and not settings.gemini_api_key:
        missing.append("GEMINI_API_KEY")
    if settings.ai_provider == "agent" and not (settings.ai_agent_url and settings.ai_agent_access_key):
        missing.append("AI_AGENT_URL and AI_AGENT_ACCESS_KEY")
    return missing


def main():
    """Main entry point for production deployment."""
    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    logger.info("Starting Notebase backend", version=settings.app_version,
                environment="production", debug=settings.debug)

    missing = missing_configuration()
    if missing:
        logger.error("Missing required environment variables", missing=missing)
        sys.exit(1)

    # Log configuration (without sensitive data)
    logger.info("Configuration loaded",
                database_host=settings.db_host,
                database_name=settings.db_name,
                storage_bucket=settings.storage_bucket,
                ai_provider=settings.ai_provider,
                log_level=settings.log_level,
                enable_security_headers=settings.enable_security_headers)

    uvicorn_config = {
        "app": "main:app",
        "host": "0.0.0.0",
        "port": int(os.getenv("PORT", "8000")),
        "workers": int(os.getenv("WORKERS", "1")),
        "log_level": settings.log_level.lower(),
        "access_log": settings.enable_request_logging,
        "reload": False,  # Never reload in production
    }

    ssl_keyfile = os.getenv("SSL_KEYFILE")
    ssl_certfile = os.getenv("SSL_CERTFILE")
    if ssl_keyfile and ssl_certfile:
        uvicorn_config.update({"ssl_keyfile": ssl_keyfile, "ssl_certfile": ssl_certfile})
        logger.info("SSL enabled", keyfile=ssl_keyfile, certfile=ssl_certfile)

    logger.info("Starting uvicorn server", port=uvicorn_config["port"], workers=uvicorn_config["workers"])
    uvicorn.run(**uvicorn_config)


if __name__ == "__main__":
    main()
