"""
Health check and system monitoring endpoints.
"""
import time
from datetime import datetime, timezone
from typing import Any, Dict

import psutil
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import structlog

from core.config import settings
from db_config import get_db
from models.models import Note

router = APIRouter(prefix="/health", tags=["Health"])
logger = structlog.get_logger("health")


class HealthChecker:
    """Service for performing various health checks."""

    def __init__(self, db: Session = None):
        self.db = db

    def check_database(self) -> Dict[str, Any]:
        """Check database connectivity with a trivial query and a content count."""
        try:
            start_time = time.time()
            self.db.execute(text("SELECT 1")).fetchone()
            note_count = self.db.query(Note).count()
            response_time = (time.time() - start_time) * 1000

            return {
                "status": "healthy",
                "response_time_ms": round(response_time, 2),
                "note_count": note_count,
                "details": "Database connection successful",
            }
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Database health check failed", error=str(e))
            return {
                "status": "unhealthy",
                "error": type(e).__name__,
                "details": "Database connection failed",
            }

    def check_integrations(self) -> Dict[str, Any]:
        """Report whether storage and the AI backend are configured. No network calls."""
        ai_configured = (
            bool(settings.gemini_api_key) if settings.ai_provider == "gemini"
            else bool(settings.ai_agent_url and settings.ai_agent_access_key)
        )
        return {
            "storage": "configured" if settings.storage_url and settings.storage_service_key else "not_configured",
            "ai": {
                "provider": settings.ai_provider,
                "status": "configured" if ai_configured else "not_configured",
            },
        }

    def check_system_resources(self) -> Dict[str, Any]:
        """Check system resource usage."""
        try:
            cpu_percent = psutil.cpu_percent(interval=0.1)
            memory = psutil.virtual_memory()
            disk = psutil.disk_usage("/")

            return {
                "status": "healthy",
                "cpu_percent": cpu_percent,
                "memory": {
                    "total_gb": round(memory.total / (1024**3), 2),
                    "available_gb": round(memory.available / (1024**3), 2),
                    "percent_used": memory.percent,
                },
                "disk": {
                    "total_gb": round(disk.total / (1024**3), 2),
                    "free_gb": round(disk.free / (1024**3), 2),
                    "percent_used": round((disk.used / disk.total) * 100, 2),
                },
            }
        except (psutil.Error, OSError) as e:
            logger.error("System resource check failed", error=str(e))
            return {"status": "error", "error": str(e)}


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("", summary="Basic health check")
async def health_check():
    """
    Basic health check endpoint to verify the API is running.
    """
    return {
        "status": "ok",
        "timestamp": _timestamp(),
        "service": settings.app_name,
        "version": settings.app_version,
    }


@router.get("/database", summary="Database health check")
async def database_health_check(db: Session = Depends(get_db)):
    """
    Check database connectivity and performance.
    """
    result = HealthChecker(db).check_database()
    if result["status"] != "healthy":
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=result)
    return result


@router.get("/system", summary="System resources check")
async def system_health_check():
    """
    Check system resource usage (CPU, memory, disk).
    """
    return {
        "timestamp": _timestamp(),
        "system": HealthChecker().check_system_resources(),
    }


@router.get("/detailed", summary="Detailed health check")
async def detailed_health_check(db: Session = Depends(get_db)):
    """
    Database, integration configuration and system resources in one report.
    """
    checker = HealthChecker(db)
    checks = {
        "timestamp": _timestamp(),
        "service": settings.app_name,
        "version": settings.app_version,
        "database": checker.check_database(),
        "integrations": checker.check_integrations(),
        "system": checker.check_system_resources(),
    }

    overall_status = "healthy"
    if checks["database"]["status"] != "healthy":
        overall_status = "unhealthy"
    elif checks["integrations"]["storage"] != "configured" or checks["integrations"]["ai"]["status"] != "configured":
        overall_status = "degraded"
    else:
        system = checks["system"]
        if system["status"] == "healthy" and (
            system["cpu_percent"] > 90
            or system["memory"]["percent_used"] > 90
            or system["disk"]["percent_used"] > 90
        ):
            overall_status = "degraded"

    checks["overall_status"] = overall_status
    logger.info("Health check performed", status=overall_status)

    if overall_status == "unhealthy":
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=checks)
    return checks


@router.get("/liveness", summary="Liveness probe")
async def liveness_check():
    """
    Kubernetes-style liveness probe.
    """
    return {"status": "alive", "timestamp": _timestamp()}
