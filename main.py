"""
FastAPI main application entry point.
"""

import json
import os
import uvicorn
from sqlalchemy.exc import SQLAlchemyError

# Import logging system first
from core.logging import setup_logging, get_logger, database_logger

# Setup logging early
setup_logging()
logger = get_logger("main")

from db_config import Base, SessionLocal, engine
from models.models import AppRoleEnum, User, UserRole
from app import app
from core.security import get_password_hash
from core.config import settings


def seed_default_admin(db) -> None:
    """Create the configured super admin account, or reset its password when asked."""
    admin_username = settings.default_admin_username
    admin_email = settings.default_admin_email
    admin_password = settings.default_admin_password
    if not (admin_username and admin_email and admin_password):
        return

    admin_user = db.query(User).filter(User.username == admin_username).first()
    if not admin_user:
        logger.info("Creating default admin user", username=admin_username)
        admin_user = User(
            username=admin_username,
            email=admin_email,
            password_hash=get_password_hash(admin_password),
            full_name="Admin User",
            is_active=True,
        )
        admin_user.roles.append(UserRole(role=AppRoleEnum.super_admin))
        db.add(admin_user)
        db.commit()
        db.refresh(admin_user)
        logger.info("Default admin user created successfully", user_id=admin_user.id)
    elif settings.force_reset_password_admin:
        logger.info("Resetting admin user password", username=admin_username)
        admin_user.password_hash = get_password_hash(admin_password)
        db.commit()
        logger.info("Admin user password reset successfully")


@app.on_event("startup")
async def startup_db_client():
    """Initialize database and default users on startup."""
    logger.info("Starting database initialization")

    if settings.auto_create_tables:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables ensured")

    db = SessionLocal()
    try:
        seed_default_admin(db)
        logger.info("Database initialization completed successfully")
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Error initializing database", error=str(e), exc_info=True)
        database_logger.error("Database initialization failed", error=str(e), exc_info=True)
    finally:
        db.close()


# Run the application
if __name__ == "__main__":
    # Export OpenAPI schema to a JSON file
    os.makedirs("cache", exist_ok=True)
    output_path = "cache/openapi.json"
    with open(output_path, "w") as f:
        json.dump(app.openapi(), f, indent=2)
    logger.info("OpenAPI schema successfully exported", output_path=output_path)

    logger.info("Starting uvicorn server", host="0.0.0.0", port=8000)
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=False,
    )
