"""
Database configuration module using centralized settings.
"""

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from core.config import settings
from core.logging import get_logger

logger = get_logger("database")

SQLALCHEMY_DATABASE_URL = settings.database_url


def _engine_options(url: str) -> dict:
    """Pool options per backend. SQLite is only used for local runs and tests."""
    if url.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection so every session sees the same in-memory database
            options["poolclass"] = StaticPool
        return options
    return {
        "pool_size": 10,
        "max_overflow": 20,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
    }


engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    echo=settings.enable_sql_logging,
    **_engine_options(SQLALCHEMY_DATABASE_URL),
)

logger.info("Database configuration loaded", backend=engine.url.get_backend_name(),
            host=engine.url.host, database=engine.url.database)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


# Dependency to get database session
def get_db():
    db = SessionLocal()
    try:
        logger.debug("Database session created")
        yield db
    except SQLAlchemyError as e:
        logger.error("Database session error", error=str(e), exc_info=True)
        db.rollback()
        raise
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
        logger.debug("Database session closed")
