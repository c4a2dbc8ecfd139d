"""
Application configuration using Pydantic settings.
"""
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database settings
    db_host: str = "localhost"
    db_port: str = "5432"
    db_user: str = "user"
    db_password: str = "password"
    db_name: str = "notebase"
    database_url_override: Optional[str] = None  # Full SQLAlchemy URL, wins over db_* parts
    auto_create_tables: bool = False  # create_all on startup; migrations own the schema otherwise

    # JWT settings
    jwt_secret_key: str = "change-this-in-production"
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 60

    # Storage settings
    storage_url: Optional[str] = None  # e.g. https://<project>.supabase.co/storage/v1
    storage_service_key: Optional[str] = None
    storage_bucket: str = "notes"
    signed_url_expires_in: int = 300  # 5 minutes
    storage_request_timeout_seconds: float = 10.0

    # AI settings
    ai_provider: str = "agent"  # agent or gemini
    ai_agent_url: Optional[str] = None  # agent base URL; /api/v1/chat/completions is appended
    ai_agent_access_key: Optional[str] = None
    ai_request_timeout_seconds: float = 60.0
    ai_history_window: int = 10
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.0-flash"

    # Credit ledger settings
    tier_credits_starter: int = 0        # Silver
    tier_credits_standard: int = 10000   # Gold
    tier_credits_lifetime: int = 100000  # Platinum
    abuse_strike_threshold: int = 3

    # Default user settings
    default_admin_username: Optional[str] = None
    default_admin_email: Optional[str] = None
    default_admin_password: Optional[str] = None
    force_reset_password_admin: bool = False

    # Application settings
    app_name: str = "Notebase Backend API"
    app_version: str = "0.1.0"
    debug: bool = False

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    enable_request_logging: bool = True
    enable_sql_logging: bool = False
    enable_file_logging: bool = True
    log_directory: str = "logs"
    log_compression: bool = True
    log_rotation_when: str = "midnight"  # size, or a TimedRotatingFileHandler "when" value
    log_rotation_interval: int = 1
    log_file_max_size_mb: int = 10
    log_file_backup_count: int = 14
    app_log_file: str = "app.log"
    error_log_file: str = "error.log"
    security_log_file: str = "security.log"
    ai_log_file: str = "ai.log"
    database_log_file: str = "database.log"
    access_log_file: str = "access.log"
    content_log_file: str = "content.log"

    # Security settings
    enable_security_headers: bool = True
    enable_request_size_limit: bool = True
    max_request_size_bytes: int = 1 * 1024 * 1024  # 1MB, bodies are small JSON
    request_timeout_seconds: int = 120
    cors_allow_origins: list[str] = ["*"]

    # Monitoring settings
    enable_health_checks: bool = True

    @property
    def database_url(self) -> str:
        """Construct database URL from individual components."""
        if self.database_url_override:
            return self.database_url_override
        return f"postgresql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


# Global settings instance
settings = Settings()
