"""
Centralized logging: rotating per-component log files, secret redaction and a
structured logger wrapper that accepts keyword context.
"""
import atexit
import gzip
import logging
import logging.handlers
import os
import re
import shutil
import sys
import threading
from pathlib import Path
from typing import Any, Dict

from pythonjsonlogger import jsonlogger
import structlog

from core.config import settings


# Logger names routed into each component file. Names listed in
# ISOLATED_LOGGERS do not propagate to the root handlers.
COMPONENT_LOGGERS = {
    "security": ("security_log_file", ["security", "auth"]),
    "ai": ("ai_log_file", ["ai", "ai_manager", "ai_chat", "gemini"]),
    "database": ("database_log_file", ["database", "sqlalchemy.engine", "alembic"]),
    "access": ("access_log_file", ["access", "uvicorn.access", "httpx"]),
    "content": ("content_log_file", ["content_gate", "credit_ledger", "admin_credits", "route_guard"]),
}
ISOLATED_LOGGERS = {"security", "auth", "ai", "ai_manager", "gemini"}

# Attributes LogRecord owns; structured context must not overwrite them.
RESERVED_RECORD_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class ComponentFilter(logging.Filter):
    """Make sure every record carries a ``component`` attribute."""

    def __init__(self, default_component: str = "app"):
        super().__init__()
        self.default_component = default_component

    def filter(self, record):
        if not hasattr(record, "component"):
            name = record.name
            if name.startswith(("uvicorn", "httpx")):
                record.component = "http"
            elif name.startswith(("sqlalchemy", "alembic")):
                record.component = "database"
            else:
                record.component = self.default_component
        return True


class SecurityFilter(logging.Filter):
    """Redact bearer tokens, signed URL tokens and credentials from records."""

    SENSITIVE_KEYS = {
        "password", "token", "secret", "key", "authorization",
        "credential", "jwt", "bearer", "session", "signed_url",
    }
    PATTERNS = [
        (re.compile(r"Bearer\s+[A-Za-z0-9\-_=]+\.[A-Za-z0-9\-_=]+\.[A-Za-z0-9\-_=]+"), "Bearer [REDACTED]"),
        (re.compile(r"([?&]token=)[^&\s\"']+"), r"\1[REDACTED]"),
        (re.compile(r"://[^:/\s]+:[^@/\s]+@"), "://[REDACTED]:[REDACTED]@"),
        (re.compile(r"\b[A-Za-z0-9]{40,}\b"), "[REDACTED]"),
    ]

    def filter(self, record):
        if isinstance(record.msg, str):
            record.msg = self._scrub(record.msg)
        if record.args:
            if isinstance(record.args, dict):
                record.args = self._scrub_mapping(record.args)
            else:
                record.args = tuple(self._scrub_value(arg) for arg in record.args)
        # Keyword context from StructuredLogger arrives as extra record attributes
        for name in set(vars(record)) - RESERVED_RECORD_ATTRS:
            if any(s in name.lower() for s in self.SENSITIVE_KEYS):
                setattr(record, name, "[REDACTED]")
            else:
                setattr(record, name, self._scrub_value(getattr(record, name)))
        return True

    def _scrub(self, message: str) -> str:
        for pattern, replacement in self.PATTERNS:
            message = pattern.sub(replacement, message)
        return message

    def _scrub_mapping(self, value: dict) -> dict:
        return {
            k: "[REDACTED]" if any(s in str(k).lower() for s in self.SENSITIVE_KEYS) else self._scrub_value(v)
            for k, v in value.items()
        }

    def _scrub_value(self, value: Any) -> Any:
        if isinstance(value, str):
            return self._scrub(value)
        if isinstance(value, dict):
            return self._scrub_mapping(value)
        return value


def _gzip_namer(name: str) -> str:
    return f"{name}.gz"


def _gzip_rotator(source: str, dest: str) -> None:
    try:
        with open(source, "rb") as f_in, gzip.open(dest, "wb") as f_out:
            shutil.copyfileobj(f_in, f_out)
        os.remove(source)
    except OSError as e:
        # Keep the uncompressed file if compression fails
        print(f"Warning: Failed to compress log file {source}: {e}", file=sys.stderr)
        os.replace(source, dest[:-3])


class CompressedTimedRotatingFileHandler(logging.handlers.TimedRotatingFileHandler):
    """Timed rotation that gzips rotated files."""

    def __init__(self, *args, compress_logs: bool = True, **kwargs):
        self.compress_logs = compress_logs
        super().__init__(*args, **kwargs)
        if compress_logs:
            self.namer = _gzip_namer
            self.rotator = _gzip_rotator


class CompressedRotatingFileHandler(logging.handlers.RotatingFileHandler):
    """Size-based rotation that gzips rotated files."""

    def __init__(self, *args, compress_logs: bool = True, **kwargs):
        self.compress_logs = compress_logs
        super().__init__(*args, **kwargs)
        if compress_logs:
            self.namer = _gzip_namer
            self.rotator = _gzip_rotator


class StructuredLogger:
    """Logger wrapper that turns keyword arguments into structured context."""

    def __init__(self, name: str, logger: logging.Logger):
        self.name = name
        self._logger = logger

    def _log(self, level: int, msg: str, *args, **kwargs):
        exc_info = kwargs.pop("exc_info", False)
        extra = kwargs.pop("extra", {}) or {}
        extra.setdefault("component", self.name)

        if kwargs:
            if settings.log_format == "json":
                # JsonFormatter serializes extra attributes as fields
                extra.update({k: v for k, v in kwargs.items() if k not in RESERVED_RECORD_ATTRS})
            else:
                context = ", ".join(f"{k}={v}" for k, v in kwargs.items())
                msg = f"{msg} [{context}]"

        self._logger.log(level, msg, *args, exc_info=exc_info, extra=extra)

    def debug(self, msg: str, *args, **kwargs):
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        self._log(logging.ERROR, msg, *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs):
        kwargs["exc_info"] = True
        self._log(logging.ERROR, msg, *args, **kwargs)

    def critical(self, msg: str, *args, **kwargs):
        self._log(logging.CRITICAL, msg, *args, **kwargs)


class CentralizedLogManager:
    """Singleton owning the root and component handlers."""

    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    instance = super().__new__(cls)
                    instance._initialized = False
                    cls._instance = instance
        return cls._instance

    def __init__(self):
        if self._initialized:
            return
        with self._lock:
            if self._initialized:
                return
            self._loggers: Dict[str, StructuredLogger] = {}
            self._handlers: Dict[str, logging.Handler] = {}
            self._log_directory = Path(settings.log_directory)
            if settings.enable_file_logging:
                self._log_directory.mkdir(parents=True, exist_ok=True)
            self._setup_root_logger()
            self._setup_component_loggers()
            self._initialized = True

    def _create_formatter(self, include_component: bool) -> logging.Formatter:
        if settings.log_format == "json":
            fmt = "%(asctime)s %(name)s %(levelname)s %(message)s"
            if include_component:
                fmt = "%(asctime)s %(name)s %(levelname)s %(component)s %(message)s"
            return jsonlogger.JsonFormatter(fmt=fmt, datefmt="%Y-%m-%dT%H:%M:%S")
        fmt = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        if include_component:
            fmt = "%(asctime)s - %(name)s - %(levelname)s - [%(component)s] - %(message)s"
        return logging.Formatter(fmt=fmt, datefmt="%Y-%m-%d %H:%M:%S")

    def _create_file_handler(self, log_file: str, level: int = logging.INFO) -> logging.Handler:
        file_path = str(self._log_directory / log_file)
        if settings.log_rotation_when == "size":
            handler = CompressedRotatingFileHandler(
                filename=file_path,
                maxBytes=settings.log_file_max_size_mb * 1024 * 1024,
                backupCount=settings.log_file_backup_count,
                compress_logs=settings.log_compression,
            )
        else:
            handler = CompressedTimedRotatingFileHandler(
                filename=file_path,
                when=settings.log_rotation_when,
                interval=settings.log_rotation_interval,
                backupCount=settings.log_file_backup_count,
                compress_logs=settings.log_compression,
            )
        handler.setLevel(level)
        handler.addFilter(ComponentFilter())
        handler.addFilter(SecurityFilter())
        handler.setFormatter(self._create_formatter(include_component=True))
        return handler

    def _setup_root_logger(self):
        root_logger = logging.getLogger()
        root_logger.handlers.clear()
        level = getattr(logging, settings.log_level.upper(), logging.INFO)
        root_logger.setLevel(level)

        console = logging.StreamHandler(sys.stdout)
        console.setLevel(level)
        console.addFilter(ComponentFilter())
        console.addFilter(SecurityFilter())
        console.setFormatter(self._create_formatter(include_component=False))
        root_logger.addHandler(console)
        self._handlers["console"] = console

        if settings.enable_file_logging:
            self._handlers["app"] = self._create_file_handler(settings.app_log_file)
            self._handlers["error"] = self._create_file_handler(settings.error_log_file, logging.ERROR)
            root_logger.addHandler(self._handlers["app"])
            root_logger.addHandler(self._handlers["error"])

    def _setup_component_loggers(self):
        if not settings.enable_file_logging:
            return

        for component, (file_setting, logger_names) in COMPONENT_LOGGERS.items():
            level = logging.INFO
            if component == "database" and not settings.enable_sql_logging:
                level = logging.WARNING
            handler = self._create_file_handler(getattr(settings, file_setting), level)
            self._handlers[component] = handler

            for logger_name in logger_names:
                logger = logging.getLogger(logger_name)
                logger.addHandler(handler)
                logger.setLevel(level)
                if logger_name in ISOLATED_LOGGERS:
                    logger.propagate = False

    def get_logger(self, name: str) -> StructuredLogger:
        if name not in self._loggers:
            self._loggers[name] = StructuredLogger(name, logging.getLogger(name))
        return self._loggers[name]

    def shutdown(self):
        for handler_name, handler in list(self._handlers.items()):
            try:
                handler.close()
            except Exception as e:
                print(f"Error closing handler {handler_name}: {e}", file=sys.stderr)
        self._handlers.clear()
        self._loggers.clear()
        logging.shutdown()
        type(self)._instance = None


def _to_stdlib_kwargs(logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Final structlog processor: hand the event to the stdlib logger of the same name."""
    component = event_dict.pop("logger", None)
    msg = str(event_dict.pop("event", ""))
    exc_info = event_dict.pop("exc_info", False)
    context = {k: v for k, v in event_dict.items() if k not in RESERVED_RECORD_ATTRS}

    extra = {"component": component} if component else {}
    if settings.log_format == "json":
        extra.update(context)
    elif context:
        msg = f"{msg} [{', '.join(f'{k}={v}' for k, v in context.items())}]"
    return {"msg": msg, "exc_info": exc_info, "extra": extra}


def _configure_structlog():
    # structlog loggers become thin fronts for stdlib loggers, so their events
    # reach the component handlers and pass through SecurityFilter
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            _to_stdlib_kwargs,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


_log_manager = None


def setup_logging() -> CentralizedLogManager:
    """Setup centralized logging system."""
    global _log_manager
    if _log_manager is None:
        _log_manager = CentralizedLogManager()
        _configure_structlog()
    return _log_manager


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger instance."""
    return setup_logging().get_logger(name)


def shutdown_logging():
    """Shutdown logging system gracefully."""
    global _log_manager
    if _log_manager is not None:
        _log_manager.shutdown()
        _log_manager = None


# Pre-configured logger instances for common components
app_logger = get_logger("app")
security_logger = get_logger("security")
database_logger = get_logger("database")


atexit.register(shutdown_logging)
