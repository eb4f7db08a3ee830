"""Logging for the storefront ordering service.

Two layers:
    stdlib logging   handlers only: stdout, a rotating application log and
                     a rotating error log under LOG_DIR
    structlog        event dicts with bound request context, rendered as
                     JSON in production/staging and through Rich elsewhere

Levels default per environment (PROTEAN_ENV, ENVIRONMENT or ENV) and can be
forced with LOG_LEVEL.
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Any

import structlog

LOG_FILE_PREFIX = "storefront"
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5

_DEFAULT_LEVELS = {
    "production": "INFO",
    "staging": "INFO",
    "development": "DEBUG",
    "test": "WARNING",
}
_STRUCTURED_ENVIRONMENTS = ("production", "staging")
_QUIET_LOGGERS = ("protean", "asyncio", "sqlalchemy.engine", "uvicorn.access")


def current_environment() -> str:
    for name in ("PROTEAN_ENV", "ENVIRONMENT", "ENV"):
        if os.getenv(name):
            return os.environ[name].lower()
    return "development"


def log_level(environment: str | None = None) -> str:
    environment = environment or current_environment()
    return os.getenv("LOG_LEVEL", _DEFAULT_LEVELS.get(environment, "INFO")).upper()


def log_dir() -> Path:
    return Path(os.getenv("LOG_DIR", "logs"))


def _rotating_handler(path: Path, level) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        filename=path,
        maxBytes=MAX_LOG_BYTES,
        backupCount=LOG_BACKUPS,
        encoding="utf-8",
    )
    handler.setLevel(level)
    return handler


def _configure_handlers(level: str) -> None:
    directory = log_dir()
    directory.mkdir(parents=True, exist_ok=True)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)

    root = logging.getLogger()
    root.handlers = [
        console,
        _rotating_handler(directory / f"{LOG_FILE_PREFIX}.log", level),
        _rotating_handler(directory / f"{LOG_FILE_PREFIX}_error.log", logging.ERROR),
    ]
    root.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _renderer(environment: str):
    if environment in _STRUCTURED_ENVIRONMENTS:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=True,
        exception_formatter=structlog.dev.RichTracebackFormatter(show_locals=True, max_frames=2),
    )


def _processors(environment: str) -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.CallsiteParameterAdder(
            parameters=[
                structlog.processors.CallsiteParameter.MODULE,
                structlog.processors.CallsiteParameter.FUNC_NAME,
                structlog.processors.CallsiteParameter.LINENO,
            ]
        ),
        _renderer(environment),
    ]


def configure_logging() -> None:
    """Install handlers and structlog processors for the current environment."""
    environment = current_environment()
    _configure_handlers(log_level(environment))
    structlog.configure(
        processors=_processors(environment),
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def add_context(**kwargs: Any) -> None:
    """Bind fields to every log event emitted by the current request."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
