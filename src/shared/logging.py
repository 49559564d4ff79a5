"""Logging for the stockroom services.

stdlib logging owns the handlers, structlog renders the events. Production and
staging emit JSON lines; every other environment gets the console renderer.
Call ``configure_logging()`` once per process; each bounded context does so on
import.
"""

import logging
import logging.handlers
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import structlog

LEVEL_BY_ENVIRONMENT = {
    "production": "INFO",
    "staging": "INFO",
    "development": "DEBUG",
    "test": "WARNING",
}
JSON_ENVIRONMENTS = ("production", "staging")
QUIET_LOGGERS = ("protean", "httpx", "httpcore", "asyncio", "sqlalchemy.engine")

_MAX_LOG_BYTES = 10 * 1024 * 1024
_configured = False


def current_environment() -> str:
    return (os.getenv("ENVIRONMENT") or os.getenv("PROTEAN_ENV") or "development").lower()


def log_level_for(environment: str) -> str:
    """``LOG_LEVEL`` wins; otherwise the level follows the environment."""
    return os.getenv("LOG_LEVEL", LEVEL_BY_ENVIRONMENT.get(environment, "INFO")).upper()


def _file_handlers(level: str) -> list[logging.Handler]:
    log_dir = Path(os.getenv("LOG_DIR", "logs"))
    log_dir.mkdir(exist_ok=True)

    handlers = []
    for filename, handler_level in (("stockroom.log", level), ("stockroom_error.log", logging.ERROR)):
        handler = logging.handlers.RotatingFileHandler(
            filename=log_dir / filename, maxBytes=_MAX_LOG_BYTES, backupCount=5, encoding="utf-8"
        )
        handler.setLevel(handler_level)
        handlers.append(handler)
    return handlers


def _install_handlers(environment: str) -> None:
    level = log_level_for(environment)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    handlers: list[logging.Handler] = [console]

    # Tests never write log files unless asked to.
    to_file_default = "false" if environment == "test" else "true"
    if os.getenv("LOG_TO_FILE", to_file_default).lower() == "true":
        handlers.extend(_file_handlers(level))

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = handlers

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _renderer(environment: str):
    if environment in JSON_ENVIRONMENTS:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def configure_logging(environment: str | None = None) -> None:
    """Install handlers and structlog processors. Later calls are no-ops."""
    global _configured
    if _configured:
        return

    environment = (environment or current_environment()).lower()
    _install_handlers(environment)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            _renderer(environment),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured = True


@contextmanager
def log_context(**values) -> Iterator[None]:
    """Bind ``values`` to every log line emitted inside the block."""
    tokens = structlog.contextvars.bind_contextvars(**values)
    try:
        yield
    finally:
        structlog.contextvars.reset_contextvars(**tokens)
