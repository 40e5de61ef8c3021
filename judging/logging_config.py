"""
Logging Setup - Judging Leaderboard Engine
judging/logging_config.py

Routes structlog events through the stdlib logging tree so calculator
events (structlog) and service messages (logging) share handlers.
"""

import logging
from typing import Optional

import structlog

from judging.config import settings


def configure_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> None:
    """
    Configure stdlib logging and structlog.

    Args:
        level: Log level name. Defaults to settings.LOG_LEVEL.
        fmt: "json" or "console". Defaults to settings.LOG_FORMAT.
    """
    level = level or settings.LOG_LEVEL
    fmt = fmt or settings.LOG_FORMAT

    logging.basicConfig(format="%(message)s", level=getattr(logging, level))
    logging.getLogger().setLevel(getattr(logging, level))

    renderer = (
        structlog.processors.JSONRenderer()
        if fmt == "json"
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
