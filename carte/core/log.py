"""Logging setup (loguru) with redaction of credentials and tokens."""

from __future__ import annotations

import logging
import re
import sys
from typing import Any

from loguru import logger

_FMT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<lvl>{level:<8}</lvl> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<lvl>{message}</lvl>"
)

SENSITIVE_PATTERNS = [
    (r"(password\s*[:=]\s*['\"]?)([^'\"\s]+)(['\"]?)", r"\1***REDACTED***\3", re.IGNORECASE),
    (r"(bearer\s+)([a-zA-Z0-9_\-\.]{10,})", r"\1***REDACTED***", re.IGNORECASE),
    (r"(token\s*[:=]\s*['\"]?)([a-zA-Z0-9_\-\.]{10,})(['\"]?)", r"\1***REDACTED***\3", re.IGNORECASE),
    # bare JWTs
    (r"eyJ[a-zA-Z0-9_\-]+\.[a-zA-Z0-9_\-]+\.[a-zA-Z0-9_\-]+", r"***JWT***", 0),
    (r"(postgres(?:ql)?|mysql)(\+\w+)?://([^:/]+):([^@]+)@", r"\1\2://\3:***REDACTED***@", 0),
]


def sanitize_message(message: str) -> str:
    sanitized = message
    for pattern, replacement, flags in SENSITIVE_PATTERNS:
        sanitized = re.sub(pattern, replacement, sanitized, flags=flags)
    return sanitized


def sanitize_record(record: dict[str, Any]) -> bool:
    record["message"] = sanitize_message(record["message"])
    return True


class _InterceptHandler(logging.Handler):
    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = str(record.levelno)
        logger.opt(depth=6, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: str | None = None) -> None:
    """Route loguru and stdlib logging (SQLAlchemy) to a redacting stderr sink."""
    if level is None:
        from carte.core.config import get_settings

        level = get_settings().log_level
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format=_FMT,
        filter=sanitize_record,
        colorize=True,
        backtrace=False,
        diagnose=False,
    )
    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


__all__ = ["logger", "sanitize_message", "setup_logging"]
