"""Logging setup for the mastery engine.

Production writes one JSON object per line; development writes a colored
single-line format. Both carry the engine context passed through
``extra=`` (user, quiz, category, badge, request), so a badge award can be
traced back to the submission that caused it.
"""
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from certlab.config import settings
from certlab.constants import DEFAULT_LOG_LEVEL

CONTEXT_FIELDS = ("user_id", "quiz_id", "category_id", "badge_id", "request_id")

# Capped at WARNING by setup_logging
QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine")

_HANDLER_NAME = "certlab"


def record_context(record: logging.LogRecord) -> Dict[str, Any]:
    """Engine context fields present on a record, in CONTEXT_FIELDS order."""
    return {
        field: getattr(record, field)
        for field in CONTEXT_FIELDS
        if getattr(record, field, None) is not None
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per record, stamped with the record's own UTC time."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, timezone.utc)
        entry: Dict[str, Any] = {
            "timestamp": created.strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        entry.update(record_context(record))
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Colored level name, message, then any engine context as key=value."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_color: bool = True):
        super().__init__(datefmt="%Y-%m-%d %H:%M:%S")
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        level = record.levelname
        if self.use_color:
            level = f"{self.LEVEL_COLORS.get(record.levelno, '')}{level}{self.RESET}"

        line = (
            f"{self.formatTime(record, self.datefmt)} {level} "
            f"{record.name}: {record.getMessage()}"
        )

        context = record_context(record)
        if context:
            line += " [" + " ".join(f"{k}={v}" for k, v in context.items()) + "]"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(log_level: Optional[str] = None) -> logging.Handler:
    """Install the engine's stdout handler on the root logger.

    Calling this again replaces the handler installed by the previous call
    instead of stacking a second one.

    Args:
        log_level: Level name; defaults to DEFAULT_LOG_LEVEL in production
            and DEBUG elsewhere. Unknown names fall back to INFO.

    Returns:
        The installed handler
    """
    if log_level is None:
        log_level = DEFAULT_LOG_LEVEL if settings.is_production else "DEBUG"
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)
    if settings.is_production:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(ConsoleFormatter(use_color=sys.stdout.isatty()))

    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        f"Logging configured: level={logging.getLevelName(level)}, "
        f"environment={settings.ENVIRONMENT}, "
        f"format={'json' if settings.is_production else 'console'}"
    )
    return handler


def get_logger(name: str) -> logging.Logger:
    """Module logger; pass context through ``extra``, e.g.
    ``logger.info("Badge awarded", extra={"user_id": uid, "badge_id": 4})``.
    """
    return logging.getLogger(name)
