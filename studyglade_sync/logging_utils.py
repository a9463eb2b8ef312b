"""
Structured JSON logging utilities.

Sessions created with ``log_json`` enabled route the ``studyglade_sync``
logger tree through StructuredJsonFormatter. Stores log through
SyncLoggerAdapter so every line carries collection, owner and mode.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

ROOT_LOGGER_NAME = "studyglade_sync"

# Store context, emitted right after the fixed fields when present
CONTEXT_FIELDS = ("collection", "mode", "owner_key")

_STANDARD_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class StructuredJsonFormatter(logging.Formatter):
    """
    Formats each record as one JSON object per line.

    Fixed fields come first: timestamp (UTC, taken from the record), level,
    logger and message. Store context (collection, mode, owner_key) follows
    when the record carries it, then any other ``extra`` fields. Values that
    are not JSON serializable are written as strings.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_obj: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in CONTEXT_FIELDS:
            if key in record.__dict__:
                log_obj[key] = record.__dict__[key]

        for key, value in record.__dict__.items():
            if key in _STANDARD_ATTRS or key in log_obj or key.startswith("_"):
                continue
            log_obj[key] = value

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_obj, default=str)


def configure_structured_logging(
    level: int | str = logging.INFO,
    logger_name: str | None = ROOT_LOGGER_NAME,
) -> logging.Logger:
    """
    Send a logger's output to stdout as JSON lines.

    Calling it again replaces the handler instead of adding a second one.

    Args:
        level: Level number or name (e.g. "DEBUG")
        logger_name: Logger to configure; None means the root logger

    Returns:
        The configured logger
    """
    logger = logging.getLogger(logger_name)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredJsonFormatter())
    logger.addHandler(handler)
    logger.setLevel(level.upper() if isinstance(level, str) else level)
    return logger


def get_sync_logger(name: str) -> logging.Logger:
    """Logger named ``studyglade_sync.<name>``."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


class SyncLoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that adds store context to all log messages.

    The extra mapping may hold callables; they are evaluated per message so
    fields such as the current mode stay accurate.
    """

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        extra = kwargs.get("extra", {})
        for key, value in (self.extra or {}).items():
            extra.setdefault(key, value() if callable(value) else value)
        kwargs["extra"] = extra
        return msg, kwargs
