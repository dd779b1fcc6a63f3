"""
Logging configuration.

Two ways of logging are used across the code base:

1. Plain module loggers with f-string messages::

       logger = logging.getLogger(__name__)
       logger.info(f"New tasks found: {len(tasks)}")

2. Event-style loggers that take an event name plus keyword context::

       logger = get_logger(__name__)
       logger.info("task_completed", task_id=str(task.task_id), status="done")

Both end up in the same standard-library handlers configured by
``setup_logging()``. The keyword context is rendered as ``key=value`` pairs in
text mode and as top-level fields in JSON mode.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, MutableMapping, Optional

from bookmark_hub.core.config import settings

# Keyword arguments understood by logging.Logger itself
_RESERVED_KWARGS = ("exc_info", "stack_info", "stacklevel", "extra")


class KeywordLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that moves arbitrary keyword arguments into the record."""

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        passthrough = {key: kwargs.pop(key) for key in _RESERVED_KWARGS if key in kwargs}
        extra = dict(passthrough.get("extra") or {})
        context = dict(self.extra or {})
        context.update(kwargs)
        extra["context"] = context
        passthrough["extra"] = extra
        return msg, passthrough


class TextFormatter(logging.Formatter):
    """Human readable formatter: ``time level logger message key=value ...``."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = getattr(record, "context", None)
        if context:
            pairs = " ".join(f"{key}={value}" for key, value in context.items())
            # Exception text (if any) is appended by the base class, keep it last
            head, sep, tail = line.partition("\n")
            line = f"{head} {pairs}{sep}{tail}"
        return line


class JsonFormatter(logging.Formatter):
    """One JSON object per line, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = getattr(record, "context", None)
        if context:
            payload.update(context)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


_configured = False


def setup_logging(level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """
    Configure the root logger once per process.

    Args:
        level: Log level name (default: settings.LOG_LEVEL)
        log_format: "text" or "json" (default: settings.LOG_FORMAT)
    """
    global _configured

    if _configured:
        return

    handler = logging.StreamHandler(sys.stdout)
    if (log_format or settings.LOG_FORMAT) == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(TextFormatter())

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level or settings.LOG_LEVEL)

    # Quiet chatty libraries unless we are debugging SQL
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.DB_ECHO else logging.WARNING
    )

    _configured = True


def get_logger(name: str, **context: Any) -> KeywordLoggerAdapter:
    """
    Get an event-style logger.

    Args:
        name: Logger name, usually ``__name__``
        **context: Fields attached to every record from this logger

    Returns:
        Logger accepting keyword context on every call
    """
    return KeywordLoggerAdapter(logging.getLogger(name), context)
