"""Logging setup for the GameNight service.

Records carry their identifiers (request, game night, player) as ``extra``
attributes. In production they are written as one JSON object per line; in
development as text with the identifiers appended in brackets.

Request-scoped code logs through a :class:`ContextLogger` bound to the
request id, so every line written while serving a request can be joined on
``request_id``.
"""
import json
import logging
import sys
import time
from datetime import datetime, timezone
from typing import Any, Dict, IO, Optional

# Attributes copied from ``extra`` onto the rendered line when present
CONTEXT_FIELDS = (
    "request_id", "method", "path", "status_code", "duration_ms",
    "operation", "game_night_id", "player_id", "version", "reason", "error_type",
)

TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def _context_of(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        field: getattr(record, field)
        for field in CONTEXT_FIELDS
        if getattr(record, field, None) is not None
    }


class JSONFormatter(logging.Formatter):
    """Render each record as a single JSON line for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        payload.update(_context_of(record))

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            payload["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "traceback": self.formatException(record.exc_info),
            }

        return json.dumps(payload, default=str)


class ContextFormatter(logging.Formatter):
    """Text formatter that appends any context fields as ``[key=value ...]``."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _context_of(record)
        if not context:
            return line
        fields = " ".join(f"{key}={value}" for key, value in context.items())
        # Tracebacks are appended by the base class; keep context on the first line
        head, sep, rest = line.partition("\n")
        return f"{head} [{fields}]{sep}{rest}"


class ContextLogger(logging.LoggerAdapter):
    """Logger adapter carrying fields that are added to every record.

    Fields passed in a call's own ``extra`` take precedence over bound ones.

    Example:
        >>> log = ContextLogger(logging.getLogger("main"), {"request_id": "abc123"})
        >>> log.info("Request started", extra={"path": "/api/GameNights"})
    """

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def setup_logging(
    level: str = "INFO", json_format: bool = True, stream: Optional[IO[str]] = None
) -> logging.Logger:
    """(Re)configure the root logger with a single handler.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Emit JSON lines instead of text
        stream: Where to write; defaults to stdout

    Returns:
        The root logger
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(numeric_level)
    handler.setFormatter(JSONFormatter() if json_format else ContextFormatter(TEXT_FORMAT))

    root = logging.getLogger()
    root.setLevel(numeric_level)
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    return root


def get_logger(name: str, context: Optional[Dict[str, Any]] = None):
    """Return the named logger, bound to ``context`` when one is given."""
    logger = logging.getLogger(name)
    if context:
        return ContextLogger(logger, context)
    return logger


class LogTimer:
    """Context manager that logs how long a block took.

    Success is logged at DEBUG; an exception escaping the block is logged at
    ERROR with its traceback and then re-raised.

    Example:
        >>> with LogTimer(log, "list_game_nights"):
        ...     outcome = await game_night_service.list_game_nights(gateway)
    """

    def __init__(self, logger, operation: str):
        self.logger = logger
        self.operation = operation
        self._started: Optional[float] = None

    def __enter__(self):
        self._started = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration_ms = round((time.perf_counter() - self._started) * 1000, 2)
        extra = {"operation": self.operation, "duration_ms": duration_ms}
        if exc_type is None:
            self.logger.debug(f"{self.operation} took {duration_ms}ms", extra=extra)
        else:
            self.logger.error(
                f"{self.operation} raised after {duration_ms}ms",
                extra={**extra, "error_type": exc_type.__name__},
                exc_info=(exc_type, exc_val, exc_tb),
            )
        return False


# Text logging until the application reconfigures from settings
setup_logging(level="INFO", json_format=False)
