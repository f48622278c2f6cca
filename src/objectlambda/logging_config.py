"""Structured logging configuration for the Object Lambda transformer."""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone

# Extra attributes copied from log records into JSON entries.
_EXTRA_FIELDS = ("operation", "status", "key", "request_route", "duration_ms")

# Lambda request id of the invocation being served.
aws_request_id: ContextVar[str | None] = ContextVar("aws_request_id", default=None)


class RequestIdFilter(logging.Filter):
    """Stamps every record with the current invocation's request id."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.aws_request_id = aws_request_id.get()
        return True


class JSONFormatter(logging.Formatter):
    """Formats log records as single-line JSON objects.

    Fields: timestamp, level, logger, message, aws_request_id, plus any
    extras passed by the handlers.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        request_id = getattr(record, "aws_request_id", None)
        if request_id is not None:
            entry["aws_request_id"] = request_id
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        for key in _EXTRA_FIELDS:
            val = getattr(record, key, None)
            if val is not None:
                entry[key] = val
        return json.dumps(entry, default=str)


def configure_logging(level: str = "INFO", fmt: str = "text") -> None:
    """Configure root logging for the Lambda execution environment.

    The runtime installs its own root handler; it is replaced by a single
    stdout handler so every record goes through one formatter and carries
    the request id.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        fmt: 'text' for human-readable lines, 'json' for CloudWatch-friendly
            structured entries.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(numeric_level)

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.addFilter(RequestIdFilter())

    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s %(levelname)s %(aws_request_id)s %(name)s: %(message)s"
            )
        )

    root.addHandler(handler)
