"""Logging setup for the content service.

Everything goes through the standard ``logging`` module. The output format is
chosen by ``settings.log_format``: ``text`` for local work, ``structured`` to
append the request context to each line, ``json`` for log shippers.
"""

import json
import logging
import logging.config
import sys
import traceback
from datetime import datetime
from typing import Any, Dict, Optional, TextIO

from marlowequill.app.core.config import settings

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RESERVED_ATTRS = frozenset((
    "name", "msg", "args", "levelname", "levelno", "pathname",
    "filename", "module", "exc_info", "exc_text", "stack_info",
    "lineno", "funcName", "created", "msecs", "relativeCreated",
    "thread", "threadName", "processName", "process", "message",
    "asctime", "timestamp", "logger", "level", "source", "taskName",
))

TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
STRUCTURED_FORMAT = (
    TEXT_FORMAT
    + " [request_id=%(request_id)s client_key=%(client_key)s"
    " tier=%(tier)s state=%(state)s]"
)


class JSONFormatter(logging.Formatter):
    """Render each record as a single JSON object per line.

    Known context fields are lifted to the top level; any other ``extra``
    attribute is nested under ``"extra"``.
    """

    CONTEXT_FIELDS = [
        "request_id",    # X-Request-ID of the HTTP request
        "client_key",    # Hashed rate limit key, never the raw address
        "tier",          # free | basic | premium
        "content_type",  # Requested content type
        "state",         # Pipeline state (received ... responded/failed)
        "path",
        "method",
        "status_code",
        "duration_ms",
    ]

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()

        payload: Dict[str, Any] = {
            "timestamp": datetime.now().astimezone().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.message,
            "source": {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            },
        }

        for name in self.CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                payload[name] = value

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS and key not in self.CONTEXT_FIELDS
        }
        if extra:
            payload["extra"] = extra

        if record.exc_info and record.exc_info[0] is not None:
            payload["exception"] = traceback.format_exception(*record.exc_info)

        return json.dumps(payload, default=str, ensure_ascii=False)


class ContextFilter(logging.Filter):
    """Give every record the context attributes, defaulting to None.

    ``STRUCTURED_FORMAT`` interpolates them by name, so a record logged
    without ``extra`` would otherwise fail to format.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for name in JSONFormatter.CONTEXT_FIELDS:
            if not hasattr(record, name):
                setattr(record, name, None)
        return True


def _stream_handler(stream: TextIO, level: str, formatter: str) -> Dict[str, Any]:
    return {
        "class": "logging.StreamHandler",
        "stream": stream,
        "level": level,
        "formatter": formatter,
        "filters": ["context"],
    }


def get_logging_config() -> Dict[str, Any]:
    """Build the ``dictConfig`` mapping for the current settings.

    INFO and above go to stdout. ERROR and above from the service's own
    loggers are duplicated to stderr so they surface in process supervisors.
    """
    log_format = getattr(settings, "log_format", "text").lower()
    log_level = getattr(settings, "log_level", "INFO").upper()

    formatters: Dict[str, Any] = {
        "standard": {"format": TEXT_FORMAT},
        "structured": {"format": STRUCTURED_FORMAT},
    }
    if log_format == "json":
        formatters["json"] = {"()": JSONFormatter}
        formatter = "json"
    elif log_format == "structured":
        formatter = "structured"
    else:
        formatter = "standard"

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"context": {"()": ContextFilter}},
        "formatters": formatters,
        "handlers": {
            "console": _stream_handler(sys.stdout, log_level, formatter),
            "error_console": _stream_handler(sys.stderr, "ERROR", formatter),
        },
        "loggers": {
            "marlowequill": {
                "level": log_level,
                "handlers": ["console", "error_console"],
                "propagate": False,
            },
            "uvicorn": {
                "level": log_level,
                "handlers": ["console"],
                "propagate": False,
            },
        },
        "root": {"level": log_level, "handlers": ["console"]},
    }


def setup_logging() -> None:
    """Apply the logging configuration. Safe to call more than once."""
    logging.config.dictConfig(get_logging_config())

    # Per-request access lines come from RequestIdMiddleware instead
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str = "marlowequill") -> logging.Logger:
    return logging.getLogger(name)


def get_log_context(
    request_id: Optional[str] = None,
    client_key: Optional[str] = None,
    tier: Optional[str] = None,
    content_type: Optional[str] = None,
    state: Optional[str] = None,
    **extra: Any,
) -> Dict[str, Any]:
    """Collect context for the ``extra`` argument of a logging call.

    Keys whose value is None are left out::

        logger.info("Content saved", extra=get_log_context(request_id=rid, state="saved"))
    """
    context = dict(
        request_id=request_id,
        client_key=client_key,
        tier=tier,
        content_type=content_type,
        state=state,
        **extra,
    )
    return {key: value for key, value in context.items() if value is not None}
