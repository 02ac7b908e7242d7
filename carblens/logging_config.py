"""Structured logging configuration.

Every line is either a JSON object (production) or a plain-text line
(development), stamped with the correlation ID of the request being served.

Structured fields are sanitized before they reach a handler: credentials and
raw image data are masked, and long strings (model replies, tracebacks
passed as fields) are cut to ``MAX_FIELD_CHARS``.
"""

import json
import logging
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

DEFAULT_SERVICE_NAME = "carblens-api"

MAX_FIELD_CHARS = 500

MASK = "***"

# Field names whose values never appear in a log line
SENSITIVE_FIELDS = frozenset(
    {
        "api_key",
        "anthropic_api_key",
        "openai_api_key",
        "authorization",
        "image",
        "image_data",
    }
)

# Set by CorrelationIdMiddleware for the lifetime of a request
correlation_id_ctx: ContextVar[str | None] = ContextVar("correlation_id", default=None)

# Third-party loggers that only log at WARNING and above
_NOISY_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "anthropic", "openai")


def sanitize_fields(fields: dict[str, Any]) -> dict[str, Any]:
    """Mask sensitive values and truncate long strings."""
    clean: dict[str, Any] = {}
    for key, value in fields.items():
        if key.lower() in SENSITIVE_FIELDS:
            clean[key] = MASK
        elif isinstance(value, str) and len(value) > MAX_FIELD_CHARS:
            clean[key] = f"{value[:MAX_FIELD_CHARS]}... ({len(value)} chars)"
        else:
            clean[key] = value
    return clean


def _timestamp() -> datetime:
    return datetime.now(UTC)


class JsonFormatter(logging.Formatter):
    """One JSON object per record.

    Keys: timestamp, level, service, logger, message, correlation_id (inside
    a request), the record's structured fields, ``exception`` when a
    traceback is attached and ``location`` for ERROR and above.
    """

    def __init__(self, service_name: str = DEFAULT_SERVICE_NAME):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": _timestamp().isoformat(),
            "level": record.levelname,
            "service": self.service_name,
            "logger": record.name,
            "message": record.getMessage(),
        }

        correlation_id = correlation_id_ctx.get()
        if correlation_id:
            entry["correlation_id"] = correlation_id

        # Reserved keys win over same-named structured fields
        for key, value in getattr(record, "extra_fields", {}).items():
            entry.setdefault(key, value)

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        if record.levelno >= logging.ERROR:
            entry["location"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        return json.dumps(entry, default=str, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """Human-readable lines for local development.

    ``timestamp - service - level - [correlation_id] - message key=value ...``
    """

    def __init__(self, service_name: str = DEFAULT_SERVICE_NAME):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        parts = [
            _timestamp().strftime("%Y-%m-%d %H:%M:%S"),
            self.service_name,
            record.levelname,
            f"[{correlation_id_ctx.get() or '-'}]",
            record.getMessage(),
        ]
        line = " - ".join(parts)

        fields = getattr(record, "extra_fields", None)
        if fields:
            line += " " + " ".join(f"{key}={value}" for key, value in fields.items())

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(
    log_format: str = "json",
    log_level: str = "INFO",
    service_name: str = DEFAULT_SERVICE_NAME,
) -> None:
    """Install a single stdout handler on the root logger.

    Args:
        log_format: 'json' for structured lines, anything else for text.
        log_level: Level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        service_name: Stamped on every line.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    formatter: logging.Formatter
    if log_format.lower() == "json":
        formatter = JsonFormatter(service_name=service_name)
    else:
        formatter = TextFormatter(service_name=service_name)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)
    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


class StructuredLogger:
    """Logger wrapper taking structured fields as keyword arguments.

    Fields are sanitized and attached to the record as ``extra_fields``.
    """

    def __init__(self, name: str):
        self._logger = logging.getLogger(name)

    @property
    def name(self) -> str:
        return self._logger.name

    def _log(
        self,
        level: int,
        msg: str,
        fields: dict[str, Any],
        exc_info: bool = False,
    ) -> None:
        if not self._logger.isEnabledFor(level):
            return
        extra = {"extra_fields": sanitize_fields(fields)} if fields else None
        self._logger.log(level, msg, extra=extra, exc_info=exc_info, stacklevel=3)

    def debug(self, msg: str, **fields: Any) -> None:
        self._log(logging.DEBUG, msg, fields)

    def info(self, msg: str, **fields: Any) -> None:
        self._log(logging.INFO, msg, fields)

    def warning(self, msg: str, **fields: Any) -> None:
        self._log(logging.WARNING, msg, fields)

    def error(self, msg: str, **fields: Any) -> None:
        self._log(logging.ERROR, msg, fields)

    def exception(self, msg: str, **fields: Any) -> None:
        """ERROR with the active exception's traceback."""
        self._log(logging.ERROR, msg, fields, exc_info=True)

    @contextmanager
    def timed(self, stage: str, **fields: Any) -> Iterator[dict[str, Any]]:
        """Log one DEBUG line with ``duration_ms`` when the block exits.

        The yielded dict can be filled with fields known only at the end of
        the stage. Failed stages are logged with ``failed=True`` and the
        exception propagates unchanged.
        """
        result: dict[str, Any] = {}
        start = time.perf_counter()
        failed = False
        try:
            yield result
        except BaseException:
            failed = True
            raise
        finally:
            self._log(
                logging.DEBUG,
                f"Stage {stage} finished",
                {
                    "stage": stage,
                    "duration_ms": round((time.perf_counter() - start) * 1000, 2),
                    "failed": failed,
                    **fields,
                    **result,
                },
            )


def get_logger(name: str) -> StructuredLogger:
    """Return a StructuredLogger for ``name`` (typically ``__name__``)."""
    return StructuredLogger(name)
