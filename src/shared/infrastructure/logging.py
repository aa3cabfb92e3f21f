"""
Structured Logging
==================

Every record is written to stdout as one JSON object. Fields passed via
`extra=` become top-level keys next to the timestamp, environment and the
correlation ID of the request being served.

    logger = get_logger(__name__)
    logger.info("Document indexed", extra={"filename": "guide.pdf", "chunk_count": 3})
"""

import logging
import re
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

from pythonjsonlogger.json import JsonFormatter

_correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

_REDACTED = "***REDACTED***"
# Matches api_key, password, auth_token... but not token counters like prompt_tokens
_SECRET_KEY = re.compile(r"password|api_key|secret|token(?!s)", re.IGNORECASE)

_QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "pymilvus", "httpx")


def set_correlation_id(correlation_id: Optional[str]) -> None:
    _correlation_id.set(correlation_id)


def get_correlation_id() -> Optional[str]:
    return _correlation_id.get()


class CustomJsonFormatter(JsonFormatter):
    """Adds timestamp, environment and correlation_id; masks credential-looking string fields."""

    def __init__(self, *args: Any, environment: str = "unknown", **kwargs: Any):
        super().__init__(*args, **kwargs)
        self._environment = environment

    def add_fields(
        self,
        log_data: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_data, record, message_dict)

        log_data.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
        log_data["environment"] = self._environment
        if not log_data.get("correlation_id") and get_correlation_id():
            log_data["correlation_id"] = get_correlation_id()

        for key, value in log_data.items():
            if isinstance(value, str) and _SECRET_KEY.search(key):
                log_data[key] = _REDACTED


def setup_logging(level: str = "INFO", environment: str = "development") -> None:
    """
    Route all logging through a single JSON stdout handler.

    Replaces any handlers already on the root logger, so calling it twice
    does not duplicate output.
    """
    numeric_level = logging.getLevelName(level.upper())

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(CustomJsonFormatter(
        "%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        environment=environment,
    ))

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(numeric_level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


@contextmanager
def log_latency(logger: logging.Logger, operation: str, **extra_context: Any) -> Iterator[None]:
    """
    Log "<operation> completed" with latency_ms when the block exits.

    The line is written even when the block raises.

        with log_latency(logger, "kb_ingest", filename="guide.pdf"):
            ...
    """
    started = time.perf_counter()
    try:
        yield
    finally:
        logger.info(
            f"{operation} completed",
            extra={
                "operation": operation,
                "latency_ms": round((time.perf_counter() - started) * 1000, 2),
                **extra_context,
            },
        )
