"""Structured JSON logging stamped with the current analysis run."""
from __future__ import annotations

import contextlib
import contextvars
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Iterator

# Context variable for the current analysis run
run_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "run_id", default=""
)

# ``extra=`` keys copied into the JSON entry when a record carries them
CONTEXT_FIELDS: tuple[str, ...] = ("endpoint_key", "scenario", "test_file")


@contextlib.contextmanager
def run_scope(run_id: str | None = None) -> Iterator[str]:
    """Bind a run id for the duration of the block and yield it."""
    value = run_id or uuid.uuid4().hex[:12]
    token = run_id_var.set(value)
    try:
        yield value
    finally:
        run_id_var.reset(token)


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def __init__(self, service_name: str = "unknown") -> None:
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "service_name": self.service_name,
            "run_id": run_id_var.get(""),
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_entry[field] = value
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = str(record.exc_info[1])
        return json.dumps(log_entry, ensure_ascii=False)


def setup_logging(service_name: str, level: str = "INFO", logger_name: str = "src") -> logging.Logger:
    """Attach a JSON stderr handler to the analysis packages' logger.

    Args:
        service_name: Name of the service under analysis, stamped on entries.
        level: Log level string (e.g. "INFO", "DEBUG").  Unknown names fall
            back to INFO.
        logger_name: Logger to attach the handler to.  Defaults to the
            ``src`` package root so every module logger inherits it.

    Returns:
        Configured logger instance.
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.handlers.clear()

    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter(service_name=service_name))
    logger.addHandler(handler)

    return logger
