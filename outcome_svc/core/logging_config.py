"""
Structured logging for the outcome service.

Every line is one JSON object:

{
    "timestamp": "2025-01-06T09:00:00.000Z",
    "level": "INFO",
    "logger": "outcome_svc.services.reevaluation_service",
    "message": "Re-evaluation saved",
    "request_id": "3f2a9c1e",
    "extra": {"snapshot_id": 12, "patient_id": "patient-001", "total": 4}
}

request_id is filled in from a ContextVar set by LoggingMiddleware, so
services only pass their own fields through ``extra``. Free-text clinical
notes are never written out; only their length is logged.
"""

import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def get_request_id() -> Optional[str]:
    return request_id_var.get()


def set_request_id(request_id: str) -> None:
    request_id_var.set(request_id)


def clear_request_id() -> None:
    request_id_var.set(None)


# =============================================================================
# FORMATTERS
# =============================================================================

# Attributes every LogRecord carries; anything else came in through extra=
_RECORD_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime", "taskName"}

# Extra keys holding free text typed by clinicians
REDACTED_FIELDS = {"note", "notes"}


def record_extras(record: logging.LogRecord) -> Dict[str, Any]:
    """Collect the ``extra`` fields of a record, redacting clinical free text."""
    extras: Dict[str, Any] = {}
    for key, value in record.__dict__.items():
        if key in _RECORD_ATTRS or key.startswith("_"):
            continue
        if key in REDACTED_FIELDS and value is not None:
            extras[f"{key}_length"] = len(str(value))
            continue
        extras[key] = value
    return extras


class JSONFormatter(logging.Formatter):
    """Single-line JSON formatter with UTC millisecond timestamps."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        log_entry: Dict[str, Any] = {
            "timestamp": created.strftime("%Y-%m-%dT%H:%M:%S.") + f"{created.microsecond // 1000:03d}Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = get_request_id()
        if request_id:
            log_entry["request_id"] = request_id

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        extras = record_extras(record)
        if extras:
            log_entry["extra"] = extras

        return json.dumps(log_entry, default=str, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """Human-readable formatter for local runs; appends request_id and extras."""

    def __init__(self) -> None:
        super().__init__(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        request_id = get_request_id()
        if request_id:
            line += f" | request_id={request_id}"
        extras = record_extras(record)
        if extras:
            line += " | " + " ".join(f"{k}={v}" for k, v in extras.items())
        return line


# =============================================================================
# LOGGING SETUP
# =============================================================================

def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    include_uvicorn: bool = True
) -> None:
    """
    Install a single stdout handler on the root logger.

    LOG_LEVEL and LOG_FORMAT ("json" or "text") in the environment take
    precedence over the arguments. Uvicorn's loggers are routed through the
    same handler unless ``include_uvicorn`` is False.
    """
    level = os.environ.get("LOG_LEVEL", level).upper()
    json_format = os.environ.get("LOG_FORMAT", "json" if json_format else "text").lower() == "json"

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if json_format else TextFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    app_logger = logging.getLogger("outcome_svc")
    app_logger.setLevel(level)
    app_logger.handlers = []
    app_logger.propagate = True

    if include_uvicorn:
        for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
            uvicorn_logger = logging.getLogger(logger_name)
            uvicorn_logger.handlers = []
            uvicorn_logger.propagate = True

    logging.getLogger(__name__).info(
        "Logging configured",
        extra={"level": level, "format": "json" if json_format else "text"}
    )
