"""Structured JSON Logging

Every line is one JSON object. Lines written while a request or a scheduler
job is running carry its correlation id, and request lines also carry the
acting user once the bearer token has been resolved.
"""
import json
import logging
import os
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional
from contextvars import ContextVar

from ..config.settings import settings


correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
actor_id_var: ContextVar[Optional[str]] = ContextVar("actor_id", default=None)

# Copied from `extra=` into the JSON line
EXTRA_FIELDS = (
    "entity_type",
    "entity_id",
    "user_id",
    "role",
    "action",
    "status",
    "notification_id",
    "queue_item_id",
    "error_code",
    "deleted",
)

# Third-party loggers and the lowest level they may emit at
QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "apscheduler": logging.WARNING,
    "pymongo": logging.WARNING,
    "passlib": logging.ERROR,
}

MAX_LOG_BYTES = 10 * 1024 * 1024


class JsonFormatter(logging.Formatter):

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, timezone.utc)
        log_obj: Dict[str, Any] = {
            "timestamp": timestamp.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, var in (("correlation_id", correlation_id_var), ("actor_id", actor_id_var)):
            value = var.get()
            if value:
                log_obj[key] = value

        for field in EXTRA_FIELDS:
            if hasattr(record, field):
                log_obj[field] = getattr(record, field)

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_obj, default=str)


def _rotating_handler(filename: str, formatter: logging.Formatter, level: int = logging.NOTSET) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        os.path.join(settings.logs_path, filename),
        maxBytes=MAX_LOG_BYTES,
        backupCount=5,
        encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging() -> None:
    """
    Route the root logger to stdout, and to app.log / error.log under
    LOGS_PATH unless LOGS_PATH is empty.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.log_level.upper()))
    root_logger.handlers.clear()

    formatter = JsonFormatter()
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if settings.logs_path:
        os.makedirs(settings.logs_path, exist_ok=True)
        root_logger.addHandler(_rotating_handler("app.log", formatter))
        root_logger.addHandler(_rotating_handler("error.log", formatter, logging.ERROR))

    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def set_correlation_id(correlation_id: str) -> None:
    correlation_id_var.set(correlation_id)


def get_correlation_id() -> Optional[str]:
    return correlation_id_var.get()


def set_actor_id(actor_id: Optional[str]) -> None:
    """Tag the rest of the current request's log lines with the acting user"""
    actor_id_var.set(actor_id)
