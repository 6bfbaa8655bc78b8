"""
Structured JSON logging for the CCIS engine.

Every record carries an anonymized person_id, the action and the session id
when known. Extra fields are emitted as native JSON where possible so event
payloads stay queryable.
"""

import hashlib
import json
import logging
import sys
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from ccis.shared.config import settings


_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName", "person_id", "action", "session_id"}

# Session events logged above INFO
WARNING_EVENT_TYPES = frozenset({"GAMING_DETECTED", "SESSION_TERMINATED"})


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return str(value)


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in ("person_id", "action", "session_id"):
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        return json.dumps(log_data, default=_json_default)


def setup_logging(
    log_level: Optional[str] = None,
    log_file: Optional[Path] = None
):
    """
    Route all CCIS logging through the JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR); defaults to settings
        log_file: Optional file path, written in addition to stdout
    """
    log_level = log_level or settings.log_level
    log_file = log_file or settings.log_file

    formatter = StructuredFormatter()
    handlers = [logging.StreamHandler(sys.stdout)]

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))
    root_logger.handlers.clear()
    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def anonymize_id(raw_id: str) -> str:
    """Stable 16-character hash of a person identifier."""
    return hashlib.sha256(raw_id.encode()).hexdigest()[:16]


def log_with_context(
    logger: logging.Logger,
    level: int,
    message: str,
    person_id: Optional[str] = None,
    action: Optional[str] = None,
    session_id: Optional[str] = None,
    **kwargs
):
    """
    Log with structured context.

    Args:
        logger: Logger instance
        level: Log level (logging.INFO, etc.)
        message: Log message
        person_id: Raw person ID; only its hash is logged
        action: Action name
        session_id: Assessment session ID
        **kwargs: Additional structured fields
    """
    extra = {}
    if person_id:
        extra["person_id"] = anonymize_id(person_id)
    if action:
        extra["action"] = action
    if session_id:
        extra["session_id"] = session_id
    extra.update(kwargs)

    logger.log(level, message, extra=extra)


def log_session_event(logger: logging.Logger, event: Any) -> None:
    """Log a drained session event with its full payload."""
    level = logging.WARNING if event.event_type in WARNING_EVENT_TYPES else logging.INFO
    log_with_context(
        logger, level,
        f"Assessment event {event.event_type}",
        person_id=event.person_id,
        action=event.event_type.lower(),
        session_id=event.session_id,
        event=event.to_dict(),
    )
