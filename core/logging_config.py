"""JSON logging for the scheduler.

Services log domain events (``cascade_applied``, ``schedule_swap``, ...) with
their fields passed through ``extra``. The API tags every record emitted while
a request is handled with that request's id.
"""

from __future__ import annotations

import contextvars
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

HANDLER_NAME = "scheduler-json"
SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")
QUIET_LOGGERS = ("sqlalchemy.engine", "alembic")

_RESERVED = set(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}
_request_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("request_id", default=None)


def get_request_id() -> Optional[str]:
    return _request_id.get()


def set_request_id(value: Optional[str]) -> contextvars.Token:
    return _request_id.set(value)


def reset_request_id(token: contextvars.Token) -> None:
    _request_id.reset(token)


def new_request_id() -> str:
    return uuid4().hex


def event_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Fields a caller attached through ``extra``."""
    return {k: v for k, v in record.__dict__.items() if k not in _RESERVED and not k.startswith("_")}


class JSONFormatter(logging.Formatter):
    """Render a record as one JSON line.

    Event fields go under ``context`` so they never collide with the envelope.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "source": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        request_id = get_request_id()
        if request_id:
            entry["request_id"] = request_id
        if record.exc_info and record.exc_info[1] is not None:
            error = record.exc_info[1]
            entry["exception"] = {
                "type": type(error).__name__,
                "message": str(error),
                "traceback": self.formatException(record.exc_info),
            }
        context = event_fields(record)
        if context:
            entry["context"] = context
        return json.dumps(entry, default=str)


def _installed_handler(root: logging.Logger) -> Optional[logging.Handler]:
    for handler in root.handlers:
        if handler.get_name() == HANDLER_NAME:
            return handler
    return None


def setup_logging(level: str = "INFO", route_server_logs: bool = False) -> logging.Handler:
    """Install the JSON stdout handler on the root logger once.

    Calling again only updates the level. With ``route_server_logs`` the
    uvicorn loggers drop their own handlers and propagate to root.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    handler = _installed_handler(root)
    if handler is None:
        handler = logging.StreamHandler(sys.stdout)
        handler.set_name(HANDLER_NAME)
        handler.setFormatter(JSONFormatter())
        root.addHandler(handler)

    if route_server_logs:
        for name in SERVER_LOGGERS:
            server_logger = logging.getLogger(name)
            server_logger.handlers.clear()
            server_logger.propagate = True
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return handler


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
