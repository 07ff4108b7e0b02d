"""Accounts Gate Logging Configuration."""

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any, Literal

from fastapi import Request

from accounts_gate.core.request_utils import get_client_ip

# Human-readable format for development
DEV_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

SECURITY_LOGGER_NAME = "accounts_gate.security"


class JSONFormatter(logging.Formatter):
    """Structured JSON log formatter that properly escapes all fields.

    Extra ``security_event`` payloads attached by log_security_event() are
    merged into the top-level object so log shippers can index them.
    """

    def __init__(self):
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        event = getattr(record, "security_event", None)
        if isinstance(event, dict):
            log_entry["security_event"] = event
        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def setup_logging(
    level: str = "INFO",
    format_type: Literal["structured", "dev"] = "dev",
) -> None:
    """Install a single stdout handler on the root logger.

    'structured' emits one JSON object per record (production); 'dev' emits
    aligned plain text. Security events are kept at INFO whatever ``level``
    is.
    """
    numeric_level = logging.getLevelName(level.upper())
    handler = logging.StreamHandler(sys.stdout)
    if format_type == "structured":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(DEV_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(numeric_level)

    logging.getLogger(SECURITY_LOGGER_NAME).setLevel(logging.INFO)

    # Per-request access lines
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if numeric_level == logging.DEBUG else logging.WARNING
    )

    logging.getLogger("accounts_gate").debug(
        f"Logging configured: level={level}, format={format_type}"
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the accounts_gate prefix."""
    return logging.getLogger(f"accounts_gate.{name}")


def log_security_event(
    event: str,
    request: Request,
    account_id: str | None = None,
    **extra: Any,
) -> dict[str, Any]:
    """Emit one structured security event and return the logged payload.

    Never pass tokens, secrets or request bodies in ``extra``.
    """
    payload: dict[str, Any] = {
        "event": event,
        "timestamp": datetime.now(UTC).isoformat(),
        "ip": get_client_ip(request),
        "user_agent": request.headers.get("User-Agent"),
        "account_id": account_id,
        "path": request.url.path,
        "method": request.method,
    }
    payload.update(extra)
    logging.getLogger(SECURITY_LOGGER_NAME).info(
        f"Security event: {event}", extra={"security_event": payload}
    )
    return payload
