"""
Logging setup and security audit helpers.

Application modules log through get_logger(__name__). Security relevant
events (authentication failures, CSRF mismatches, rejected uploads, task
operations) go through the helpers below so they share one shape:
event name, UTC timestamp, IP, user-agent and a stable reason string.
"""
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from app.config import get_settings

SENSITIVE_FIELDS = {
    "password",
    "token",
    "secret",
    "authorization",
    "cookie",
    "usertokens",
    "access_token",
    "refresh_token",
}

CRITICAL_EVENTS = {
    "authentication_failure",
    "csrf_attempt",
    "xss_attempt",
    "file_upload_violation",
}

HANDLER_NAME = "transcript_tasks"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

security_logger = logging.getLogger("app.security")


def redact(details: dict) -> dict:
    """Return a copy of details with sensitive values replaced."""
    return {
        key: "[REDACTED]" if key.lower() in SENSITIVE_FIELDS else value
        for key, value in details.items()
    }


def setup_logging() -> None:
    """
    Configure the root logger once at startup.

    Production defaults to WARNING unless LOG_LEVEL says otherwise.
    """
    settings = get_settings()
    level_name = settings.log_level.upper()
    if settings.is_production and level_name == "INFO":
        level_name = "WARNING"

    root = logging.getLogger()
    root.setLevel(getattr(logging, level_name, logging.INFO))

    if not any(h.get_name() == HANDLER_NAME for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.set_name(HANDLER_NAME)
        root.addHandler(handler)

    # Keep third-party chatter down
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a module logger."""
    return logging.getLogger(name)


def _format(details: dict) -> str:
    return " ".join(f"{k}={v}" for k, v in redact(details).items())


def log_security_event(event: str, **details: Any) -> None:
    """Log a security event; critical events are also logged at ERROR."""
    details = {
        "event": event,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        **details,
    }
    if event in CRITICAL_EVENTS:
        security_logger.error(f"Critical security event: {event} {_format(details)}")
    else:
        security_logger.warning(f"Security event: {event} {_format(details)}")


def log_authentication(action: str, **details: Any) -> None:
    """Log an authentication attempt (action is 'success' or 'failed')."""
    if action == "failed":
        log_security_event("authentication_failure", action=action, **details)
    else:
        security_logger.info(f"Authentication {action} {_format(details)}")


def log_file_upload(success: bool, **details: Any) -> None:
    """Log an upload decision; rejections count as violations."""
    if not success:
        log_security_event("file_upload_violation", success=False, **details)
    else:
        security_logger.info(f"File upload processed {_format(details)}")


def log_task_operation(operation: str, **details: Any) -> None:
    security_logger.info(f"Task operation: {operation} {_format(details)}")
