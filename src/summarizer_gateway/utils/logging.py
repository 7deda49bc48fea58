"""Logging configuration.

Plain ``logging`` carries the application log; ``structlog`` renders the
admission and usage events as JSON lines on the same stream.
"""

import logging
import sys
import structlog
from ..config import settings

SERVICE_NAME = "summarizer-gateway"

# Event fields that may hold key material
SECRET_FIELDS = ("api_key", "token", "admin_token")


def mask_email(email: str) -> str:
    """``alice@example.com`` -> ``a***@example.com``"""
    local, sep, domain = email.partition("@")
    if not sep:
        return f"{email[:1]}***"
    return f"{local[:1]}***@{domain}"


def redact_event(logger, method_name, event_dict):
    """Drop secrets from an event and mask demo identities."""
    for field in SECRET_FIELDS:
        value = event_dict.get(field)
        if value:
            event_dict[field] = f"{str(value)[:10]}..."

    if event_dict.get("kind") == "demo" and event_dict.get("ref"):
        event_dict["ref"] = mask_email(event_dict["ref"])

    return event_dict


def add_service(logger, method_name, event_dict):
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def setup_logging():
    """Set up standard and structured logging."""
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_service,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            redact_event,
            structlog.dev.set_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=False,
    )

    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stdout,
        level=level,
    )

    # Keep request-level chatter of the HTTP and model clients out of the log
    for noisy in ("httpx", "httpcore", "openai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str):
    """Get a structured event logger."""
    return structlog.get_logger(name)
