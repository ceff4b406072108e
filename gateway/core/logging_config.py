"""Centralized logging configuration.

With the json format (default unless DEBUG=true), records are emitted as
structured JSON with consistent fields that log aggregators can parse without
regex. The text format is a human-readable fallback for local development.

The SensitiveDataFilter and RequestIdFilter are always attached to the root
handler regardless of format.
"""

import logging
import sys

from pythonjsonlogger.json import JsonFormatter

from gateway.core.logging_filters import RequestIdFilter, SensitiveDataFilter, set_key_prefix

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"


def _build_handler(log_format: str) -> logging.Handler:
    """Return a StreamHandler with the appropriate formatter."""
    handler = logging.StreamHandler(sys.stdout)

    if log_format == "json":
        formatter: logging.Formatter = JsonFormatter(
            fmt="%(asctime)s %(name)s %(levelname)s %(request_id)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
            rename_fields={"levelname": "level", "asctime": "timestamp"},
        )
    else:
        formatter = logging.Formatter(TEXT_FORMAT)

    handler.setFormatter(formatter)
    return handler


def configure_logging(log_level: str = "INFO", log_format: str = "json", key_prefix: str = "oline") -> None:
    """Configure root logger with structured output and secrets redaction.

    Call once at application startup.
    """
    set_key_prefix(key_prefix)

    root = logging.getLogger()
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Remove any existing handlers to avoid duplicate output
    root.handlers.clear()

    handler = _build_handler(log_format)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    root.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
