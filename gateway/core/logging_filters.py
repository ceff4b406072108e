"""Logging filters applied to every gateway log record.

``SensitiveDataFilter`` redacts bearer credentials and secret-named fields
before they reach any sink. The value of any ``extra`` key that matches the
sensitive-name list becomes ``[REDACTED]``; message strings are scrubbed with
regexes, including raw ``<prefix>_<key_id>.<secret>`` tokens.

``RequestIdFilter`` stamps each record with the current request id so log
lines from background audit writes can be correlated with their request.

Usage::

    import logging
    from gateway.core.logging_filters import SensitiveDataFilter

    logging.getLogger().addFilter(SensitiveDataFilter())
"""

import logging
import re
from typing import ClassVar, List

# Keys whose values are always redacted (case-insensitive substring match on field name)
_SENSITIVE_FIELD_NAMES: tuple[str, ...] = (
    "api_key",
    "apikey",
    "password",
    "secret",
    "token",
    "authorization",
    "credential",
    "key_hash",
    "bearer",
)


def _build_patterns(key_prefix: str) -> List[re.Pattern]:
    return [
        # HTTP Authorization header value
        re.compile(r"(Authorization:\s*)(Bearer\s+\S+)", re.IGNORECASE),
        # Bare "Bearer <token>" fragments
        re.compile(r"(Bearer\s+)(\S+)"),
        # Key-value pairs like secret=abc123 or "token": "abc123"
        re.compile(
            r'("?(?:api_key|apikey|password|secret|token|authorization)"?\s*[=:]\s*["\']?)([^"\'&\s,}{]+)',
            re.IGNORECASE,
        ),
        # Raw credentials (<prefix>_<key_id>.<secret>)
        re.compile(r"\b" + re.escape(key_prefix) + r"_[A-Za-z0-9_\-]+\.[A-Za-z0-9_\-]{8,}"),
    ]


_SENSITIVE_PATTERNS: List[re.Pattern] = _build_patterns("oline")


def set_key_prefix(key_prefix: str) -> None:
    """Re-point raw-credential redaction at a non-default key prefix."""
    global _SENSITIVE_PATTERNS
    _SENSITIVE_PATTERNS = _build_patterns(key_prefix)


def _redact_string(value: str) -> str:
    """Apply all pattern-based redactions to a string."""
    for pattern in _SENSITIVE_PATTERNS:
        if pattern.groups == 0:
            value = pattern.sub("[REDACTED]", value)
        else:
            # Keep group 1 (the label) and replace the secret value
            value = pattern.sub(lambda m: m.group(1) + "[REDACTED]", value)
    return value


def _is_sensitive_key(key: str) -> bool:
    key_lower = key.lower()
    return any(name in key_lower for name in _SENSITIVE_FIELD_NAMES)


class SensitiveDataFilter(logging.Filter):
    """Logging filter that scrubs secrets from log records before emission."""

    # Attributes every LogRecord has; never treated as ``extra`` fields
    _RESERVED: ClassVar[frozenset] = frozenset(
        vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
    ) | {"message", "asctime", "request_id"}

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = _redact_string(record.msg)

        if record.args:
            if isinstance(record.args, dict):
                record.args = {
                    k: "[REDACTED]" if _is_sensitive_key(k) else (
                        _redact_string(v) if isinstance(v, str) else v
                    )
                    for k, v in record.args.items()
                }
            elif isinstance(record.args, tuple):
                record.args = tuple(
                    _redact_string(a) if isinstance(a, str) else a for a in record.args
                )

        for attr in list(vars(record).keys()):
            if attr.startswith("_") or attr in self._RESERVED:
                continue
            if _is_sensitive_key(attr):
                setattr(record, attr, "[REDACTED]")
            elif isinstance(getattr(record, attr), str):
                setattr(record, attr, _redact_string(getattr(record, attr)))

        return True  # Never suppress, only mutate


class RequestIdFilter(logging.Filter):
    """Adds ``request_id`` from the request-scoped ContextVar to each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        from gateway.middleware.request_id import request_id_var

        if not getattr(record, "request_id", None):
            record.request_id = request_id_var.get() or "-"
        return True
