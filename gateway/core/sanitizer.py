"""
Content sanitization: best-effort removal of executable markup from free text.

Removes script blocks, inline event-handler attributes, ``javascript:`` URI
schemes, and iframe/object/embed elements. This is a denylist, not an
allowlist HTML parser; output is not guaranteed HTML-safe for rendering.

Passes repeat until the text stops changing, so fragments that reassemble
after one removal (``<scr<script></script>ipt>``) are removed as well and
``sanitize(sanitize(x)) == sanitize(x)`` holds for every input.
"""

import logging
import re
from typing import List

logger = logging.getLogger(__name__)

_FLAGS = re.IGNORECASE | re.DOTALL

# Order matters: whole elements first, then stray open/close tags.
_PATTERNS: List[re.Pattern] = [
    re.compile(r"<script\b[^>]*>.*?</script\s*>", _FLAGS),
    re.compile(r"<iframe\b[^>]*>.*?</iframe\s*>", _FLAGS),
    re.compile(r"<object\b[^>]*>.*?</object\s*>", _FLAGS),
    re.compile(r"</?(?:script|iframe|object|embed)\b[^>]*>", _FLAGS),
    # onclick="..." / onload='...' anywhere; "=" directly followed by a quote,
    # so prose like "one = 10" or "only=2" is left alone
    re.compile(r"(?<![\w-])on[a-z]+=(?:\"[^\"]*\"|'[^']*')", _FLAGS),
    re.compile(r"javascript\s*:", _FLAGS),
]

# Handler attributes inside a tag, unquoted ones included: <div onclick=go()>
_TAG_HANDLER = re.compile(r"(<[^<>]*?)\s+on[a-z]+\s*=\s*(?:\"[^\"]*\"|'[^']*'|[^\s>]+)", _FLAGS)


def _single_pass(text: str) -> str:
    for pattern in _PATTERNS:
        text = pattern.sub("", text)
    return _TAG_HANDLER.sub(r"\1", text)


def sanitize(text: str) -> str:
    """
    Strip executable constructs from user-supplied text.

    Every pattern only deletes characters, so each changing pass shortens the
    text and the loop terminates.
    """
    if not text:
        return text
    current = text
    while True:
        cleaned = _single_pass(current)
        if cleaned == current:
            break
        current = cleaned
    if current != text:
        logger.debug(
            "Sanitizer removed markup (length before=%s after=%s)", len(text), len(current)
        )
    return current
