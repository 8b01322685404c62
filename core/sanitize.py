"""
core/sanitize.py -- Input sanitization for values later rendered as HTML.

Defense in depth only. Every query in the service uses bound parameters; this
module exists because product names and SKUs are echoed back into the browser
UI, where stray markup or inline handlers would execute.

Every string value goes through, in order:
  1. trim surrounding whitespace
  2. strip "<" and ">"
  3. strip "javascript:" (case-insensitive)
  4. strip "on<word>=" event handler prefixes (case-insensitive)

Steps 2-4 repeat until the value stops changing, so stripping one fragment can
never assemble another one out of the leftovers ("javajavascript:script:").
That loop is what makes sanitize() idempotent.

Non-string values pass through untouched.
"""

from __future__ import annotations

import re
from typing import Any

_ANGLE_BRACKETS = re.compile(r"[<>]")
_JS_PROTOCOL = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER = re.compile(r"on\w+=", re.IGNORECASE)


def _strip_once(value: str) -> str:
    value = _ANGLE_BRACKETS.sub("", value)
    value = _JS_PROTOCOL.sub("", value)
    return _EVENT_HANDLER.sub("", value)


def sanitize_string(value: str) -> str:
    """Return value trimmed and stripped of markup/script fragments."""
    value = value.strip()
    while True:
        cleaned = _strip_once(value).strip()
        if cleaned == value:
            return cleaned
        value = cleaned


def sanitize(value: Any) -> Any:
    """Sanitize a single input value. Non-strings are returned unchanged."""
    if isinstance(value, str):
        return sanitize_string(value)
    return value


def sanitize_mapping(data: Any) -> Any:
    """Sanitize every top-level string value of a mapping.

    Used for request bodies, path params and query params. Anything that is
    not a dict (a JSON list, a bare number) is returned as-is so the schema
    can report it as a validation error.
    """
    if not isinstance(data, dict):
        return data
    return {key: sanitize(value) for key, value in data.items()}
