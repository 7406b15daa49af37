"""
INPUT VALIDATION & SANITIZATION
===============================
Free-text cleanup applied to every contact form field.
"""

# FLOW:
# - sanitize_text() trims, caps length, strips control characters, normalizes newlines.
# - contains_forbidden() flags unescaped markup characters.
# HOW:
# - Pure string transforms; callers decide what to do with the result.

from __future__ import annotations

import re
from typing import Any

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_LINE_ENDINGS = re.compile(r"\r\n?")


def sanitize_text(value: Any, max_length: int = 1000) -> str:
    if not value or not isinstance(value, str):
        return ""
    value = value.strip()[:max_length]
    value = _CONTROL_CHARS.sub("", value)
    return _LINE_ENDINGS.sub("\n", value)


def contains_forbidden(value: str, forbidden: str) -> bool:
    return any(ch in value for ch in forbidden)
