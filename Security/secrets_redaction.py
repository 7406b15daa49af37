"""
SECRETS REDACTION
=================
Utility to mask secrets in logs.
"""

# FLOW:
# - redact() masks token, signature and secret values before logging.
# HOW:
# - Replaces sensitive values with ***.

from __future__ import annotations

import re

from Security.security_config import feature_enabled


_SECRET_PATTERNS = [
    re.compile(r"((?:csrf_?)?token=)([^&\s]+)", re.IGNORECASE),
    re.compile(r"(signature=)([^&\s]+)", re.IGNORECASE),
    re.compile(r"(secret=)([^&\s]+)", re.IGNORECASE),
    re.compile(r"(password=)([^&\s]+)", re.IGNORECASE),
    re.compile(r"(key=)([^&\s]+)", re.IGNORECASE),
]


def redact(value: str) -> str:
    if not value or not feature_enabled("secrets-redaction", True):
        return value
    for pattern in _SECRET_PATTERNS:
        value = pattern.sub(r"\1***", value)
    return value


def mask_token(token: str | None, keep: int = 6) -> str:
    if not token:
        return ""
    return token[:keep] + "***"
