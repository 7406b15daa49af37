"""
WEBHOOK SECURITY
================
Authenticity checks for inbound CMS webhook callbacks.
"""

# FLOW:
# - extract() runs size, header, timestamp and signature checks in order;
#   the first failure wins.
# - failure_status() maps a failure to 401 (signature) or 400 (everything else).
# HOW:
# - HMAC-SHA256 over the raw body bytes, compared in constant time.
# - Timestamps are epoch milliseconds with a bounded past/future window.

from __future__ import annotations

import hashlib
import hmac
import json
import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Union

from Security.security_config import WebhookPolicy

INVALID_SIGNATURE = "Invalid signature"
_TIMESTAMP = re.compile(r"-?[0-9]+")


@dataclass(frozen=True)
class WebhookData:
    payload: str
    signature: str
    timestamp: str
    body: Any


@dataclass(frozen=True)
class WebhookExtraction:
    valid: bool
    error: Optional[str] = None
    data: Optional[WebhookData] = None


def constant_time_compare(a: str, b: str) -> bool:
    left = a.encode("utf-8")
    right = b.encode("utf-8")
    if len(left) != len(right):
        return False
    result = 0
    for x, y in zip(left, right):
        result |= x ^ y
    return result == 0


def compute_signature(payload: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


class WebhookVerifier:
    def __init__(self, policy: WebhookPolicy, clock: Callable[[], float] = time.time):
        self.policy = policy
        self._clock = clock

    def validate_payload_size(self, raw_body: bytes) -> Optional[str]:
        size = len(raw_body)
        if size > self.policy.max_payload_bytes:
            return f"Payload too large: {size} bytes (max: {self.policy.max_payload_bytes})"
        return None

    def validate_headers(self, headers: Mapping[str, str]) -> list[str]:
        errors = [
            f"Missing required header: {name}" for name in self.policy.required_headers if not headers.get(name)
        ]
        content_type = headers.get("content-type")
        if content_type and "application/json" not in content_type.lower():
            errors.append("Invalid content-type - expected application/json")
        return errors

    def validate_timestamp(self, timestamp: str) -> Optional[str]:
        timestamp = timestamp.strip() if isinstance(timestamp, str) else ""
        if not _TIMESTAMP.fullmatch(timestamp):
            return "Invalid timestamp format"
        try:
            timestamp_ms = int(timestamp)
        except ValueError:
            return "Invalid timestamp format"

        # integer milliseconds only
        age_ms = int(self._clock() * 1000) - timestamp_ms
        if age_ms > self.policy.max_age_seconds * 1000:
            return "Timestamp too old - possible replay attack"
        if age_ms < -self.policy.max_future_seconds * 1000:
            return "Timestamp too far in future - possible clock skew"
        return None

    def validate_signature(self, raw_body: bytes, signature: str) -> Optional[str]:
        if not signature or not self.policy.secret:
            return "Missing signature or secret"
        expected = compute_signature(raw_body, self.policy.secret)
        if not constant_time_compare(signature.strip().lower(), expected):
            return INVALID_SIGNATURE
        return None

    def extract(self, headers: Mapping[str, str], raw_body: Union[bytes, str]) -> WebhookExtraction:
        if isinstance(raw_body, str):
            raw_body = raw_body.encode("utf-8")
        headers = {k.lower(): v for k, v in headers.items()}

        error = self.validate_payload_size(raw_body)
        if error:
            return WebhookExtraction(False, error)

        header_errors = self.validate_headers(headers)
        if header_errors:
            return WebhookExtraction(False, ", ".join(header_errors))

        signature = headers[self.policy.signature_header]
        timestamp = headers[self.policy.timestamp_header]

        error = self.validate_timestamp(timestamp)
        if error:
            return WebhookExtraction(False, error)

        error = self.validate_signature(raw_body, signature)
        if error:
            return WebhookExtraction(False, error)

        payload = raw_body.decode("utf-8", errors="replace")
        try:
            body = json.loads(payload)
        except ValueError:
            return WebhookExtraction(False, "Invalid JSON payload")
        if not isinstance(body, dict):
            return WebhookExtraction(False, "Invalid JSON payload")

        return WebhookExtraction(
            True,
            data=WebhookData(payload=payload, signature=signature, timestamp=timestamp, body=body),
        )


def failure_status(error: Optional[str]) -> int:
    return 401 if error in (INVALID_SIGNATURE, "Missing signature or secret") else 400
