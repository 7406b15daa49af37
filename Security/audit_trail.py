"""
AUDIT TRAIL
===========
Structured security events for the contact pipeline.
"""

# FLOW:
# - ActivityLoggingMiddleware binds ip/request id/method/path per request.
# - audit() emits one key=value line per security event with that context.
# HOW:
# - contextvars carries the request context; a rotating file or stderr handler writes it.

from __future__ import annotations

import contextvars
import logging
import os
from logging.handlers import RotatingFileHandler

from Security.metrics import increment_feature_event
from Security.secrets_redaction import redact
from Security.security_config import feature_enabled, get_bool


_audit_ctx: contextvars.ContextVar[dict[str, str] | None] = contextvars.ContextVar("audit_ctx", default=None)


def get_security_logger(name: str, filename: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    if get_bool("SECURITY_LOG_TO_FILE", True):
        log_dir = os.getenv("SECURITY_LOG_DIR", "logs")
        os.makedirs(log_dir, exist_ok=True)
        handler: logging.Handler = RotatingFileHandler(
            os.path.join(log_dir, filename), maxBytes=2_000_000, backupCount=3
        )
    else:
        handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))

    logger.setLevel(logging.INFO)
    logger.addHandler(handler)
    return logger


def request_client_ip(request) -> str:
    xff = (request.headers.get("x-forwarded-for") or "").strip()
    if xff:
        return xff.split(",")[0].strip()
    xrip = (request.headers.get("x-real-ip") or "").strip()
    if xrip:
        return xrip
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def set_audit_request_context(request, request_id: str = ""):
    payload = {
        "ip": request_client_ip(request),
        "request_id": request_id,
        "path": str(request.url.path or "").strip(),
        "method": str(request.method or "").strip(),
    }
    return _audit_ctx.set(payload)


def clear_audit_request_context(token) -> None:
    _audit_ctx.reset(token)


def audit(event: str, details: str | None = None, level: int = logging.INFO) -> None:
    if not feature_enabled("audit-trail", True):
        return
    ctx = _audit_ctx.get() or {}
    get_security_logger("security.audit", "audit.log").log(
        level,
        "event=%s ip=%s request_id=%s method=%s path=%s details=%s",
        event,
        ctx.get("ip", "-"),
        ctx.get("request_id", ""),
        ctx.get("method", ""),
        ctx.get("path", ""),
        redact(details or ""),
    )
    increment_feature_event(event.split(".", 1)[0])
