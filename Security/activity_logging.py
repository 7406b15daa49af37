"""
ACTIVITY TRACKING
=================
Structured request logging for monitoring.

FLOW:
- Middleware assigns (or echoes) x-request-id and binds the audit context.
- Logs each request with status, client ip and duration.
- Added to the FastAPI middleware stack in app/main.py.

HOW:
- Writes key=value lines to logs/security.log (or stderr when file
  logging is disabled).
"""

from __future__ import annotations

import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware

from Security.audit_trail import (
    clear_audit_request_context,
    get_security_logger,
    request_client_ip,
    set_audit_request_context,
)
from Security.metrics import increment_feature_event
from Security.secrets_redaction import redact


class ActivityLoggingMiddleware(BaseHTTPMiddleware):
    def __init__(self, app):
        super().__init__(app)
        self.logger = get_security_logger("security.activity", "security.log")

    async def dispatch(self, request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id
        token = set_audit_request_context(request, request_id)
        start = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            clear_audit_request_context(token)
        duration_ms = (time.perf_counter() - start) * 1000

        response.headers["x-request-id"] = request_id
        increment_feature_event("activity-logging")
        query = request.url.query
        self.logger.info(
            "method=%s path=%s query=%s status=%s request_id=%s ip=%s duration_ms=%.2f",
            request.method,
            request.url.path,
            redact(query) if query else "",
            response.status_code,
            request_id,
            request_client_ip(request),
            duration_ms,
        )
        return response
