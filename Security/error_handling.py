"""
ERROR HANDLING SECURITY
=======================
Return generic error messages to avoid data leakage.
"""

# FLOW:
# - handle_security_error() logs the real error and hands back a generic message.
# - register_error_handlers() masks anything that escapes a route.
# HOW:
# - Log level depends on the kind of failure; clients only ever see fixed text.

from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

GENERIC_ERROR_MESSAGE = "An error occurred while processing your request"

logger = logging.getLogger("security.errors")


@dataclass(frozen=True)
class SecurityErrorInfo:
    message: str
    log_level: int


def handle_security_error(error: BaseException, context: str) -> SecurityErrorInfo:
    text = str(error).lower()
    if "validation" in text or "rate limit" in text:
        level = logging.WARNING
    elif "spam" in text or "suspicious" in text:
        level = logging.INFO
    else:
        level = logging.ERROR
    logger.log(level, "Security error in %s: %s", context, error, exc_info=error if level >= logging.ERROR else None)
    return SecurityErrorInfo(message=GENERIC_ERROR_MESSAGE, log_level=level)


def register_error_handlers(app) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code >= 500:
            return JSONResponse({"error": "An error occurred"}, status_code=exc.status_code)
        if exc.status_code == 405:
            return JSONResponse({"error": "Method Not Allowed"}, status_code=405)
        return JSONResponse({"error": "Request failed"}, status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        handle_security_error(exc, request.url.path)
        return JSONResponse({"error": "An error occurred", "message": GENERIC_ERROR_MESSAGE}, status_code=500)
