import json
import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from Security.audit_trail import audit, request_client_ip
from Security.error_handling import GENERIC_ERROR_MESSAGE, handle_security_error
from Security.metrics import metrics_enabled, render_latest

from .app_context import get_client_context, get_pipeline, get_token_limiter
from .contact_pipeline import ClientContext, ContactPipeline, OutcomeKind

RATE_LIMITED_MESSAGE = "Too many requests. Please try again later."
INVALID_WEBHOOK_MESSAGE = "Invalid webhook request"

_STATUS_CODES = {
    OutcomeKind.ACCEPTED: 200,
    OutcomeKind.INVALID: 400,
    OutcomeKind.UNAUTHORIZED: 401,
    OutcomeKind.RATE_LIMITED: 429,
    OutcomeKind.ERROR: 500,
}


async def _read_json(request: Request):
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None


async def read_limited_body(request: Request, limit: int) -> Optional[bytes]:
    """Request body, or None as soon as it is known to exceed ``limit`` bytes."""
    declared = (request.headers.get("content-length") or "").strip()
    if declared.isascii() and declared.isdigit():
        if len(declared) > 18 or int(declared) > limit:
            return None

    chunks = []
    size = 0
    async for chunk in request.stream():
        size += len(chunk)
        if size > limit:
            return None
        chunks.append(chunk)
    return b"".join(chunks)


def register_contact_routes(app):
    @app.post("/api/submit-contact")
    async def submit_contact(
        request: Request,
        pipeline: ContactPipeline = Depends(get_pipeline),
        client: ClientContext = Depends(get_client_context),
    ):
        data = await _read_json(request)
        outcome = await pipeline.submit(data, client)
        status_code = _STATUS_CODES[outcome.kind]

        if outcome.kind == OutcomeKind.ACCEPTED:
            return {
                "success": True,
                "message": "Contact form submitted successfully",
                "submissionId": outcome.submission_id,
            }
        if outcome.kind == OutcomeKind.INVALID:
            return JSONResponse({"error": "Validation failed", "details": outcome.errors}, status_code=400)
        if outcome.kind == OutcomeKind.RATE_LIMITED:
            return JSONResponse({"error": RATE_LIMITED_MESSAGE}, status_code=429)
        return JSONResponse(
            {"error": "Failed to submit contact form", "message": GENERIC_ERROR_MESSAGE},
            status_code=status_code,
        )

    @app.get("/api/csrf-token")
    async def csrf_token(
        pipeline: ContactPipeline = Depends(get_pipeline),
        client: ClientContext = Depends(get_client_context),
        token_limiter=Depends(get_token_limiter),
    ):
        if not token_limiter.is_allowed(client.ip_address):
            audit("rate-limit.csrf-token", f"ip={client.ip_address}", logging.WARNING)
            return JSONResponse({"error": RATE_LIMITED_MESSAGE}, status_code=429)
        try:
            token, session_id = pipeline.issue_token(client)
        except Exception as exc:
            handle_security_error(exc, "csrf-token")
            return JSONResponse({"error": "Failed to generate security token"}, status_code=500)

        return {
            "token": token,
            "sessionId": session_id,
            "expiresIn": pipeline.policy.csrf.session_duration_seconds * 1000,
        }

    @app.post("/api/contact-webhook")
    async def contact_webhook(
        request: Request,
        pipeline: ContactPipeline = Depends(get_pipeline),
    ):
        client_ip = request_client_ip(request)
        limit = pipeline.policy.webhook.max_payload_bytes
        raw_body = await read_limited_body(request, limit)
        if raw_body is None:
            audit("webhook.rejected", f"ip={client_ip} error=Payload too large (max: {limit})", logging.WARNING)
            return JSONResponse({"error": INVALID_WEBHOOK_MESSAGE}, status_code=400)

        outcome = await pipeline.process_webhook(request.headers, raw_body, client_ip)
        status_code = _STATUS_CODES[outcome.kind]

        if outcome.kind == OutcomeKind.ACCEPTED:
            return {
                "success": True,
                "message": "Contact submission processed successfully",
                "submissionId": outcome.submission_id,
            }
        if outcome.kind == OutcomeKind.RATE_LIMITED:
            return JSONResponse({"error": RATE_LIMITED_MESSAGE}, status_code=429)
        if outcome.kind in (OutcomeKind.INVALID, OutcomeKind.UNAUTHORIZED):
            return JSONResponse({"error": INVALID_WEBHOOK_MESSAGE}, status_code=status_code)
        return JSONResponse(
            {"error": "Failed to process contact submission", "message": GENERIC_ERROR_MESSAGE},
            status_code=status_code,
        )

    @app.get("/metrics")
    def metrics():
        if not metrics_enabled():
            raise StarletteHTTPException(status_code=404)
        payload, content_type = render_latest()
        return Response(content=payload, media_type=content_type)
