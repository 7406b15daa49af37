from fastapi import Request

from Security.audit_trail import request_client_ip
from Security.rate_limiting import RateLimiter

from .contact_pipeline import ClientContext, ContactPipeline


def get_pipeline(request: Request) -> ContactPipeline:
    return request.app.state.pipeline


def get_token_limiter(request: Request) -> RateLimiter:
    return request.app.state.token_limiter


def get_client_context(request: Request) -> ClientContext:
    return ClientContext(
        ip_address=request_client_ip(request),
        user_agent=request.headers.get("user-agent", ""),
    )
