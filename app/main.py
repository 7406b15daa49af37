import datetime
import logging
import time
from pathlib import Path
from typing import Callable, Mapping, Optional

from fastapi import FastAPI, Request

from Security.activity_logging import ActivityLoggingMiddleware
from Security.csrf_protection import InMemoryCSRFTokenStore, TokenStore
from Security.error_handling import register_error_handlers
from Security.rate_limiting import RateLimiter
from Security.security_config import (
    SecurityPolicy,
    ensure_valid_environment,
    get_bool,
    load_security_policy,
)

from .contact_pipeline import ContactPipeline
from .contact_routes import register_contact_routes
from .database import Base, engine
from .email_service import ContactNotifier
from .repository import SqlAlchemySubmissionRepository, SubmissionRepository

BASE_DIR = Path(__file__).resolve().parent
LOG_DIR = BASE_DIR.parent / "logs"
SCHEMA_SYNC_LOG = LOG_DIR / "schema_sync.log"

logger = logging.getLogger("contact.app")


def log_schema_sync(message: str) -> None:
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.datetime.utcnow().isoformat()
    with SCHEMA_SYNC_LOG.open("a", encoding="utf-8") as handle:
        handle.write(f"[{timestamp}Z] {message}\n")


def auto_sync_schema() -> None:
    """Create missing tables (no drops/changes)."""
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        log_schema_sync("Schema sync completed")
    except Exception as exc:
        logger.error("Schema sync failed: %s", exc)
        log_schema_sync(f"Schema sync failed: {exc}")
        raise


def create_app(
    policy: Optional[SecurityPolicy] = None,
    repository: Optional[SubmissionRepository] = None,
    notifier: Optional[ContactNotifier] = None,
    csrf_store: Optional[TokenStore] = None,
    clock: Callable[[], float] = time.time,
    env: Optional[Mapping[str, str]] = None,
) -> FastAPI:
    ensure_valid_environment(env)
    policy = policy or load_security_policy(env)

    sync_schema = repository is None
    repository = repository or SqlAlchemySubmissionRepository()
    notifier = notifier or ContactNotifier(rate_limiter=RateLimiter.from_policy(policy.email_rate_limit, clock))
    csrf_store = csrf_store or InMemoryCSRFTokenStore(policy.csrf, clock=clock)

    app = FastAPI(title="Contact Shield")
    app.state.pipeline = ContactPipeline(
        policy,
        repository,
        notifier,
        csrf_store=csrf_store,
        csrf_enabled=get_bool("CSRF_ENABLED", True, env),
        clock=clock,
    )
    app.state.token_limiter = RateLimiter.from_policy(policy.token_rate_limit, clock)

    app.add_middleware(ActivityLoggingMiddleware)
    register_contact_routes(app)
    register_error_handlers(app)

    # No-cache for API responses
    @app.middleware("http")
    async def add_no_cache_headers(request: Request, call_next):
        response = await call_next(request)
        if request.url.path.startswith("/api"):
            response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
            response.headers["Pragma"] = "no-cache"
        return response

    if sync_schema:
        @app.on_event("startup")
        def startup_event():
            auto_sync_schema()

    return app
