"""
SECURITY CONFIG
===============
Centralized security settings and contact-form policy loaded from environment.
"""

# FLOW:
# - Load the active env file once at import.
# - load_security_policy() builds the SecurityPolicy tree handed to each component.
# - ensure_valid_environment() runs at startup and refuses to boot without secrets.
# HOW:
# - dotenv picks the active env file, typed getters apply defaults.

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Mapping

import dotenv


class ConfigurationError(RuntimeError):
    """Raised at startup when required secrets are missing or implausible."""


def get_bool(name: str, default: bool = False, env: Mapping[str, str] | None = None) -> bool:
    env = os.environ if env is None else env
    return str(env.get(name, str(default))).strip().lower() in {"1", "true", "yes", "on"}


def get_int(name: str, default: int, env: Mapping[str, str] | None = None) -> int:
    env = os.environ if env is None else env
    try:
        return int(env.get(name, str(default)))
    except (TypeError, ValueError):
        return default


def get_list(name: str, default: list[str], env: Mapping[str, str] | None = None) -> list[str]:
    env = os.environ if env is None else env
    raw = env.get(name)
    if not raw:
        return default
    return [item.strip() for item in raw.split(",") if item.strip()]


def _env_name() -> str:
    env = os.getenv("APP_ENV", "").strip().lower()
    if env in {"prod", "production"}:
        return ".env.production"
    return ".env.localhost"


def _env_path() -> str:
    root = os.path.dirname(os.path.dirname(__file__))
    return os.path.join(root, _env_name())


dotenv.load_dotenv(_env_path())

if get_bool("APP_ENV_LOG", False):
    logging.getLogger("security.env").info("Active env file: %s", _env_path())


def feature_enabled(feature_id: str, default: bool = True) -> bool:
    """Runtime toggle lookup, e.g. feature_enabled("audit-trail")."""
    env_key = feature_id.upper().replace("-", "_") + "_ENABLED"
    return get_bool(env_key, default)


# Shared by the validator (strict mode) and the spam scorer.
DISPOSABLE_EMAIL_DOMAINS = (
    "10minutemail.com",
    "tempmail.org",
    "tempmail.com",
    "guerrillamail.com",
    "mailinator.com",
    "throwaway.email",
)

WEBHOOK_SECRET_ENV = "SANITY_CONTACT_WEBHOOK_SECRET"
MIN_WEBHOOK_SECRET_LENGTH = 16


@dataclass(frozen=True)
class ValidationPolicy:
    max_name_length: int = 100
    max_email_length: int = 254
    max_subject_length: int = 200
    max_message_length: int = 5000
    min_name_length: int = 2
    min_subject_length: int = 3
    min_message_length: int = 10
    max_token_length: int = 128
    forbidden_characters: str = "<>\"'&"
    reject_disposable_email: bool = False
    disposable_domains: tuple[str, ...] = DISPOSABLE_EMAIL_DOMAINS


@dataclass(frozen=True)
class SpamPolicy:
    threshold: int = 50
    max_score: int = 100
    name_digit_weight: int = 20
    subject_keyword_weight: int = 30
    money_bait_weight: int = 25
    marketing_weight: int = 20
    link_weight: int = 15
    disposable_domain_weight: int = 40
    subject_keywords: tuple[str, ...] = ("viagra", "casino", "loan")
    money_phrases: tuple[str, ...] = ("$$", "make money")
    marketing_phrases: tuple[str, ...] = ("click here", "buy now")
    link_markers: tuple[str, ...] = ("http://", "https://")
    disposable_domains: tuple[str, ...] = DISPOSABLE_EMAIL_DOMAINS


@dataclass(frozen=True)
class CSRFPolicy:
    token_bytes: int = 32
    session_duration_seconds: int = 30 * 60
    max_tokens_per_session: int = 5
    cleanup_interval_seconds: int = 5 * 60


@dataclass(frozen=True)
class RateLimitPolicy:
    window_seconds: float = 60
    max_requests: int = 10


@dataclass(frozen=True)
class WebhookPolicy:
    secret: str = ""
    signature_header: str = "x-sanity-signature"
    timestamp_header: str = "x-sanity-timestamp"
    max_payload_bytes: int = 1024 * 1024
    max_age_seconds: int = 5 * 60
    max_future_seconds: int = 60
    document_type: str = "contactSubmission"

    @property
    def required_headers(self) -> tuple[str, ...]:
        return (self.signature_header, self.timestamp_header, "content-type")


@dataclass(frozen=True)
class SecurityPolicy:
    validation: ValidationPolicy = field(default_factory=ValidationPolicy)
    spam: SpamPolicy = field(default_factory=SpamPolicy)
    csrf: CSRFPolicy = field(default_factory=CSRFPolicy)
    webhook: WebhookPolicy = field(default_factory=WebhookPolicy)
    submit_rate_limit: RateLimitPolicy = field(default_factory=lambda: RateLimitPolicy(60, 10))
    token_rate_limit: RateLimitPolicy = field(default_factory=lambda: RateLimitPolicy(60, 30))
    webhook_ip_rate_limit: RateLimitPolicy = field(default_factory=lambda: RateLimitPolicy(60, 10))
    webhook_endpoint_rate_limit: RateLimitPolicy = field(default_factory=lambda: RateLimitPolicy(60, 100))
    email_rate_limit: RateLimitPolicy = field(default_factory=lambda: RateLimitPolicy(3600, 100))


def _rate_limit(prefix: str, default: RateLimitPolicy, env: Mapping[str, str]) -> RateLimitPolicy:
    return RateLimitPolicy(
        window_seconds=get_int(f"{prefix}_WINDOW", int(default.window_seconds), env),
        max_requests=get_int(f"{prefix}_MAX", default.max_requests, env),
    )


def load_security_policy(env: Mapping[str, str] | None = None) -> SecurityPolicy:
    env = os.environ if env is None else env
    base = SecurityPolicy()
    domains = tuple(
        d.lower() for d in get_list("DISPOSABLE_EMAIL_DOMAINS", list(DISPOSABLE_EMAIL_DOMAINS), env)
    )

    validation = ValidationPolicy(
        reject_disposable_email=get_bool("REJECT_DISPOSABLE_EMAIL", False, env),
        disposable_domains=domains,
    )
    spam = SpamPolicy(
        threshold=get_int("SPAM_THRESHOLD", base.spam.threshold, env),
        disposable_domains=domains,
    )
    csrf = CSRFPolicy(
        session_duration_seconds=get_int("CSRF_SESSION_DURATION", base.csrf.session_duration_seconds, env),
        max_tokens_per_session=get_int("CSRF_MAX_TOKENS_PER_SESSION", base.csrf.max_tokens_per_session, env),
        cleanup_interval_seconds=get_int("CSRF_CLEANUP_INTERVAL", base.csrf.cleanup_interval_seconds, env),
    )
    webhook = WebhookPolicy(
        secret=(env.get(WEBHOOK_SECRET_ENV) or "").strip(),
        max_payload_bytes=get_int("WEBHOOK_MAX_PAYLOAD_BYTES", base.webhook.max_payload_bytes, env),
        max_age_seconds=get_int("WEBHOOK_MAX_AGE", base.webhook.max_age_seconds, env),
        max_future_seconds=get_int("WEBHOOK_MAX_FUTURE", base.webhook.max_future_seconds, env),
    )
    return SecurityPolicy(
        validation=validation,
        spam=spam,
        csrf=csrf,
        webhook=webhook,
        submit_rate_limit=_rate_limit("SUBMIT_RATE_LIMIT", base.submit_rate_limit, env),
        token_rate_limit=_rate_limit("TOKEN_RATE_LIMIT", base.token_rate_limit, env),
        webhook_ip_rate_limit=_rate_limit("WEBHOOK_IP_RATE_LIMIT", base.webhook_ip_rate_limit, env),
        webhook_endpoint_rate_limit=_rate_limit(
            "WEBHOOK_ENDPOINT_RATE_LIMIT", base.webhook_endpoint_rate_limit, env
        ),
        email_rate_limit=_rate_limit("EMAIL_RATE_LIMIT", base.email_rate_limit, env),
    )


def validate_environment(env: Mapping[str, str] | None = None) -> list[str]:
    """Return every startup configuration problem found in ``env``."""
    env = os.environ if env is None else env
    errors: list[str] = []

    for var_name in (WEBHOOK_SECRET_ENV, "DATABASE_URL"):
        if not (env.get(var_name) or "").strip():
            errors.append(f"Missing required environment variable: {var_name}")

    secret = (env.get(WEBHOOK_SECRET_ENV) or "").strip()
    if secret and len(secret) < MIN_WEBHOOK_SECRET_LENGTH:
        errors.append(f"{WEBHOOK_SECRET_ENV} appears to be invalid (too short)")

    return errors


def ensure_valid_environment(env: Mapping[str, str] | None = None) -> None:
    errors = validate_environment(env)
    if errors:
        raise ConfigurationError("; ".join(errors))
