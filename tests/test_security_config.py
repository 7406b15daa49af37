import pytest

from Security.security_config import (
    ConfigurationError,
    ensure_valid_environment,
    feature_enabled,
    get_bool,
    get_int,
    get_list,
    load_security_policy,
    validate_environment,
)

GOOD_ENV = {"SANITY_CONTACT_WEBHOOK_SECRET": "0123456789abcdef", "DATABASE_URL": "sqlite://"}


def test_typed_getters():
    env = {"FLAG": "yes", "COUNT": "7", "BAD": "seven", "ITEMS": "a, b,,c"}

    assert get_bool("FLAG", False, env) is True
    assert get_bool("MISSING", True, env) is True
    assert get_int("COUNT", 1, env) == 7
    assert get_int("BAD", 3, env) == 3
    assert get_list("ITEMS", [], env) == ["a", "b", "c"]
    assert get_list("MISSING", ["x"], env) == ["x"]


def test_default_policy():
    policy = load_security_policy(GOOD_ENV)

    assert policy.spam.threshold == 50
    assert policy.csrf.session_duration_seconds == 1800
    assert policy.csrf.max_tokens_per_session == 5
    assert policy.submit_rate_limit.max_requests == 10
    assert policy.token_rate_limit.max_requests == 30
    assert policy.webhook_endpoint_rate_limit.max_requests == 100
    assert policy.email_rate_limit.window_seconds == 3600
    assert policy.webhook.secret == "0123456789abcdef"
    assert policy.validation.reject_disposable_email is False


def test_policy_overrides():
    env = {
        **GOOD_ENV,
        "SPAM_THRESHOLD": "70",
        "SUBMIT_RATE_LIMIT_MAX": "3",
        "SUBMIT_RATE_LIMIT_WINDOW": "120",
        "REJECT_DISPOSABLE_EMAIL": "true",
        "DISPOSABLE_EMAIL_DOMAINS": "Junk.example, trash.example",
    }

    policy = load_security_policy(env)

    assert policy.spam.threshold == 70
    assert policy.submit_rate_limit.max_requests == 3
    assert policy.submit_rate_limit.window_seconds == 120
    assert policy.validation.reject_disposable_email is True
    assert policy.spam.disposable_domains == ("junk.example", "trash.example")


def test_validate_environment():
    assert validate_environment(GOOD_ENV) == []
    assert validate_environment({}) == [
        "Missing required environment variable: SANITY_CONTACT_WEBHOOK_SECRET",
        "Missing required environment variable: DATABASE_URL",
    ]
    short = {**GOOD_ENV, "SANITY_CONTACT_WEBHOOK_SECRET": "short"}
    assert validate_environment(short) == ["SANITY_CONTACT_WEBHOOK_SECRET appears to be invalid (too short)"]


def test_ensure_valid_environment_raises():
    ensure_valid_environment(GOOD_ENV)
    with pytest.raises(ConfigurationError):
        ensure_valid_environment({"DATABASE_URL": "sqlite://"})


def test_feature_enabled(monkeypatch):
    monkeypatch.setenv("AUDIT_TRAIL_ENABLED", "false")

    assert feature_enabled("audit-trail") is False
    assert feature_enabled("secrets-redaction") is True
