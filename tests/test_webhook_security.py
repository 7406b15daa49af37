import json

import pytest

from conftest import FakeClock

from Security.security_config import WebhookPolicy
from Security.webhook_security import (
    WebhookVerifier,
    compute_signature,
    constant_time_compare,
    failure_status,
)

SECRET = "webhook-secret-for-tests"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def verifier(clock):
    return WebhookVerifier(WebhookPolicy(secret=SECRET), clock=clock)


def signed(body: bytes, clock, secret=SECRET, **header_overrides):
    headers = {
        "Content-Type": "application/json",
        "X-Sanity-Signature": compute_signature(body, secret),
        "X-Sanity-Timestamp": str(int(clock() * 1000)),
    }
    headers.update(header_overrides)
    return headers


BODY = json.dumps({"_id": "abc", "_type": "contactSubmission"}).encode()


def test_valid_request_is_extracted(verifier, clock):
    result = verifier.extract(signed(BODY, clock), BODY)

    assert result.valid
    assert result.data.body == {"_id": "abc", "_type": "contactSubmission"}
    assert result.data.payload == BODY.decode()


def test_any_body_change_breaks_the_signature(verifier, clock):
    headers = signed(BODY, clock)
    tampered = BODY.replace(b"abc", b"abd")

    result = verifier.extract(headers, tampered)

    assert result.error == "Invalid signature"
    assert failure_status(result.error) == 401


def test_wrong_secret(verifier, clock):
    result = verifier.extract(signed(BODY, clock, secret="another-secret-value"), BODY)

    assert result.error == "Invalid signature"


def test_missing_secret_is_unauthorized(clock):
    verifier = WebhookVerifier(WebhookPolicy(secret=""), clock=clock)

    result = verifier.extract(signed(BODY, clock), BODY)

    assert result.error == "Missing signature or secret"
    assert failure_status(result.error) == 401


def test_replayed_request_is_rejected(verifier, clock):
    headers = signed(BODY, clock)
    clock.advance(301)

    result = verifier.extract(headers, BODY)

    assert result.error == "Timestamp too old - possible replay attack"
    assert failure_status(result.error) == 400


def test_timestamp_window_edges(verifier, clock):
    now_ms = int(clock() * 1000)

    assert verifier.validate_timestamp(str(now_ms - 300_000)) is None
    assert verifier.validate_timestamp(str(now_ms + 60_000)) is None
    assert verifier.validate_timestamp(str(now_ms + 61_000)) == "Timestamp too far in future - possible clock skew"
    assert verifier.validate_timestamp("yesterday") == "Invalid timestamp format"


def test_missing_headers(verifier):
    result = verifier.extract({"content-type": "application/json"}, BODY)

    assert result.error == (
        "Missing required header: x-sanity-signature, Missing required header: x-sanity-timestamp"
    )


def test_wrong_content_type(verifier, clock):
    result = verifier.extract(signed(BODY, clock, **{"Content-Type": "text/plain"}), BODY)

    assert result.error == "Invalid content-type - expected application/json"


def test_payload_too_large(clock):
    verifier = WebhookVerifier(WebhookPolicy(secret=SECRET, max_payload_bytes=10), clock=clock)

    result = verifier.extract(signed(BODY, clock), BODY)

    assert result.error == f"Payload too large: {len(BODY)} bytes (max: 10)"


@pytest.mark.parametrize("body", [b"not json", b"[1, 2, 3]"])
def test_signed_non_object_body(verifier, clock, body):
    result = verifier.extract(signed(body, clock), body)

    assert result.error == "Invalid JSON payload"


def test_constant_time_compare():
    assert constant_time_compare("abc", "abc")
    assert not constant_time_compare("abc", "abd")
    assert not constant_time_compare("abc", "abcd")


def test_enormous_timestamp_is_rejected_without_overflow(verifier, clock):
    assert verifier.validate_timestamp("9" * 400) == "Timestamp too far in future - possible clock skew"
    assert verifier.validate_timestamp("-" + "9" * 400) == "Timestamp too old - possible replay attack"

    headers = signed(BODY, clock, **{"X-Sanity-Timestamp": "9" * 400})
    assert verifier.extract(headers, BODY).error == "Timestamp too far in future - possible clock skew"


@pytest.mark.parametrize(
    "timestamp",
    ["1_800_000_000_000", "+1800000000000", "١٨٠٠", "1800000000000.0", ""],
)
def test_only_plain_ascii_digits_are_timestamps(verifier, timestamp):
    assert verifier.validate_timestamp(timestamp) == "Invalid timestamp format"
