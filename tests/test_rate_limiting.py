from conftest import FakeClock

from Security.rate_limiting import RateLimiter
from Security.security_config import RateLimitPolicy


def test_allows_up_to_max_then_recovers():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=3, window_seconds=1, clock=clock)

    assert [limiter.is_allowed("k") for _ in range(4)] == [True, True, True, False]

    clock.advance(1.1)
    assert limiter.is_allowed("k") is True


def test_identifiers_are_independent():
    limiter = RateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())

    assert limiter.is_allowed("a") is True
    assert limiter.is_allowed("b") is True
    assert limiter.is_allowed("a") is False


def test_rejected_attempts_count_against_the_window():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=1, window_seconds=10, clock=clock)
    assert limiter.is_allowed("k") is True

    clock.advance(6)
    assert limiter.is_allowed("k") is False

    clock.advance(5)
    assert limiter.is_allowed("k") is False
    clock.advance(11)
    assert limiter.is_allowed("k") is True


def test_remaining_does_not_consume():
    limiter = RateLimiter(max_requests=3, window_seconds=60, clock=FakeClock())
    limiter.is_allowed("k")

    assert limiter.remaining("k") == 2
    assert limiter.remaining("k") == 2
    assert limiter.remaining("unseen") == 3


def test_remaining_never_negative_and_reset():
    limiter = RateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())
    for _ in range(3):
        limiter.is_allowed("k")

    assert limiter.remaining("k") == 0
    limiter.reset("k")
    assert limiter.is_allowed("k") is True


def test_from_policy():
    limiter = RateLimiter.from_policy(RateLimitPolicy(window_seconds=3600, max_requests=100))

    assert limiter.max_requests == 100
    assert limiter.window_seconds == 3600
