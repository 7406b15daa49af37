"""
RATE LIMITING
=============
Sliding-window request counters keyed by IP, session or endpoint name.
"""

# FLOW:
# - is_allowed() records the attempt, then compares the window count with max_requests.
# - remaining() reports the headroom without recording anything.
# HOW:
# - In-memory timestamp lists per key, pruned lazily on every call.

from __future__ import annotations

import threading
import time
from collections import defaultdict
from typing import Callable, Protocol

from Security.security_config import RateLimitPolicy


class RateLimitStore(Protocol):
    def is_allowed(self, identifier: str) -> bool: ...

    def remaining(self, identifier: str) -> int: ...


class RateLimiter:
    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: float = 60,
        clock: Callable[[], float] = time.time,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._requests: dict[str, list[float]] = defaultdict(list)
        self._lock = threading.Lock()

    @classmethod
    def from_policy(cls, policy: RateLimitPolicy, clock: Callable[[], float] = time.time) -> "RateLimiter":
        return cls(max_requests=policy.max_requests, window_seconds=policy.window_seconds, clock=clock)

    def _recent(self, identifier: str, now: float) -> list[float]:
        window_start = now - self.window_seconds
        return [t for t in self._requests.get(identifier, ()) if t > window_start]

    def is_allowed(self, identifier: str) -> bool:
        with self._lock:
            now = self._clock()
            recent = self._recent(identifier, now)
            # rejected attempts count too
            recent.append(now)
            self._requests[identifier] = recent
            return len(recent) <= self.max_requests

    def remaining(self, identifier: str) -> int:
        with self._lock:
            recent = self._recent(identifier, self._clock())
            return max(0, self.max_requests - len(recent))

    def reset(self, identifier: str) -> None:
        with self._lock:
            self._requests.pop(identifier, None)
