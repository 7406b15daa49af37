"""
CSRF PROTECTION
===============
Session-scoped, time-boxed, single-use tokens for the contact form.

FLOW:
- GET /api/csrf-token issues a token for the caller's derived session id.
- The submission pipeline verifies (and consumes) it once.
- Tokens older than the session duration are swept at most once per
  cleanup interval, on whichever request happens to arrive.

HOW:
- Session ids hash client ip, user agent and a time bucket, so no cookie
  is needed.
- Each session keeps at most max_tokens_per_session tokens; the oldest is
  evicted first.
"""

from __future__ import annotations

import hashlib
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from Security.security_config import CSRFPolicy


@dataclass
class CSRFToken:
    token: str
    created_at: float
    used: bool = False


@dataclass(frozen=True)
class TokenCheck:
    valid: bool
    error: Optional[str] = None


class TokenStore(Protocol):
    def issue(self, session_id: str) -> str: ...

    def verify(self, session_id: str, token: str) -> TokenCheck: ...


class InMemoryCSRFTokenStore:
    def __init__(self, policy: Optional[CSRFPolicy] = None, clock: Callable[[], float] = time.time):
        self.policy = policy or CSRFPolicy()
        self._clock = clock
        self._tokens: dict[str, list[CSRFToken]] = {}
        self._last_cleanup = clock()
        self._lock = threading.Lock()

    def issue(self, session_id: str) -> str:
        with self._lock:
            now = self._clock()
            self._cleanup(now)
            token = secrets.token_hex(self.policy.token_bytes)
            session_tokens = self._tokens.setdefault(session_id, [])
            while len(session_tokens) >= self.policy.max_tokens_per_session:
                session_tokens.pop(0)
            session_tokens.append(CSRFToken(token=token, created_at=now))
            return token

    def verify(self, session_id: str, token: str) -> TokenCheck:
        with self._lock:
            now = self._clock()
            self._cleanup(now)
            session_tokens = self._tokens.get(session_id)
            if not session_tokens:
                return TokenCheck(False, "No tokens found for session")

            candidate = (token or "").encode("utf-8")
            entry = next(
                (t for t in session_tokens if secrets.compare_digest(t.token.encode("utf-8"), candidate)),
                None,
            )
            if entry is None:
                return TokenCheck(False, "Invalid token")
            if entry.used:
                return TokenCheck(False, "Token already used")
            if now - entry.created_at > self.policy.session_duration_seconds:
                return TokenCheck(False, "Token expired")

            entry.used = True
            return TokenCheck(True)

    def session_count(self) -> int:
        with self._lock:
            return len(self._tokens)

    def _cleanup(self, now: float) -> None:
        if now - self._last_cleanup < self.policy.cleanup_interval_seconds:
            return
        self._last_cleanup = now
        cutoff = now - self.policy.session_duration_seconds
        for session_id in list(self._tokens):
            alive = [t for t in self._tokens[session_id] if t.created_at > cutoff]
            if alive:
                self._tokens[session_id] = alive
            else:
                del self._tokens[session_id]


def generate_session_id(
    ip_address: str,
    user_agent: str,
    now: Optional[float] = None,
    policy: Optional[CSRFPolicy] = None,
) -> str:
    policy = policy or CSRFPolicy()
    now = time.time() if now is None else now
    bucket = int(now // policy.session_duration_seconds)
    session_data = f"{ip_address or 'unknown'}|{user_agent or 'unknown'}|{bucket}"
    return hashlib.sha256(session_data.encode("utf-8")).hexdigest()
