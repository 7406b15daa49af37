"""
SECURITY METRICS
================
Prometheus-backed counters for contact-form security events.
"""

from __future__ import annotations

import os
from typing import Dict

from prometheus_client import CONTENT_TYPE_LATEST, Counter, generate_latest


FEATURE_EVENTS = Counter(
    "security_feature_events_total",
    "Count of security feature events",
    ["feature"],
)
SUBMISSIONS = Counter(
    "contact_submissions_total",
    "Contact submissions by resulting status",
    ["status"],
)


def metrics_enabled() -> bool:
    return os.getenv("PROMETHEUS_ENABLED", "true").lower() == "true"


def increment_feature_event(feature: str, amount: int = 1) -> None:
    if not metrics_enabled():
        return
    FEATURE_EVENTS.labels(feature=feature).inc(amount)


def record_submission(status: str) -> None:
    if not metrics_enabled():
        return
    SUBMISSIONS.labels(status=status).inc()


def _counter_value(counter, **labels) -> int:
    try:
        return int(counter.labels(**labels)._value.get())
    except Exception:
        return 0


def get_feature_metrics_snapshot(features: list[str]) -> Dict[str, Dict[str, int]]:
    return {feature: {"events": _counter_value(FEATURE_EVENTS, feature=feature)} for feature in features}


def render_latest() -> tuple[bytes, str]:
    return generate_latest(), CONTENT_TYPE_LATEST
