"""
SPAM SCORING
============
Additive heuristic score for sanitized contact submissions.
"""

# FLOW:
# - calculate_spam_score() sums independent heuristic weights and clamps to max_score.
# - is_spam() compares the score against the policy threshold.
# HOW:
# - Plain substring checks over lower-cased fields; no clock, no randomness.

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from Security.form_validation import SanitizedSubmission
from Security.security_config import SpamPolicy


@dataclass(frozen=True)
class SpamAssessment:
    score: int
    is_spam: bool
    signals: tuple[str, ...] = ()


def _contains_any(text: str, needles: tuple[str, ...]) -> bool:
    return any(needle in text for needle in needles)


def calculate_spam_score(data: SanitizedSubmission, policy: Optional[SpamPolicy] = None) -> SpamAssessment:
    policy = policy or SpamPolicy()
    score = 0
    signals: list[str] = []

    if sum(1 for ch in data.name if ch.isdigit() or ch == ",") >= 2:
        score += policy.name_digit_weight
        signals.append("name_digits")

    subject = data.subject.lower()
    if _contains_any(subject, policy.subject_keywords):
        score += policy.subject_keyword_weight
        signals.append("subject_keywords")
    if _contains_any(subject, policy.money_phrases):
        score += policy.money_bait_weight
        signals.append("money_bait")

    message = data.message.lower()
    if _contains_any(message, policy.marketing_phrases):
        score += policy.marketing_weight
        signals.append("marketing_bait")
    if _contains_any(message, policy.link_markers):
        score += policy.link_weight
        signals.append("links")

    if data.email_domain and data.email_domain in policy.disposable_domains:
        score += policy.disposable_domain_weight
        signals.append("disposable_domain")

    score = max(0, min(score, policy.max_score))
    return SpamAssessment(score=score, is_spam=is_spam(score, policy), signals=tuple(signals))


def is_spam(score: int, policy: Optional[SpamPolicy] = None) -> bool:
    policy = policy or SpamPolicy()
    return score >= policy.threshold
