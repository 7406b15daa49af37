"""
CONTACT FORM VALIDATION
=======================
Field-level checks for contact submissions built on sanitize_text().

FLOW:
- validate_contact_submission() checks name, email, subject, message,
  honeypot and csrfToken in that order and collects every failure.
- assess_email() is the advisory path: it only ever produces warnings.

HOW:
- Each field is sanitized with its own length cap, then checked for a
  length floor and forbidden markup characters.
- The cleaned copy is returned only when no field failed.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Optional

from Security.input_validation import contains_forbidden, sanitize_text
from Security.security_config import ValidationPolicy

EMAIL_PATTERN = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)
_DISPOSABLE_HINT = re.compile(r"(tempmail|10minutemail|guerrillamail|mailinator|throwaway|temp|fake|spam)", re.I)
_SUSPICIOUS_MAILBOX = re.compile(r"(admin|root|test|demo|example|noreply|no-reply|donotreply|do-not-reply)", re.I)


@dataclass(frozen=True)
class SanitizedSubmission:
    name: str
    email: str
    subject: str
    message: str

    @property
    def email_domain(self) -> str:
        return email_domain(self.email)


@dataclass
class ValidationResult:
    is_valid: bool
    errors: dict[str, str] = field(default_factory=dict)
    sanitized: Optional[SanitizedSubmission] = None
    warnings: list[str] = field(default_factory=list)
    csrf_token: str = ""


def email_domain(email: str) -> str:
    return email.rsplit("@", 1)[-1].lower() if "@" in email else ""


def validate_email(value: Any, policy: ValidationPolicy) -> tuple[str, Optional[str]]:
    """Strict email check. Returns (sanitized, error)."""
    if not value or not isinstance(value, str):
        return "", "Email is required"

    email = sanitize_text(value, policy.max_email_length)
    if not EMAIL_PATTERN.match(email):
        return email, "Invalid email format"
    if ".." in email or "--" in email:
        return email, "Suspicious email pattern detected"
    if contains_forbidden(email, policy.forbidden_characters):
        return email, "Email contains invalid characters"
    if policy.reject_disposable_email and email_domain(email) in policy.disposable_domains:
        return email, "Disposable email addresses are not allowed"
    return email, None


def assess_email(email: str, policy: ValidationPolicy) -> list[str]:
    """Advisory email analysis. Never rejects."""
    warnings = []
    lowered = email.lower()
    if email_domain(lowered) in policy.disposable_domains or _DISPOSABLE_HINT.search(lowered):
        warnings.append("Email appears to be from a disposable email service")
    if _SUSPICIOUS_MAILBOX.search(lowered.split("@", 1)[0]):
        warnings.append("Email contains suspicious patterns")
    return warnings


def _validate_text(
    value: Any,
    label: str,
    max_length: int,
    min_length: int,
    forbidden: str,
) -> tuple[str, Optional[str]]:
    if not value or not isinstance(value, str):
        return "", f"{label} is required"

    cleaned = sanitize_text(value, max_length)
    if len(cleaned) < min_length:
        return cleaned, f"{label} must be at least {min_length} characters long"
    if contains_forbidden(cleaned, forbidden):
        return cleaned, f"{label} contains invalid characters"
    return cleaned, None


def validate_contact_submission(data: Any, policy: Optional[ValidationPolicy] = None) -> ValidationResult:
    policy = policy or ValidationPolicy()
    if not isinstance(data, dict):
        data = {}

    errors: dict[str, str] = {}
    cleaned: dict[str, str] = {}

    name, error = _validate_text(
        data.get("name"), "Name", policy.max_name_length, policy.min_name_length, policy.forbidden_characters
    )
    if error:
        errors["name"] = error
    cleaned["name"] = name

    email, error = validate_email(data.get("email"), policy)
    if error:
        errors["email"] = error
    cleaned["email"] = email

    subject, error = _validate_text(
        data.get("subject"),
        "Subject",
        policy.max_subject_length,
        policy.min_subject_length,
        policy.forbidden_characters,
    )
    if error:
        errors["subject"] = error
    cleaned["subject"] = subject

    message, error = _validate_text(
        data.get("message"),
        "Message",
        policy.max_message_length,
        policy.min_message_length,
        policy.forbidden_characters,
    )
    if error:
        errors["message"] = error
    cleaned["message"] = message

    honeypot = data.get("honeypot")
    if honeypot is not None and (not isinstance(honeypot, str) or honeypot.strip()):
        errors["honeypot"] = "Spam detected"

    csrf_token = sanitize_text(data.get("csrfToken"), policy.max_token_length)
    if not csrf_token:
        errors["csrfToken"] = "Security token is required"

    if errors:
        return ValidationResult(is_valid=False, errors=errors, csrf_token=csrf_token)

    return ValidationResult(
        is_valid=True,
        sanitized=SanitizedSubmission(**cleaned),
        warnings=assess_email(email, policy),
        csrf_token=csrf_token,
    )


WEBHOOK_REQUIRED_FIELDS = ("name", "email", "subject", "message")


def validate_webhook_payload(payload: Any, document_type: str = "contactSubmission") -> Optional[str]:
    """Shape check for a verified webhook body. Returns an error or None."""
    if not isinstance(payload, dict):
        return "Invalid payload format"
    if payload.get("_type") != document_type:
        return "Invalid document type"
    if not payload.get("_id") or not isinstance(payload["_id"], str):
        return "Missing document ID"
    for field_name in WEBHOOK_REQUIRED_FIELDS:
        if not payload.get(field_name) or not isinstance(payload[field_name], str):
            return f"Missing required field: {field_name}"
    return None
