"""
Contact submission pipeline.

Two entry points share one set of collaborators:

* ``submit`` handles a form post: rate limit, validate, consume the CSRF
  token, score, persist, then notify when the submission is not spam.
* ``process_webhook`` handles the CMS callback: rate limit, verify the
  signature, check the payload shape, look the record up and notify if
  nobody has been told about it yet.

Neither method raises. Client mistakes and security rejections come back
as an outcome kind; collaborator failures are logged and reported as
``OutcomeKind.ERROR``.
"""

from __future__ import annotations

import datetime
import enum
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional, Union

from Security.audit_trail import audit
from Security.csrf_protection import InMemoryCSRFTokenStore, TokenStore, generate_session_id
from Security.data_integrity import submission_hash
from Security.error_handling import handle_security_error
from Security.form_validation import validate_contact_submission, validate_webhook_payload
from Security.input_validation import sanitize_text
from Security.metrics import record_submission
from Security.rate_limiting import RateLimiter, RateLimitStore
from Security.secrets_redaction import mask_token
from Security.security_config import SecurityPolicy
from Security.spam_scoring import calculate_spam_score
from Security.webhook_security import WebhookVerifier, failure_status

from .email_service import ContactNotifier, NotificationResult
from .models import ContactSubmission
from .repository import SubmissionRepository

logger = logging.getLogger("contact.pipeline")

WEBHOOK_ENDPOINT_KEY = "contact-webhook"
DISPOSABLE_WARNING = "Email appears to be from a disposable email service"


class OutcomeKind(str, enum.Enum):
    ACCEPTED = "accepted"
    INVALID = "invalid"
    RATE_LIMITED = "rate_limited"
    UNAUTHORIZED = "unauthorized"
    ERROR = "error"


@dataclass(frozen=True)
class ClientContext:
    ip_address: str = "unknown"
    user_agent: str = ""


@dataclass
class SubmissionOutcome:
    kind: OutcomeKind
    submission_id: Optional[str] = None
    status: Optional[str] = None
    errors: dict[str, str] = field(default_factory=dict)
    spam_score: int = 0
    security_flags: list[str] = field(default_factory=list)
    notified: bool = False


@dataclass
class WebhookOutcome:
    kind: OutcomeKind
    submission_id: Optional[str] = None
    status: Optional[str] = None
    email_sent: bool = False
    error: Optional[str] = None


class ContactPipeline:
    def __init__(
        self,
        policy: SecurityPolicy,
        repository: SubmissionRepository,
        notifier: ContactNotifier,
        csrf_store: Optional[TokenStore] = None,
        submit_limiter: Optional[RateLimitStore] = None,
        webhook_ip_limiter: Optional[RateLimitStore] = None,
        webhook_endpoint_limiter: Optional[RateLimitStore] = None,
        verifier: Optional[WebhookVerifier] = None,
        csrf_enabled: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        self.policy = policy
        self.repository = repository
        self.notifier = notifier
        self.csrf_store = csrf_store or InMemoryCSRFTokenStore(policy.csrf, clock=clock)
        self.submit_limiter = submit_limiter or RateLimiter.from_policy(policy.submit_rate_limit, clock)
        self.webhook_ip_limiter = webhook_ip_limiter or RateLimiter.from_policy(policy.webhook_ip_rate_limit, clock)
        self.webhook_endpoint_limiter = webhook_endpoint_limiter or RateLimiter.from_policy(
            policy.webhook_endpoint_rate_limit, clock
        )
        self.verifier = verifier or WebhookVerifier(policy.webhook, clock=clock)
        self.csrf_enabled = csrf_enabled
        self._clock = clock

    def _now(self) -> datetime.datetime:
        return datetime.datetime.fromtimestamp(self._clock(), tz=datetime.timezone.utc)

    def session_id_for(self, client: ClientContext) -> str:
        return generate_session_id(client.ip_address, client.user_agent, self._clock(), self.policy.csrf)

    def issue_token(self, client: ClientContext) -> tuple[str, str]:
        session_id = self.session_id_for(client)
        return self.csrf_store.issue(session_id), session_id

    async def submit(self, data: Any, client: ClientContext) -> SubmissionOutcome:
        ip_address = sanitize_text(client.ip_address, 45) or "unknown"

        if not self.submit_limiter.is_allowed(ip_address):
            audit("rate-limit.submit", f"ip={ip_address}", logging.WARNING)
            return SubmissionOutcome(OutcomeKind.RATE_LIMITED)

        validation = validate_contact_submission(data, self.policy.validation)
        if not validation.is_valid:
            if "honeypot" in validation.errors:
                audit("honeypot.triggered", f"ip={ip_address}")
            logger.info("Contact submission rejected fields=%s", sorted(validation.errors))
            return SubmissionOutcome(OutcomeKind.INVALID, errors=validation.errors)

        if self.csrf_enabled:
            check = self.csrf_store.verify(self.session_id_for(client), validation.csrf_token)
            if not check.valid:
                audit("csrf.rejected", f"reason={check.error} token={mask_token(validation.csrf_token)}", logging.WARNING)
                return SubmissionOutcome(
                    OutcomeKind.INVALID, errors={"csrfToken": "Invalid or expired security token"}
                )

        sanitized = validation.sanitized
        assessment = calculate_spam_score(sanitized, self.policy.spam)
        digest = submission_hash(sanitized.name, sanitized.email, sanitized.subject, sanitized.message, ip_address)

        status = "spam" if assessment.is_spam else "new"
        flags: list[str] = []
        if assessment.is_spam:
            flags.append("suspicious_content")
        if DISPOSABLE_WARNING in validation.warnings:
            flags.append("disposable_email")

        try:
            if self.repository.find_by_hash(digest) is not None:
                flags.append("duplicate_content")
            record = ContactSubmission(
                id=uuid.uuid4().hex,
                name=sanitized.name,
                email=sanitized.email,
                subject=sanitized.subject,
                message=sanitized.message,
                submitted_at=self._now(),
                status=status,
                submission_hash=digest,
                spam_score=assessment.score,
                security_flags=list(flags),
                ip_address=ip_address,
                user_agent=sanitize_text(client.user_agent, 500),
                created_via="contact-form",
            )
            record_id = self.repository.create_record(record)
        except Exception as exc:
            handle_security_error(exc, "submit-contact")
            return SubmissionOutcome(OutcomeKind.ERROR)

        record_submission(status)
        outcome = SubmissionOutcome(
            OutcomeKind.ACCEPTED,
            submission_id=record_id,
            status=status,
            spam_score=assessment.score,
            security_flags=flags,
        )

        if assessment.is_spam:
            audit("spam.routed", f"submission_id={record_id} score={assessment.score} signals={','.join(assessment.signals)}")
            return outcome

        result = await self._send_notification(record)
        if result.success:
            try:
                self.repository.patch_record(record_id, {"email_sent_at": self._now(), "status": "read"})
                outcome.notified = True
            except Exception as exc:
                handle_security_error(exc, "submit-contact.patch")
        return outcome

    async def process_webhook(
        self,
        headers: Mapping[str, str],
        raw_body: Union[bytes, str],
        client_ip: str,
    ) -> WebhookOutcome:
        if not self.webhook_ip_limiter.is_allowed(client_ip):
            audit("rate-limit.webhook-ip", f"ip={client_ip}", logging.WARNING)
            return WebhookOutcome(OutcomeKind.RATE_LIMITED, error="IP rate limit")
        if not self.webhook_endpoint_limiter.is_allowed(WEBHOOK_ENDPOINT_KEY):
            audit("rate-limit.webhook-endpoint", f"ip={client_ip}", logging.WARNING)
            return WebhookOutcome(OutcomeKind.RATE_LIMITED, error="Endpoint rate limit")

        extraction = self.verifier.extract(headers, raw_body)
        if not extraction.valid:
            audit("webhook.rejected", f"ip={client_ip} error={extraction.error}", logging.WARNING)
            kind = OutcomeKind.UNAUTHORIZED if failure_status(extraction.error) == 401 else OutcomeKind.INVALID
            return WebhookOutcome(kind, error=extraction.error)

        body = extraction.data.body
        payload_error = validate_webhook_payload(body, self.policy.webhook.document_type)
        if payload_error:
            audit("webhook.invalid-payload", f"ip={client_ip} error={payload_error}", logging.WARNING)
            return WebhookOutcome(OutcomeKind.INVALID, error=payload_error)

        try:
            record = self.repository.fetch_record(body["_id"])
            if record is None:
                audit("webhook.unknown-document", f"ip={client_ip} id={body['_id']}", logging.WARNING)
                return WebhookOutcome(OutcomeKind.INVALID, error="Unknown document")

            now = self._now()
            update: dict[str, Any] = {"processed_at": now, "processor_ip": sanitize_text(client_ip, 45)}
            email_sent = False
            if record.status == "new" and record.email_sent_at is None:
                result = await self._send_notification(record)
                if result.success:
                    update["email_sent_at"] = now
                    update["status"] = "read"
                    email_sent = True
                else:
                    update["status"] = "new"

            self.repository.patch_record(record.id, update)
        except Exception as exc:
            handle_security_error(exc, "contact-webhook")
            return WebhookOutcome(OutcomeKind.ERROR, error="Internal error")

        final_status = update.get("status", record.status)
        logger.info(
            "Processed contact submission id=%s status=%s email_sent=%s", record.id, final_status, email_sent
        )
        return WebhookOutcome(
            OutcomeKind.ACCEPTED, submission_id=record.id, status=final_status, email_sent=email_sent
        )

    async def _send_notification(self, record: ContactSubmission) -> NotificationResult:
        try:
            result = await self.notifier.notify(record)
        except Exception as exc:
            logger.error("Failed to send email notification id=%s: %s", record.id, exc, exc_info=exc)
            result = NotificationResult(False, error=str(exc))
        if not result.success:
            audit("notification.failed", f"submission_id={record.id} error={result.error}", logging.WARNING)
        return result
