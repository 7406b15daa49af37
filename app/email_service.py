import datetime
import logging
import os
import re
import smtplib
import uuid
from dataclasses import dataclass
from email.message import EmailMessage
from pathlib import Path
from typing import Callable, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape
from starlette.concurrency import run_in_threadpool

from Security.input_validation import sanitize_text
from Security.rate_limiting import RateLimiter
from Security.security_config import RateLimitPolicy

from .models import ContactSubmission

BASE_DIR = Path(__file__).resolve().parent
TEMPLATES_DIR = BASE_DIR / "templates"

logger = logging.getLogger("contact.email")

_jinja_env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html", "xml"])
)

_ADDRESS = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_SUSPICIOUS_CONTENT = [
    re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.I),
    re.compile(r"javascript:", re.I),
    re.compile(r"on\w+\s*=", re.I),
    re.compile(r"data:text/html", re.I),
]


@dataclass(frozen=True)
class NotificationResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


def _get_smtp_config() -> dict:
    smtp_user = os.getenv("SMTP_USER", "").strip()
    smtp_from = os.getenv("CONTACT_FROM_EMAIL", "").strip() or smtp_user
    return {
        "host": os.getenv("SMTP_HOST", "smtp.gmail.com").strip(),
        "port": int(os.getenv("SMTP_PORT", "465") or "465"),
        "user": smtp_user,
        "pass": os.getenv("SMTP_PASS", "").replace(" ", "").strip(),
        "from": smtp_from,
        "to": os.getenv("CONTACT_TO_EMAIL", "").strip(),
        "subject_prefix": os.getenv("CONTACT_SUBJECT_PREFIX", "[Contact Form]"),
    }


def smtp_enabled(config: Optional[dict] = None) -> bool:
    config = config or _get_smtp_config()
    return bool(config["user"] and config["pass"] and config["from"] and config["to"])


def _render_template(template_name: str, context: dict) -> str:
    template = _jinja_env.get_template(template_name)
    return template.render(**context)


def send_email(config: dict, to_email: str, subject: str, body: str, html_body: Optional[str] = None,
               reply_to: Optional[str] = None) -> bool:
    msg = EmailMessage()
    msg["From"] = config["from"]
    msg["To"] = to_email
    msg["Subject"] = subject
    if reply_to:
        msg["Reply-To"] = reply_to
    msg.set_content(body)
    if html_body:
        msg.add_alternative(html_body, subtype="html")

    try:
        with smtplib.SMTP_SSL(config["host"], config["port"]) as server:
            server.login(config["user"], config["pass"])
            server.send_message(msg)
        return True
    except (smtplib.SMTPException, OSError) as exc:
        logger.error("SMTP send failed: %s", exc)
        return False


def validate_email_data(record: ContactSubmission, config: dict) -> list[str]:
    errors = []
    if not _ADDRESS.match(config["to"] or ""):
        errors.append("Invalid recipient email address")
    if not _ADDRESS.match(config["from"] or ""):
        errors.append("Invalid sender email address")
    if not _ADDRESS.match(record.email or ""):
        errors.append("Invalid contact email address")

    if len(record.subject or "") > 200:
        errors.append("Subject too long")
    if len(record.message or "") > 5000:
        errors.append("Message too long")
    if len(record.name or "") > 100:
        errors.append("Name too long")

    content = f"{record.subject} {record.message} {record.name}".lower()
    if any(pattern.search(content) for pattern in _SUSPICIOUS_CONTENT):
        errors.append("Suspicious content detected")
    return errors


class ContactNotifier:
    """Sends the site owner an e-mail for each accepted submission."""

    def __init__(
        self,
        rate_limiter: Optional[RateLimiter] = None,
        config: Optional[dict] = None,
        sender: Callable[..., bool] = send_email,
    ):
        self.rate_limiter = rate_limiter or RateLimiter.from_policy(RateLimitPolicy(3600, 100))
        self._config = config
        self._sender = sender

    @property
    def config(self) -> dict:
        return self._config or _get_smtp_config()

    def build_message(self, record: ContactSubmission, config: dict) -> tuple[str, str, str]:
        context = {
            "name": sanitize_text(record.name, 100),
            "email": sanitize_text(record.email, 254),
            "subject": sanitize_text(record.subject, 200),
            "message": sanitize_text(record.message, 5000),
            "submission_id": record.id or "unknown",
            "received_at": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        }
        subject = f"{config['subject_prefix']} {context['subject']}".strip()
        text_body = _render_template("email/contact_notification.txt", context)
        html_body = _render_template("email/contact_notification.html", context)
        return subject, text_body, html_body

    async def notify(self, record: ContactSubmission) -> NotificationResult:
        config = self.config
        if not smtp_enabled(config):
            return NotificationResult(False, error="SMTP is not configured")

        if not self.rate_limiter.is_allowed(config["to"]):
            return NotificationResult(False, error="Email rate limit exceeded")

        errors = validate_email_data(record, config)
        if errors:
            return NotificationResult(False, error=f"Email validation failed: {', '.join(errors)}")

        subject, text_body, html_body = self.build_message(record, config)
        sent = await run_in_threadpool(
            self._sender, config, config["to"], subject, text_body, html_body, record.email
        )
        if not sent:
            return NotificationResult(False, error="SMTP send failed")

        message_id = f"email_{uuid.uuid4().hex}"
        logger.info("Contact notification sent submission_id=%s message_id=%s", record.id, message_id)
        return NotificationResult(True, message_id=message_id)
