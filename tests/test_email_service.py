import pytest

from Security.rate_limiting import RateLimiter
from app.email_service import ContactNotifier, smtp_enabled, validate_email_data
from app.models import ContactSubmission

CONFIG = {
    "host": "smtp.example.org",
    "port": 465,
    "user": "mailer@example.org",
    "pass": "app-password",
    "from": "mailer@example.org",
    "to": "owner@example.org",
    "subject_prefix": "[Contact Form]",
}


def make_record(**overrides):
    fields = {
        "id": "sub-1",
        "name": "Al",
        "email": "a@b.com",
        "subject": "Hi there",
        "message": "This is a real message.",
    }
    fields.update(overrides)
    return ContactSubmission(**fields)


class FakeSender:
    def __init__(self, result=True):
        self.result = result
        self.calls = []

    def __call__(self, config, to_email, subject, body, html_body=None, reply_to=None):
        self.calls.append(
            {"to": to_email, "subject": subject, "body": body, "html": html_body, "reply_to": reply_to}
        )
        return self.result


async def test_notify_sends_rendered_message():
    sender = FakeSender()
    notifier = ContactNotifier(config=CONFIG, sender=sender)

    result = await notifier.notify(make_record())

    assert result.success is True
    assert result.message_id.startswith("email_")
    call = sender.calls[0]
    assert call["to"] == "owner@example.org"
    assert call["subject"] == "[Contact Form] Hi there"
    assert call["reply_to"] == "a@b.com"
    assert "This is a real message." in call["body"]
    assert "sub-1" in call["body"]


async def test_html_body_is_escaped():
    sender = FakeSender()
    notifier = ContactNotifier(config=CONFIG, sender=sender)

    await notifier.notify(make_record(message="Tom & Jerry say hello"))

    assert "Tom &amp; Jerry" in sender.calls[0]["html"]


async def test_unconfigured_smtp_is_reported():
    notifier = ContactNotifier(config={**CONFIG, "pass": ""}, sender=FakeSender())

    result = await notifier.notify(make_record())

    assert result.success is False
    assert result.error == "SMTP is not configured"


async def test_send_failure_is_reported_not_raised():
    notifier = ContactNotifier(config=CONFIG, sender=FakeSender(result=False))

    result = await notifier.notify(make_record())

    assert result.success is False
    assert result.error == "SMTP send failed"


async def test_recipient_rate_limit():
    sender = FakeSender()
    notifier = ContactNotifier(rate_limiter=RateLimiter(max_requests=1, window_seconds=3600), config=CONFIG, sender=sender)

    first = await notifier.notify(make_record())
    second = await notifier.notify(make_record(id="sub-2"))

    assert first.success is True
    assert second.error == "Email rate limit exceeded"
    assert len(sender.calls) == 1


async def test_suspicious_content_is_not_sent():
    sender = FakeSender()
    notifier = ContactNotifier(config=CONFIG, sender=sender)

    result = await notifier.notify(make_record(message="visit javascript:alert(1) now"))

    assert result.success is False
    assert "Suspicious content detected" in result.error
    assert sender.calls == []


@pytest.mark.parametrize(
    "overrides, error",
    [
        ({"email": "broken"}, "Invalid contact email address"),
        ({"subject": "s" * 201}, "Subject too long"),
        ({"name": "n" * 101}, "Name too long"),
    ],
)
def test_validate_email_data(overrides, error):
    assert error in validate_email_data(make_record(**overrides), CONFIG)


def test_smtp_enabled():
    assert smtp_enabled(CONFIG) is True
    assert smtp_enabled({**CONFIG, "to": ""}) is False
