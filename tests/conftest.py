import os

os.environ.setdefault("SANITY_CONTACT_WEBHOOK_SECRET", "test-webhook-secret-0123456789")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["SECURITY_LOG_TO_FILE"] = "false"
os.environ["PROMETHEUS_ENABLED"] = "true"
for _smtp_var in ("SMTP_USER", "SMTP_PASS", "CONTACT_FROM_EMAIL", "CONTACT_TO_EMAIL"):
    os.environ.pop(_smtp_var, None)

import json

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from Security.csrf_protection import InMemoryCSRFTokenStore
from Security.security_config import load_security_policy
from Security.webhook_security import compute_signature
from app.contact_pipeline import ClientContext, ContactPipeline
from app.database import Base
from app.email_service import NotificationResult
from app.main import create_app
from app.repository import SqlAlchemySubmissionRepository

WEBHOOK_SECRET = os.environ["SANITY_CONTACT_WEBHOOK_SECRET"]
START_TIME = 1_800_000_000.0


class FakeClock:
    def __init__(self, now: float = START_TIME):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingNotifier:
    """Stands in for ContactNotifier; remembers every record it was asked to send."""

    def __init__(self, succeed: bool = True, raises: bool = False):
        self.succeed = succeed
        self.raises = raises
        self.sent = []

    async def notify(self, record):
        if self.raises:
            raise RuntimeError("smtp exploded")
        self.sent.append(record.id)
        if self.succeed:
            return NotificationResult(True, message_id=f"email_{len(self.sent)}")
        return NotificationResult(False, error="SMTP send failed")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def policy():
    return load_security_policy()


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def repository(session_factory):
    return SqlAlchemySubmissionRepository(session_factory)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def csrf_store(policy, clock):
    return InMemoryCSRFTokenStore(policy.csrf, clock=clock)


@pytest.fixture
def pipeline(policy, repository, notifier, csrf_store, clock):
    return ContactPipeline(policy, repository, notifier, csrf_store=csrf_store, clock=clock)


@pytest.fixture
def client_context():
    return ClientContext(ip_address="203.0.113.7", user_agent="pytest-browser/1.0")


@pytest.fixture
def app(policy, repository, notifier, csrf_store, clock):
    return create_app(policy=policy, repository=repository, notifier=notifier, csrf_store=csrf_store, clock=clock)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


def valid_form(csrf_token: str, **overrides) -> dict:
    form = {
        "name": "Al",
        "email": "a@b.com",
        "subject": "Hi there",
        "message": "This is a real message.",
        "honeypot": "",
        "csrfToken": csrf_token,
    }
    form.update(overrides)
    return form


def signed_webhook(payload, clock, secret: str = WEBHOOK_SECRET, timestamp=None):
    body = json.dumps(payload).encode("utf-8")
    headers = {
        "content-type": "application/json",
        "x-sanity-signature": compute_signature(body, secret),
        "x-sanity-timestamp": str(int(clock() * 1000) if timestamp is None else timestamp),
    }
    return headers, body


def webhook_payload(record_id: str, **overrides) -> dict:
    payload = {
        "_id": record_id,
        "_type": "contactSubmission",
        "name": "Al",
        "email": "a@b.com",
        "subject": "Hi there",
        "message": "This is a real message.",
    }
    payload.update(overrides)
    return payload
