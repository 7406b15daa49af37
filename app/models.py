from sqlalchemy import Column, String, DateTime, Integer, Text, JSON, Index
from .database import Base
import datetime
import uuid

# Lifecycle: new -> spam | read; replied / archived are set by hand.
SUBMISSION_STATUSES = ("new", "read", "replied", "archived", "spam")


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class ContactSubmission(Base):
    __tablename__ = "contact_submissions"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(100), nullable=False)
    email = Column(String(254), nullable=False)
    subject = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    submitted_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    status = Column(String(20), default="new", nullable=False, index=True)
    submission_hash = Column(String(64), nullable=False, index=True)
    spam_score = Column(Integer, default=0, nullable=False)
    security_flags = Column(JSON, default=list, nullable=False)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(500), nullable=True)
    created_via = Column(String(40), default="contact-form", nullable=False)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    processor_ip = Column(String(45), nullable=True)
    email_sent_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_contact_submission_status_submitted", "status", "submitted_at"),
    )
