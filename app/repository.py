"""Persistence for contact submissions."""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

from sqlalchemy.orm import sessionmaker

from .database import SessionLocal
from .models import SUBMISSION_STATUSES, ContactSubmission

logger = logging.getLogger("contact.repository")


class SubmissionRepository(Protocol):
    def create_record(self, record: ContactSubmission) -> str: ...

    def patch_record(self, record_id: str, fields: dict[str, Any]) -> None: ...

    def fetch_record(self, record_id: str) -> Optional[ContactSubmission]: ...

    def find_by_hash(self, submission_hash: str) -> Optional[ContactSubmission]: ...


class SqlAlchemySubmissionRepository:
    def __init__(self, session_factory: sessionmaker = SessionLocal):
        self._session_factory = session_factory

    def create_record(self, record: ContactSubmission) -> str:
        db = self._session_factory()
        try:
            db.add(record)
            db.commit()
            db.refresh(record)
            db.expunge(record)
            logger.info("Created contact submission id=%s status=%s", record.id, record.status)
            return record.id
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def patch_record(self, record_id: str, fields: dict[str, Any]) -> None:
        if "status" in fields and fields["status"] not in SUBMISSION_STATUSES:
            raise ValueError(f"Unknown submission status: {fields['status']}")
        db = self._session_factory()
        try:
            record = db.get(ContactSubmission, record_id)
            if record is None:
                raise LookupError(f"Contact submission {record_id} not found")
            for key, value in fields.items():
                setattr(record, key, value)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def fetch_record(self, record_id: str) -> Optional[ContactSubmission]:
        db = self._session_factory()
        try:
            record = db.get(ContactSubmission, record_id)
            if record is not None:
                db.expunge(record)
            return record
        finally:
            db.close()

    def find_by_hash(self, submission_hash: str) -> Optional[ContactSubmission]:
        db = self._session_factory()
        try:
            record = (
                db.query(ContactSubmission)
                .filter(ContactSubmission.submission_hash == submission_hash)
                .order_by(ContactSubmission.submitted_at.desc())
                .first()
            )
            if record is not None:
                db.expunge(record)
            return record
        finally:
            db.close()
