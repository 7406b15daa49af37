"""
DATA INTEGRITY
==============
SHA-256 helpers for submission fingerprints.

FLOW:
- submission_hash() fingerprints content plus origin for duplicate detection.

HOW:
- Pipe-joined fields hashed with SHA-256.
"""

from __future__ import annotations

import hashlib


def sha256_hex(data: str | bytes) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def submission_hash(name: str, email: str, subject: str, message: str, ip_address: str) -> str:
    return sha256_hex(f"{name}|{email}|{subject}|{message}|{ip_address}")
