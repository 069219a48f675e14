"""Job identifiers.

A job ID is ``<UTC timestamp>-<random>``::

    20250109T134501-q3Yx0h2hQ9n7Jt0l8bq1Fz6dXbN4uS2a

The 15-character ``%Y%m%dT%H%M%S`` prefix makes IDs sort by creation second;
the suffix is 24 bytes (192 bits) from :mod:`secrets`, base64url-encoded
without padding (32 characters).  Uniqueness is still enforced by the store's
insert-or-reject; the dispatcher retries on collision.
"""

from __future__ import annotations

import base64
import re
import secrets
from datetime import UTC, datetime

from seqsearch.core.timestamps import utcnow

RANDOM_BYTES = 24
TIMESTAMP_FORMAT = "%Y%m%dT%H%M%S"
TIMESTAMP_LENGTH = 15

_JOB_ID_RE = re.compile(r"^\d{8}T\d{6}-[A-Za-z0-9_-]{32}$")


def generate_job_id(now: datetime | None = None) -> str:
    """Return a fresh, sortable-by-creation job ID."""
    stamp = (now or utcnow()).astimezone(UTC).strftime(TIMESTAMP_FORMAT)
    suffix = base64.urlsafe_b64encode(secrets.token_bytes(RANDOM_BYTES)).decode("ascii").rstrip("=")
    return f"{stamp}-{suffix}"


def created_time(job_id: str) -> str:
    """Timestamp prefix of a job ID (what the status endpoint reports)."""
    return job_id[:TIMESTAMP_LENGTH]


def is_job_id(value: str) -> bool:
    return bool(_JOB_ID_RE.match(value))
