"""
Structured error types for the seqsearch job server.

Every error raised by the orchestration layer is a :class:`SeqSearchError`
carrying a category, a stable wire ``code`` and an optional chained cause.
The HTTP layer maps ``code`` to a status; maintenance loops log
``to_dict()``.

Manifesto:
    - **Typed hierarchy:** one class per failure the caller must tell apart
    - **Stable codes:** the JSON error body never depends on class names
    - **Explicit retry semantics:** only admission rejections are retryable
    - **Error chaining:** the original exception is preserved as ``cause``

Architecture:
    ::

        SeqSearchError  (category, code, retryable, cause)
          ├── ValidationError      VALIDATION   INVALID_REQUEST
          ├── AdmissionRejected    CAPACITY     QUEUE_FULL        retryable
          ├── BackendError         BACKEND      SEARCH_ERROR
          ├── DuplicateIdError     INTERNAL     DUPLICATE_ID
          ├── InternalError        INTERNAL     INTERNAL_ERROR
          ├── JobNotFound          NOT_FOUND    JOB_NOT_FOUND
          ├── UnitFailedError      STREAMING    UNIT_FAILED
          └── ClientError          TRANSPORT    CLIENT_ERROR

Propagation:
    ``ValidationError`` and ``AdmissionRejected`` are raised synchronously to
    the submitter.  ``BackendError`` never crosses the worker boundary: the
    worker turns it into a failed Result.  ``DuplicateIdError`` is retried by
    the dispatcher and only surfaces wrapped in ``InternalError``.

Tags:
    error-handling, exception-hierarchy, seqsearch
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error categories used for classification and log routing."""

    VALIDATION = "VALIDATION"
    CAPACITY = "CAPACITY"
    BACKEND = "BACKEND"
    NOT_FOUND = "NOT_FOUND"
    STREAMING = "STREAMING"
    TRANSPORT = "TRANSPORT"
    CONFIG = "CONFIG"
    INTERNAL = "INTERNAL"


class SeqSearchError(Exception):
    """Base exception for all seqsearch errors.

    Subclasses set ``default_category``, ``default_code`` and
    ``default_retryable``; callers may override any of them per instance.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_code: str = "INTERNAL_ERROR"
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        code: str | None = None,
        retryable: bool | None = None,
        cause: BaseException | None = None,
        **details: Any,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.code = code or self.default_code
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.cause = cause
        self.details = details

        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        if self.details:
            result["details"] = dict(self.details)
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, code={self.code})"


class ValidationError(SeqSearchError):
    """Malformed submission, rejected before admission. Nothing is persisted."""

    default_category = ErrorCategory.VALIDATION
    default_code = "INVALID_REQUEST"


class AdmissionRejected(SeqSearchError):
    """The running-job cap is reached. Transient: retry later."""

    default_category = ErrorCategory.CAPACITY
    default_code = "QUEUE_FULL"
    default_retryable = True

    def __init__(self, max_jobs: int, running: int | None = None, **kwargs: Any):
        super().__init__(
            f"Job queue is full. Maximum concurrent jobs: {max_jobs}",
            max_jobs=max_jobs,
            running=running,
            **kwargs,
        )
        self.max_jobs = max_jobs
        self.running = running


class BackendError(SeqSearchError):
    """The search backend failed. Captured by the worker as a failed Result."""

    default_category = ErrorCategory.BACKEND
    default_code = "SEARCH_ERROR"

    def __init__(self, reason: str, **kwargs: Any):
        super().__init__(reason, **kwargs)
        self.reason = reason


class DuplicateIdError(SeqSearchError):
    """A generated job ID collided with an existing row."""

    default_code = "DUPLICATE_ID"

    def __init__(self, job_id: str, **kwargs: Any):
        super().__init__(f"Job ID already exists: {job_id}", job_id=job_id, **kwargs)
        self.job_id = job_id


class InternalError(SeqSearchError):
    """Unexpected internal failure (exhausted ID retries, launch failure)."""


class JobNotFound(SeqSearchError):
    """No matching job or result.

    Deliberately covers "never existed", "already consumed" and
    "cancelled / timed out" without telling them apart.
    """

    default_category = ErrorCategory.NOT_FOUND
    default_code = "JOB_NOT_FOUND"

    def __init__(self, job_id: str, message: str = "Job not found", **kwargs: Any):
        super().__init__(message, job_id=job_id, **kwargs)
        self.job_id = job_id


class UnitFailedError(SeqSearchError):
    """A unit of an ordered streaming run failed and the run was aborted."""

    default_category = ErrorCategory.STREAMING
    default_code = "UNIT_FAILED"

    def __init__(self, seq: int, cause: BaseException, **kwargs: Any):
        super().__init__(
            f"Unit {seq} failed: {type(cause).__name__}: {cause}",
            cause=cause,
            seq=seq,
            **kwargs,
        )
        self.seq = seq


class ClientError(SeqSearchError):
    """An HTTP call to a search server failed or returned an error body."""

    default_category = ErrorCategory.TRANSPORT
    default_code = "CLIENT_ERROR"

    def __init__(self, message: str, *, status_code: int | None = None, **kwargs: Any):
        super().__init__(message, status_code=status_code, **kwargs)
        self.status_code = status_code


__all__ = [
    "ErrorCategory",
    "SeqSearchError",
    "ValidationError",
    "AdmissionRejected",
    "BackendError",
    "DuplicateIdError",
    "InternalError",
    "JobNotFound",
    "UnitFailedError",
    "ClientError",
]
