"""Core primitives shared by the job server, workers and clients."""

from seqsearch.core.errors import (
    AdmissionRejected,
    BackendError,
    ClientError,
    DuplicateIdError,
    ErrorCategory,
    InternalError,
    JobNotFound,
    SeqSearchError,
    UnitFailedError,
    ValidationError,
)
from seqsearch.core.ids import created_time, generate_job_id
from seqsearch.core.logging import LogContext, configure_logging, get_logger
from seqsearch.core.settings import JobSettings

__all__ = [
    "AdmissionRejected",
    "BackendError",
    "ClientError",
    "DuplicateIdError",
    "ErrorCategory",
    "InternalError",
    "JobNotFound",
    "SeqSearchError",
    "UnitFailedError",
    "ValidationError",
    "created_time",
    "generate_job_id",
    "LogContext",
    "configure_logging",
    "get_logger",
    "JobSettings",
]
