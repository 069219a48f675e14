"""Tests for job IDs, timestamps, the error taxonomy and settings."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from pydantic import ValidationError as PydanticValidationError

from seqsearch.core.errors import (
    AdmissionRejected,
    BackendError,
    ErrorCategory,
    InternalError,
    JobNotFound,
    SeqSearchError,
    UnitFailedError,
)
from seqsearch.core.ids import created_time, generate_job_id, is_job_id
from seqsearch.core.settings import JobSettings
from seqsearch.core.timestamps import from_db, to_db


# ── IDs ──────────────────────────────────────────────────────────────────


class TestJobIds:
    def test_format(self):
        job_id = generate_job_id(datetime(2025, 1, 9, 13, 45, 1, tzinfo=UTC))
        assert job_id.startswith("20250109T134501-")
        assert len(job_id) == 15 + 1 + 32
        assert is_job_id(job_id)

    def test_created_time_is_prefix(self):
        job_id = generate_job_id(datetime(2024, 12, 31, 23, 59, 59, tzinfo=UTC))
        assert created_time(job_id) == "20241231T235959"

    def test_ids_are_unique(self):
        ids = {generate_job_id() for _ in range(1000)}
        assert len(ids) == 1000

    def test_is_job_id_rejects_garbage(self):
        assert not is_job_id("not-a-job")
        assert not is_job_id("")


# ── Timestamps ───────────────────────────────────────────────────────────


class TestTimestamps:
    def test_fixed_width(self):
        assert to_db(datetime(2025, 1, 1, tzinfo=UTC)) == "2025-01-01T00:00:00.000000Z"

    def test_decode_encode(self):
        dt = datetime(2025, 3, 4, 5, 6, 7, 890123, tzinfo=UTC)
        assert from_db(to_db(dt)) == dt

    def test_lexical_order_matches_time_order(self):
        base = datetime(2025, 1, 1, 9, 59, 59, tzinfo=UTC)
        later = base + timedelta(microseconds=1)
        assert to_db(base) < to_db(later)


# ── Errors ───────────────────────────────────────────────────────────────


class TestErrors:
    def test_admission_rejected_is_retryable(self):
        err = AdmissionRejected(3, running=3)
        assert err.code == "QUEUE_FULL"
        assert err.category == ErrorCategory.CAPACITY
        assert err.retryable is True
        assert "Maximum concurrent jobs: 3" in err.message

    def test_job_not_found(self):
        err = JobNotFound("abc")
        assert err.code == "JOB_NOT_FOUND"
        assert err.job_id == "abc"
        assert err.message == "Job not found"

    def test_backend_error_keeps_reason(self):
        err = BackendError("index offline")
        assert err.reason == "index offline"
        assert err.code == "SEARCH_ERROR"

    def test_cause_is_chained(self):
        root = ValueError("boom")
        err = InternalError("wrapped", cause=root)
        assert err.__cause__ is root
        assert err.to_dict()["cause"] == "boom"

    def test_unit_failed_error_message(self):
        err = UnitFailedError(4, RuntimeError("bad unit"))
        assert err.seq == 4
        assert err.message == "Unit 4 failed: RuntimeError: bad unit"

    def test_all_errors_share_base(self):
        for exc in (AdmissionRejected(1), BackendError("x"), JobNotFound("y")):
            assert isinstance(exc, SeqSearchError)


# ── Settings ─────────────────────────────────────────────────────────────


class TestSettings:
    def test_defaults(self):
        s = JobSettings(_env_file=None)
        assert s.max_jobs == 10
        assert s.job_timeout == 1800.0
        assert s.result_retention == 86400.0
        assert s.cleanup_interval == 300.0
        assert s.terminal_job_retention is None
        assert s.terminal_job_retention_delta is None
        assert s.worker_mode == "process"
        assert s.start_method == "spawn"
        assert s.effective_stream_window == 1

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("SEQSEARCH_MAX_JOBS", "3")
        monkeypatch.setenv("SEQSEARCH_JOB_TIMEOUT", "60")
        s = JobSettings(_env_file=None)
        assert s.max_jobs == 3
        assert s.job_timeout_delta == timedelta(seconds=60)

    def test_frozen(self):
        s = JobSettings(_env_file=None)
        with pytest.raises(PydanticValidationError):
            s.max_jobs = 99

    def test_backend_must_be_import_path(self):
        with pytest.raises(PydanticValidationError):
            JobSettings(_env_file=None, backend="seqsearch.backend.memory")

    def test_max_jobs_positive(self):
        with pytest.raises(PydanticValidationError):
            JobSettings(_env_file=None, max_jobs=0)

    def test_stream_window_never_below_pool(self):
        s = JobSettings(_env_file=None, pool_size=4, stream_window=2)
        assert s.effective_stream_window == 4
        s = JobSettings(_env_file=None, pool_size=4, stream_window=8)
        assert s.effective_stream_window == 8
