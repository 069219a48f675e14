"""Job server settings.

``JobSettings`` is the single, immutable configuration value of the job
server.  It is built once at startup (from environment variables prefixed
``SEQSEARCH_``, a ``.env`` file, or explicit keyword arguments) and passed
into each component's constructor.  Nothing reads configuration from module
globals.

Examples:
    >>> settings = JobSettings(max_jobs=2, job_timeout=60)
    >>> settings.job_timeout_delta.total_seconds()
    60.0

Tags:
    settings, configuration, pydantic, environment, seqsearch
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BACKEND = "seqsearch.backend.memory:from_options"


class JobSettings(BaseSettings):
    """Settings shared by the dispatcher, workers, maintenance loops and API.

    Fields
    ──────
    database_path          : sqlite3 file holding the jobs/results tables
    max_jobs               : admission cap on running jobs
    job_timeout            : seconds from submission to deadline
    result_retention       : seconds a Result is kept, consumed or not
    cleanup_interval       : seconds between Reaper / Result Collector passes
    termination_grace      : seconds between graceful and forceful termination
    terminal_job_retention : seconds to keep cancelled/timed-out rows
                             (``None`` keeps them forever)
    pool_size, stream_window : ordered streaming executor sizing
    """

    model_config = SettingsConfigDict(
        env_prefix="SEQSEARCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # ── Job store ────────────────────────────────────────────────────
    database_path: Path = Field(
        default=Path("./seqsearch_jobs.sqlite"),
        description="SQLite file holding the jobs and results tables",
    )

    # ── Orchestration ────────────────────────────────────────────────
    max_jobs: int = Field(default=10, ge=1, description="Maximum concurrent running jobs")
    job_timeout: float = Field(default=1800.0, gt=0, description="Job timeout in seconds")
    result_retention: float = Field(
        default=86400.0, gt=0, description="Result retention period in seconds"
    )
    cleanup_interval: float = Field(
        default=300.0, gt=0, description="Seconds between reaper and GC passes"
    )
    termination_grace: float = Field(
        default=1.0, ge=0, description="Seconds between graceful and forceful termination"
    )
    terminal_job_retention: float | None = Field(
        default=None,
        gt=0,
        description="Purge cancelled/timed-out job rows older than this; unset keeps them",
    )

    # ── Workers ──────────────────────────────────────────────────────
    worker_mode: Literal["process", "thread"] = "process"
    start_method: Literal["spawn", "fork", "forkserver"] = "spawn"
    backend: str = Field(
        default=DEFAULT_BACKEND,
        description="'module:callable' factory returning a search backend session",
    )
    backend_options: dict[str, Any] = Field(default_factory=dict)

    # ── Search defaults ──────────────────────────────────────────────
    default_db: str = ""
    default_partition: str = ""
    default_maxnseq: int = Field(default=1000, ge=1)
    max_maxnseq: int = Field(default=100000, ge=1)

    # ── Streaming executor ───────────────────────────────────────────
    pool_size: int = Field(default=1, ge=1, description="Parallel units for batch clients")
    stream_window: int | None = Field(
        default=None, ge=1, description="Reorder window; defaults to pool_size"
    )

    # ── Network / observability ──────────────────────────────────────
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"
    log_json: bool | None = None

    @field_validator("backend")
    @classmethod
    def _backend_is_import_path(cls, v: str) -> str:
        module, sep, attr = v.partition(":")
        if not module or not sep or not attr:
            raise ValueError(f"backend must be 'module:callable', got {v!r}")
        return v

    @property
    def job_timeout_delta(self) -> timedelta:
        return timedelta(seconds=self.job_timeout)

    @property
    def result_retention_delta(self) -> timedelta:
        return timedelta(seconds=self.result_retention)

    @property
    def terminal_job_retention_delta(self) -> timedelta | None:
        if self.terminal_job_retention is None:
            return None
        return timedelta(seconds=self.terminal_job_retention)

    @property
    def effective_stream_window(self) -> int:
        return max(self.stream_window or self.pool_size, self.pool_size)
