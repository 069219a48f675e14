"""Job Store: persistent record of running jobs and completed results.

WHY
───
The store is the single source of truth for admission counting, polling and
restart recovery.  Workers run in separate processes, so no in-memory
counter can be authoritative: every question ("how many are running?",
"is this job still running?") is answered from committed rows.

ARCHITECTURE
────────────
::

    JobStore(path)
      ├── .initialize()                     ─ CREATE TABLE IF NOT EXISTS, WAL
      ├── .try_create(id, params, deadline) ─ insert-or-reject
      ├── .count_running()                  ─ admission check
      ├── .attach_worker_handle(id, h)
      ├── .finalize(id, result)             ─ Result insert + row delete, atomic
      ├── .mark_cancelled(id) / .mark_timed_out(id)
      ├── .list_running() / .list_expired(now)
      ├── .consume_result(id)               ─ read-and-delete
      ├── .peek_status(id)                  ─ non-consuming
      └── .purge_results_older_than(d) / .purge_terminal_jobs_older_than(d)

    Tables: jobs (running/cancelled/timed_out rows), results (terminal payloads)

CONCURRENCY
───────────
Each operation opens its own sqlite3 connection, so one ``JobStore`` can be
shared by threads and every worker process builds its own from the path.
Check-then-act operations are either one guarded SQL statement
(``... WHERE status = 'running'``) or a ``BEGIN IMMEDIATE`` transaction.
``finalize``, ``mark_cancelled`` and ``mark_timed_out`` all guard on the row
still being running, so whichever lands first wins and the others are
no-ops returning ``False``.

Example::

    store = JobStore("jobs.sqlite")
    store.initialize()
    if store.try_create(job_id, {"queryseq": "ACGT"}, deadline):
        store.attach_worker_handle(job_id, "pid:4711")
"""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from seqsearch.core.logging import get_logger
from seqsearch.core.timestamps import Clock, from_db, to_db, utcnow
from seqsearch.jobs.models import Job, JobState, JobStatus, Result

logger = get_logger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS jobs (
    job_id TEXT PRIMARY KEY,
    submitted_at TEXT NOT NULL,
    deadline TEXT NOT NULL,
    parameters TEXT NOT NULL DEFAULT '{}',
    status TEXT NOT NULL DEFAULT 'running',
    worker_handle TEXT,
    updated_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS results (
    job_id TEXT PRIMARY KEY,
    completed_at TEXT NOT NULL,
    payload TEXT,
    error TEXT
);
CREATE INDEX IF NOT EXISTS idx_jobs_status ON jobs(status);
CREATE INDEX IF NOT EXISTS idx_jobs_deadline ON jobs(deadline);
CREATE INDEX IF NOT EXISTS idx_results_completed_at ON results(completed_at);
"""

_JOB_COLUMNS = "job_id, submitted_at, deadline, parameters, status, worker_handle"


class JobStore:
    """SQLite-backed store for Job and Result rows."""

    def __init__(
        self,
        path: str | Path,
        *,
        busy_timeout: float = 30.0,
        clock: Clock = utcnow,
    ):
        self._path = str(path)
        self._busy_timeout = busy_timeout
        self._clock = clock

    @property
    def path(self) -> str:
        return self._path

    def now(self) -> datetime:
        """Current time according to the store's clock."""
        return self._clock()

    # ------------------------------------------------------------------ #
    # Connections
    # ------------------------------------------------------------------ #

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(
            self._path,
            timeout=self._busy_timeout,
            isolation_level=None,  # autocommit; explicit BEGIN for transactions
        )
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA synchronous=NORMAL")
            yield conn
        finally:
            conn.close()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Write transaction that takes the database write lock up front."""
        with self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    def initialize(self) -> None:
        """Create tables and indexes if absent and switch the file to WAL."""
        Path(self._path).parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(SCHEMA)
        logger.debug("job_store.initialized", path=self._path)

    # ------------------------------------------------------------------ #
    # Jobs
    # ------------------------------------------------------------------ #

    def try_create(
        self,
        job_id: str,
        parameters: dict[str, Any],
        deadline: datetime,
        *,
        submitted_at: datetime | None = None,
    ) -> bool:
        """Insert a running job row. Returns ``False`` if the ID already exists."""
        now = submitted_at or self._clock()
        with self._connect() as conn:
            try:
                conn.execute(
                    "INSERT INTO jobs "
                    "(job_id, submitted_at, deadline, parameters, status, updated_at) "
                    "VALUES (?, ?, ?, ?, 'running', ?)",
                    (job_id, to_db(now), to_db(deadline), json.dumps(parameters), to_db(now)),
                )
            except sqlite3.IntegrityError:
                return False
        return True

    def count_running(self) -> int:
        with self._connect() as conn:
            row = conn.execute("SELECT COUNT(*) FROM jobs WHERE status = 'running'").fetchone()
        return int(row[0])

    def attach_worker_handle(self, job_id: str, handle: str) -> bool:
        """Record the handle of the worker executing *job_id*."""
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE jobs SET worker_handle = ?, updated_at = ? "
                "WHERE job_id = ? AND status = 'running'",
                (handle, to_db(self._clock()), job_id),
            )
        return cursor.rowcount > 0

    def get_job(self, job_id: str) -> Job | None:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {_JOB_COLUMNS} FROM jobs WHERE job_id = ?", (job_id,)
            ).fetchone()
        return _row_to_job(row) if row else None

    def list_running(self) -> list[Job]:
        """All jobs still marked running, oldest first."""
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {_JOB_COLUMNS} FROM jobs WHERE status = 'running' ORDER BY submitted_at"
            ).fetchall()
        return [_row_to_job(r) for r in rows]

    def list_expired(self, now: datetime | None = None) -> list[Job]:
        """Running jobs whose deadline is before *now*."""
        cutoff = to_db(now or self._clock())
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {_JOB_COLUMNS} FROM jobs "
                "WHERE status = 'running' AND deadline < ? ORDER BY deadline",
                (cutoff,),
            ).fetchall()
        return [_row_to_job(r) for r in rows]

    def mark_cancelled(self, job_id: str) -> bool:
        return self._mark_terminal(job_id, JobStatus.CANCELLED)

    def mark_timed_out(self, job_id: str) -> bool:
        return self._mark_terminal(job_id, JobStatus.TIMED_OUT)

    def _mark_terminal(self, job_id: str, status: JobStatus) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE jobs SET status = ?, updated_at = ? "
                "WHERE job_id = ? AND status = 'running'",
                (status.value, to_db(self._clock()), job_id),
            )
        return cursor.rowcount > 0

    # ------------------------------------------------------------------ #
    # Results
    # ------------------------------------------------------------------ #

    def finalize(self, job_id: str, result: Result) -> bool:
        """Write *result* and delete the running job row in one transaction.

        Returns ``False`` (and writes nothing) when the row is gone or was
        already cancelled / timed out.
        """
        with self._transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM jobs WHERE job_id = ? AND status = 'running'", (job_id,)
            )
            if cursor.rowcount == 0:
                return False
            conn.execute(
                "INSERT OR REPLACE INTO results (job_id, completed_at, payload, error) "
                "VALUES (?, ?, ?, ?)",
                (
                    job_id,
                    to_db(result.completed_at),
                    json.dumps(result.payload) if result.payload is not None else None,
                    result.error,
                ),
            )
        return True

    def consume_result(self, job_id: str) -> Result | None:
        """Read and delete the result of *job_id* (at-most-once delivery)."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT job_id, completed_at, payload, error FROM results WHERE job_id = ?",
                (job_id,),
            ).fetchone()
            if row is None:
                return None
            conn.execute("DELETE FROM results WHERE job_id = ?", (job_id,))
        return _row_to_result(row)

    def peek_status(self, job_id: str) -> JobState:
        """Status of *job_id* without consuming anything."""
        with self._connect() as conn:
            if conn.execute("SELECT 1 FROM results WHERE job_id = ?", (job_id,)).fetchone():
                return JobState.COMPLETED
            row = conn.execute("SELECT status FROM jobs WHERE job_id = ?", (job_id,)).fetchone()
        if row is None:
            return JobState.NOT_FOUND
        return JobState.from_status(JobStatus(row["status"]))

    def purge_results_older_than(self, retention: timedelta, *, now: datetime | None = None) -> int:
        """Delete results whose ``completed_at`` is older than *retention*."""
        cutoff = to_db((now or self._clock()) - retention)
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM results WHERE completed_at < ?", (cutoff,))
        return cursor.rowcount

    def purge_terminal_jobs_older_than(
        self, retention: timedelta, *, now: datetime | None = None
    ) -> int:
        """Delete cancelled / timed-out job rows last updated before *retention*."""
        cutoff = to_db((now or self._clock()) - retention)
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM jobs WHERE status IN ('cancelled', 'timed_out') AND updated_at < ?",
                (cutoff,),
            )
        return cursor.rowcount


def _row_to_job(row: sqlite3.Row) -> Job:
    try:
        params = json.loads(row["parameters"]) if row["parameters"] else {}
    except (json.JSONDecodeError, TypeError) as exc:
        logger.error("store.corrupt_parameters", job_id=row["job_id"], error=str(exc))
        params = {}
    return Job(
        id=row["job_id"],
        submitted_at=from_db(row["submitted_at"]),
        deadline=from_db(row["deadline"]),
        parameters=params,
        status=JobStatus(row["status"]),
        worker_handle=row["worker_handle"],
    )


def _row_to_result(row: sqlite3.Row) -> Result:
    return Result(
        job_id=row["job_id"],
        completed_at=from_db(row["completed_at"]),
        payload=json.loads(row["payload"]) if row["payload"] is not None else None,
        error=row["error"],
    )
