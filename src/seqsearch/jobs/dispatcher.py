"""Dispatcher: admission, ID allocation, persistence and worker launch.

WHY
───
Submission must return a job ID right away, never admit more than
``max_jobs`` running jobs, and never hand out an ID twice.  The dispatcher
is the single choke-point for all three.

ARCHITECTURE
────────────
::

    Dispatcher(settings, store, launcher)
      ├── .submit(parameters) -> job_id
      │     ├── [admission lock]
      │     │     count_running() >= max_jobs  → AdmissionRejected
      │     │     generate_job_id() + try_create()  (≤ MAX_ID_ATTEMPTS)
      │     ├── launch(job)
      │     └── return job_id
      └── .launch(job)      ─ start a worker for an existing row
                              (shared with RecoveryManager)

The capacity check and the insert run under one lock, so submissions
racing inside one service never overshoot the cap.  The count itself comes
from committed rows, not an in-process counter, so it survives restarts.

A launch failure finalizes the row with a failed Result; the job then
reads as completed with an error instead of sitting in ``running`` until
its deadline.
"""

from __future__ import annotations

import threading
from datetime import timedelta
from typing import Any

from seqsearch.core.errors import AdmissionRejected, DuplicateIdError, InternalError
from seqsearch.core.ids import generate_job_id
from seqsearch.core.logging import get_logger
from seqsearch.core.settings import JobSettings
from seqsearch.jobs.launcher import Launcher
from seqsearch.jobs.models import Job, Result
from seqsearch.jobs.store import JobStore
from seqsearch.jobs.worker import WorkerSpec

logger = get_logger(__name__)

MAX_ID_ATTEMPTS = 10


class Dispatcher:
    """Admits jobs under the concurrency cap and starts their workers."""

    def __init__(
        self,
        settings: JobSettings,
        store: JobStore,
        launcher: Launcher,
        *,
        id_factory=generate_job_id,
    ):
        self._settings = settings
        self._store = store
        self._launcher = launcher
        self._id_factory = id_factory
        self._admission_lock = threading.Lock()

    def submit(self, parameters: dict[str, Any]) -> str:
        """Admit a job and start its worker; return the new job ID.

        Raises:
            AdmissionRejected: ``max_jobs`` jobs are already running.
            InternalError: no unique ID after ``MAX_ID_ATTEMPTS`` tries.
        """
        with self._admission_lock:
            running = self._store.count_running()
            if running >= self._settings.max_jobs:
                logger.info("job.rejected", running=running, max_jobs=self._settings.max_jobs)
                raise AdmissionRejected(self._settings.max_jobs, running=running)
            job = self._allocate(parameters)

        logger.info("job.submitted", job_id=job.id, deadline=job.deadline.isoformat())
        self.launch(job)
        return job.id

    def _allocate(self, parameters: dict[str, Any]) -> Job:
        timeout = timedelta(seconds=self._settings.job_timeout)
        last_id = None
        for attempt in range(1, MAX_ID_ATTEMPTS + 1):
            job_id = self._id_factory()
            submitted_at = self._store.now()
            deadline = submitted_at + timeout
            if self._store.try_create(job_id, parameters, deadline, submitted_at=submitted_at):
                return Job(
                    id=job_id,
                    submitted_at=submitted_at,
                    deadline=deadline,
                    parameters=dict(parameters),
                )
            logger.warning("job.id_collision", job_id=job_id, attempt=attempt)
            last_id = job_id

        raise InternalError(
            f"Could not allocate a unique job ID after {MAX_ID_ATTEMPTS} attempts",
            cause=DuplicateIdError(last_id or ""),
        )

    def worker_spec(self, job: Job) -> WorkerSpec:
        return WorkerSpec(
            job_id=job.id,
            parameters=dict(job.parameters),
            store_path=self._store.path,
            backend=self._settings.backend,
            backend_options=dict(self._settings.backend_options),
            log_level=self._settings.log_level,
            log_json=self._settings.log_json,
        )

    def launch(self, job: Job) -> str | None:
        """Start a worker for an existing running row and record its handle."""
        try:
            handle = self._launcher.launch(self.worker_spec(job))
        except Exception as exc:
            logger.exception("job.launch_failed", job_id=job.id)
            self._store.finalize(
                job.id,
                Result.failure(job.id, f"Search failed: could not start worker: {exc}", self._store.now()),
            )
            return None

        if not self._store.attach_worker_handle(job.id, handle):
            # the worker already finished, or the job was cancelled meanwhile
            logger.debug("job.handle_not_attached", job_id=job.id, handle=handle)
        return handle
