"""Cancellation Handler: client-initiated termination of a running job."""

from __future__ import annotations

from seqsearch.core.errors import JobNotFound
from seqsearch.core.logging import get_logger
from seqsearch.core.settings import JobSettings
from seqsearch.jobs.launcher import Launcher
from seqsearch.jobs.models import JobStatus
from seqsearch.jobs.store import JobStore

logger = get_logger(__name__)


class CancellationHandler:
    def __init__(self, settings: JobSettings, store: JobStore, launcher: Launcher):
        self._settings = settings
        self._store = store
        self._launcher = launcher

    def cancel(self, job_id: str) -> bool:
        """Terminate the worker of *job_id* and mark the row cancelled.

        Returns True if this call moved the job to cancelled, False if the
        worker finalized first.

        Raises:
            JobNotFound: there is no running job with this ID.
        """
        job = self._store.get_job(job_id)
        if job is None or job.status != JobStatus.RUNNING:
            raise JobNotFound(job_id, "Job not found or already completed")

        self._launcher.terminate(job.worker_handle, self._settings.termination_grace)
        cancelled = self._store.mark_cancelled(job_id)
        if cancelled:
            logger.info("job.cancelled", job_id=job_id)
        else:
            logger.info("job.cancel_lost_race", job_id=job_id)
        return cancelled
