"""Reaper: enforces job deadlines.

Each pass lists running jobs whose deadline has passed, terminates their
workers (graceful, then forceful after ``termination_grace``) and marks the
rows ``timed_out``.  A worker that finalizes in the meantime wins: the
guarded ``mark_timed_out`` then changes nothing.
"""

from __future__ import annotations

from datetime import datetime

from seqsearch.core.logging import get_logger
from seqsearch.core.settings import JobSettings
from seqsearch.jobs.launcher import Launcher
from seqsearch.jobs.store import JobStore

logger = get_logger(__name__)


class Reaper:
    def __init__(self, settings: JobSettings, store: JobStore, launcher: Launcher):
        self._settings = settings
        self._store = store
        self._launcher = launcher

    def reap_once(self, now: datetime | None = None) -> list[str]:
        """Time out every expired running job. Returns the IDs marked timed out."""
        reaped: list[str] = []
        for job in self._store.list_expired(now):
            try:
                self._launcher.terminate(job.worker_handle, self._settings.termination_grace)
                if self._store.mark_timed_out(job.id):
                    reaped.append(job.id)
                    logger.info("job.timed_out", job_id=job.id, deadline=job.deadline.isoformat())
            except Exception:
                logger.exception("reaper.job_failed", job_id=job.id)
        if reaped:
            logger.info("reaper.pass_complete", timed_out=len(reaped))
        return reaped
