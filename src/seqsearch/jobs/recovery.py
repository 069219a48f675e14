"""Recovery Manager: re-dispatches jobs orphaned by a restart.

Runs once at startup, before the maintenance loops start and before any
submission is accepted.  Every row still marked running had its worker die
with the previous server process, so each one is relaunched with its
stored parameters and its original deadline; the stale worker handle is
overwritten.  A job already past its deadline is relaunched anyway and is
timed out by the next Reaper pass.

Recovery does not go through admission: relaunched jobs were admitted
before the restart and already count toward ``max_jobs``.
"""

from __future__ import annotations

from seqsearch.core.logging import get_logger
from seqsearch.jobs.dispatcher import Dispatcher
from seqsearch.jobs.store import JobStore

logger = get_logger(__name__)


class RecoveryManager:
    def __init__(self, store: JobStore, dispatcher: Dispatcher):
        self._store = store
        self._dispatcher = dispatcher

    def recover(self) -> list[str]:
        """Relaunch every running job. Returns the IDs relaunched.

        A job that fails to relaunch is logged and left running; the Reaper
        times it out at its deadline.
        """
        recovered: list[str] = []
        for job in self._store.list_running():
            try:
                handle = self._dispatcher.launch(job)
            except Exception:
                logger.exception("recovery.job_failed", job_id=job.id)
                continue
            logger.info(
                "job.recovered",
                job_id=job.id,
                stale_handle=job.worker_handle,
                handle=handle,
            )
            recovered.append(job.id)
        if recovered:
            logger.info("recovery.complete", relaunched=len(recovered))
        return recovered
