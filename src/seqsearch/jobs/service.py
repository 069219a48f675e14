"""JobService: the orchestration facade used by the API and the CLI.

WHY
───
The HTTP layer should not know about launchers, loops or recovery order.
``JobService`` wires the components together from one immutable
``JobSettings`` and exposes the four client operations plus lifecycle.

ARCHITECTURE
────────────
::

    JobService(settings)
      ├── store        JobStore(settings.database_path)
      ├── launcher     ProcessLauncher | ThreadLauncher   (settings.worker_mode)
      ├── dispatcher   Dispatcher      ─ submit()
      ├── canceller    CancellationHandler ─ cancel()
      ├── recovery     RecoveryManager ─ start(), step 1
      ├── reaper loop  IntervalLoop(Reaper.reap_once)          ─ start(), step 2
      └── gc loop      IntervalLoop(ResultCollector.collect_once)

    start(): initialize store → recover() → start maintenance loops
    stop():  stop loops → optionally terminate live workers

Retrieval semantics:
    result(id)  consumes: payload once, then JobNotFound
                missing but still running → a running view
    status(id)  never consumes; NOT_FOUND is a state, not an exception

Example::

    with JobService(JobSettings(database_path=tmp / "jobs.sqlite")) as svc:
        job_id = svc.submit({"querylabel": "q1", "queryseq": "ACGT..."})
        svc.status(job_id)          # JobState.RUNNING
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from seqsearch.core.errors import JobNotFound
from seqsearch.core.logging import get_logger
from seqsearch.core.settings import JobSettings
from seqsearch.jobs.cancellation import CancellationHandler
from seqsearch.jobs.collector import ResultCollector
from seqsearch.jobs.dispatcher import Dispatcher
from seqsearch.jobs.launcher import Launcher, make_launcher
from seqsearch.jobs.maintenance import IntervalLoop
from seqsearch.jobs.models import JobState, Result
from seqsearch.jobs.reaper import Reaper
from seqsearch.jobs.recovery import RecoveryManager
from seqsearch.jobs.store import JobStore

logger = get_logger(__name__)


@dataclass
class ResultView:
    """What ``JobService.result`` hands back: a consumed Result or "still running"."""

    state: JobState
    result: Result | None = None

    @property
    def running(self) -> bool:
        return self.state == JobState.RUNNING

    def to_response(self) -> dict[str, Any]:
        if self.result is not None:
            return self.result.to_response()
        return {"success": True, "status": "running", "message": "Job is still running"}


class JobService:
    """Submission, polling, retrieval and cancellation over one job store."""

    def __init__(
        self,
        settings: JobSettings,
        *,
        store: JobStore | None = None,
        launcher: Launcher | None = None,
    ):
        self.settings = settings
        self.store = store or JobStore(settings.database_path)
        self.launcher = launcher or make_launcher(settings)
        self.dispatcher = Dispatcher(settings, self.store, self.launcher)
        self.canceller = CancellationHandler(settings, self.store, self.launcher)
        self.recovery = RecoveryManager(self.store, self.dispatcher)
        self.reaper = Reaper(settings, self.store, self.launcher)
        self.collector = ResultCollector(settings, self.store)
        self._loops = [
            IntervalLoop("reaper", self.reaper.reap_once, settings.cleanup_interval),
            IntervalLoop("result-collector", self.collector.collect_once, settings.cleanup_interval),
        ]
        self._started = False

    # ── Lifecycle ────────────────────────────────────────────────────

    def start(self) -> list[str]:
        """Initialize the store, recover orphaned jobs, start maintenance.

        Returns the IDs relaunched by recovery.
        """
        if self._started:
            return []
        self.store.initialize()
        recovered = self.recovery.recover()
        for loop in self._loops:
            loop.start()
        self._started = True
        logger.info(
            "service.started",
            database=self.store.path,
            max_jobs=self.settings.max_jobs,
            worker_mode=self.settings.worker_mode,
            recovered=len(recovered),
        )
        return recovered

    def stop(self, *, terminate_workers: bool = False) -> None:
        """Stop maintenance loops; optionally terminate live workers.

        Workers left running keep their rows ``running``; the next start
        relaunches them.
        """
        for loop in self._loops:
            loop.stop()
        if terminate_workers:
            self.launcher.shutdown(self.settings.termination_grace)
        self._started = False
        logger.info("service.stopped", terminated_workers=terminate_workers)

    def __enter__(self) -> JobService:
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.stop()

    def health(self) -> dict[str, Any]:
        running, limit = self.queue_size()
        return {
            "running": running,
            "max_jobs": limit,
            "loops": [loop.health() for loop in self._loops],
        }

    # ── Client operations ────────────────────────────────────────────

    def submit(self, parameters: dict[str, Any]) -> str:
        return self.dispatcher.submit(parameters)

    def status(self, job_id: str) -> JobState:
        return self.store.peek_status(job_id)

    def result(self, job_id: str) -> ResultView:
        """Consume the result of *job_id*.

        Raises:
            JobNotFound: never existed, already consumed, cancelled or timed out.
        """
        result = self.store.consume_result(job_id)
        if result is not None:
            logger.info("job.result_consumed", job_id=job_id, succeeded=result.succeeded)
            return ResultView(JobState.COMPLETED, result)
        if self.store.peek_status(job_id) == JobState.RUNNING:
            return ResultView(JobState.RUNNING)
        raise JobNotFound(job_id)

    def cancel(self, job_id: str) -> bool:
        self.canceller.cancel(job_id)
        return True

    def queue_size(self) -> tuple[int, int]:
        return self.store.count_running(), self.settings.max_jobs
