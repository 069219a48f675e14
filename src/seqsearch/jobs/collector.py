"""Result Collector: retention purge for the results table.

Results older than ``result_retention`` are deleted whether or not a client
ever consumed them.  When ``terminal_job_retention`` is set, cancelled and
timed-out job rows older than that are purged as well; by default they are
kept forever.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from seqsearch.core.logging import get_logger
from seqsearch.core.settings import JobSettings
from seqsearch.jobs.store import JobStore

logger = get_logger(__name__)


@dataclass
class PurgeReport:
    results_deleted: int = 0
    jobs_deleted: int = 0

    @property
    def total_deleted(self) -> int:
        return self.results_deleted + self.jobs_deleted


class ResultCollector:
    def __init__(self, settings: JobSettings, store: JobStore):
        self._settings = settings
        self._store = store

    def collect_once(self, now: datetime | None = None) -> PurgeReport:
        report = PurgeReport()
        report.results_deleted = self._store.purge_results_older_than(
            self._settings.result_retention_delta, now=now
        )
        terminal_retention = self._settings.terminal_job_retention_delta
        if terminal_retention is not None:
            report.jobs_deleted = self._store.purge_terminal_jobs_older_than(
                terminal_retention, now=now
            )
        if report.total_deleted:
            logger.info(
                "collector.purged",
                results=report.results_deleted,
                jobs=report.jobs_deleted,
            )
        return report
