"""Job orchestration: store, dispatcher, workers, maintenance and the service facade."""

from seqsearch.jobs.dispatcher import MAX_ID_ATTEMPTS, Dispatcher
from seqsearch.jobs.launcher import ProcessLauncher, ThreadLauncher, WorkerHandle, make_launcher
from seqsearch.jobs.models import Job, JobState, JobStatus, Result
from seqsearch.jobs.service import JobService, ResultView
from seqsearch.jobs.store import JobStore

__all__ = [
    "MAX_ID_ATTEMPTS",
    "Dispatcher",
    "Job",
    "JobService",
    "JobState",
    "JobStatus",
    "JobStore",
    "ProcessLauncher",
    "Result",
    "ResultView",
    "ThreadLauncher",
    "WorkerHandle",
    "make_launcher",
]
