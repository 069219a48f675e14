"""Tests for worker launchers and their termination paths."""

from __future__ import annotations

import time
from datetime import timedelta

import pytest

from seqsearch.core.ids import generate_job_id
from seqsearch.jobs.launcher import ProcessLauncher, ThreadLauncher, WorkerHandle, make_launcher
from seqsearch.jobs.models import JobState
from seqsearch.jobs.worker import WorkerSpec

SCRIPTED = "seqsearch.backend.testing:scripted"


def _admit(store) -> str:
    job_id = generate_job_id()
    store.try_create(job_id, {"queryseq": "ACGTACGT"}, store.now() + timedelta(minutes=5))
    return job_id


def _spec(store, job_id, **options) -> WorkerSpec:
    return WorkerSpec(job_id, {"queryseq": "ACGTACGT"}, store.path, SCRIPTED, options)


class TestWorkerHandle:
    def test_parse(self):
        assert WorkerHandle.parse("pid:4711") == WorkerHandle("pid", "4711")
        assert str(WorkerHandle.parse("thread:seqsearch-job-x")) == "thread:seqsearch-job-x"

    @pytest.mark.parametrize("value", [None, "", "4711", "tcp:1", "pid:"])
    def test_parse_invalid(self, value):
        assert WorkerHandle.parse(value) is None


class TestMakeLauncher:
    def test_thread_mode(self, make_settings):
        assert isinstance(make_launcher(make_settings(worker_mode="thread")), ThreadLauncher)

    def test_process_mode(self, make_settings):
        assert isinstance(make_launcher(make_settings(worker_mode="process")), ProcessLauncher)


class TestThreadLauncher:
    def test_runs_job_to_completion(self, store, wait_for):
        launcher = ThreadLauncher()
        job_id = _admit(store)
        handle = launcher.launch(_spec(store, job_id))

        assert handle.startswith("thread:seqsearch-job-")
        assert wait_for(lambda: store.peek_status(job_id) == JobState.COMPLETED)

    def test_terminate_discards_late_result(self, store, wait_for):
        launcher = ThreadLauncher()
        job_id = _admit(store)
        handle = launcher.launch(_spec(store, job_id, delay=0.3))

        assert launcher.terminate(handle, grace=0.05) is True
        assert wait_for(lambda: not launcher.is_alive(handle), timeout=3)
        assert store.peek_status(job_id) == JobState.RUNNING

    def test_terminate_unknown_handle(self):
        assert ThreadLauncher().terminate("thread:nope", 0.1) is False
        assert ThreadLauncher().terminate(None, 0.1) is False


@pytest.mark.slow
class TestProcessLauncher:
    def test_runs_job_in_child_process(self, store, wait_for):
        launcher = ProcessLauncher("spawn")
        job_id = _admit(store)
        handle = launcher.launch(_spec(store, job_id))

        assert handle.startswith("pid:")
        assert wait_for(lambda: store.peek_status(job_id) == JobState.COMPLETED, timeout=30)

    def test_terminate_stops_long_search(self, store, wait_for):
        launcher = ProcessLauncher("spawn")
        job_id = _admit(store)
        handle = launcher.launch(_spec(store, job_id, delay=30))
        time.sleep(0.5)

        started = time.monotonic()
        assert launcher.terminate(handle, grace=1.0) is True
        assert time.monotonic() - started < 10
        assert not launcher.is_alive(handle)
        assert store.peek_status(job_id) == JobState.RUNNING

    def test_only_own_children_are_signalled(self):
        assert ProcessLauncher("spawn").terminate("pid:1", 0.1) is False
