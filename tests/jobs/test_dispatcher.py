"""Tests for Dispatcher admission, ID retry and launch handling."""

from __future__ import annotations

import threading
from datetime import timedelta

import pytest

from seqsearch.core.errors import AdmissionRejected, DuplicateIdError, InternalError
from seqsearch.core.ids import generate_job_id
from seqsearch.jobs.dispatcher import MAX_ID_ATTEMPTS, Dispatcher
from seqsearch.jobs.models import JobState, Result
from seqsearch.jobs.worker import WorkerSpec


class HeldLauncher:
    """Records launches without running anything: jobs stay running."""

    def __init__(self):
        self.specs: list[WorkerSpec] = []
        self.terminated: list[str | None] = []
        self._lock = threading.Lock()

    def launch(self, spec: WorkerSpec) -> str:
        with self._lock:
            self.specs.append(spec)
            return f"thread:held-{len(self.specs)}"

    def terminate(self, handle, grace):
        self.terminated.append(handle)
        return True

    def is_alive(self, handle):
        return True

    def shutdown(self, grace):
        pass


class BrokenLauncher(HeldLauncher):
    def launch(self, spec):
        raise OSError("fork failed")


@pytest.fixture()
def launcher():
    return HeldLauncher()


class TestSubmit:
    def test_returns_id_and_launches(self, make_settings, store, launcher):
        d = Dispatcher(make_settings(), store, launcher)
        job_id = d.submit({"queryseq": "ACGT"})

        job = store.get_job(job_id)
        assert job is not None
        assert job.worker_handle == "thread:held-1"
        assert launcher.specs[0].job_id == job_id
        assert launcher.specs[0].parameters == {"queryseq": "ACGT"}
        assert launcher.specs[0].store_path == store.path

    def test_deadline_from_timeout(self, make_settings, store, launcher):
        d = Dispatcher(make_settings(job_timeout=60), store, launcher)
        job = store.get_job(d.submit({}))
        assert job.deadline - job.submitted_at == timedelta(seconds=60)

    def test_worker_gets_backend_settings(self, make_settings, store, launcher):
        settings = make_settings(backend_options={"delay": 1.5})
        Dispatcher(settings, store, launcher).submit({})
        assert launcher.specs[0].backend == settings.backend
        assert launcher.specs[0].backend_options == {"delay": 1.5}


class TestAdmission:
    def test_scenario_a_cap_of_one(self, make_settings, store, launcher):
        d = Dispatcher(make_settings(max_jobs=1), store, launcher)
        a = d.submit({"queryseq": "A"})

        with pytest.raises(AdmissionRejected) as exc_info:
            d.submit({"queryseq": "B"})
        assert exc_info.value.max_jobs == 1
        assert store.count_running() == 1

        store.finalize(a, Result.success(a, {"status": "completed", "results": []}, store.now()))
        c = d.submit({"queryseq": "C"})
        assert store.peek_status(c) == JobState.RUNNING

    def test_rejection_creates_no_row(self, make_settings, store, launcher):
        d = Dispatcher(make_settings(max_jobs=2), store, launcher)
        d.submit({})
        d.submit({})
        with pytest.raises(AdmissionRejected):
            d.submit({})
        assert len(store.list_running()) == 2
        assert len(launcher.specs) == 2

    def test_cancelled_jobs_free_capacity(self, make_settings, store, launcher):
        d = Dispatcher(make_settings(max_jobs=1), store, launcher)
        a = d.submit({})
        store.mark_cancelled(a)
        d.submit({})

    def test_concurrent_burst_never_overshoots(self, make_settings, store, launcher):
        d = Dispatcher(make_settings(max_jobs=3), store, launcher)
        accepted: list[str] = []
        rejected: list[AdmissionRejected] = []
        lock = threading.Lock()

        def submit():
            try:
                job_id = d.submit({})
                with lock:
                    accepted.append(job_id)
            except AdmissionRejected as exc:
                with lock:
                    rejected.append(exc)

        threads = [threading.Thread(target=submit) for _ in range(12)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(accepted) == 3
        assert len(rejected) == 9
        assert store.count_running() == 3


class TestIdAllocation:
    def test_collision_is_retried(self, make_settings, store, launcher):
        taken = generate_job_id()
        store.try_create(taken, {}, store.now() + timedelta(hours=1))
        fresh = generate_job_id()
        ids = iter([taken, taken, fresh])

        d = Dispatcher(make_settings(), store, launcher, id_factory=lambda: next(ids))
        assert d.submit({}) == fresh

    def test_exhausted_retries_raise_internal_error(self, make_settings, store, launcher):
        taken = generate_job_id()
        store.try_create(taken, {}, store.now() + timedelta(hours=1))
        calls = []

        def same_id():
            calls.append(1)
            return taken

        d = Dispatcher(make_settings(), store, launcher, id_factory=same_id)
        with pytest.raises(InternalError) as exc_info:
            d.submit({})

        assert len(calls) == MAX_ID_ATTEMPTS
        assert isinstance(exc_info.value.cause, DuplicateIdError)
        assert launcher.specs == []


class TestLaunchFailure:
    def test_failed_launch_finalizes_job(self, make_settings, store):
        d = Dispatcher(make_settings(), store, BrokenLauncher())
        job_id = d.submit({})

        assert store.count_running() == 0
        result = store.consume_result(job_id)
        assert result is not None
        assert "could not start worker" in result.error
