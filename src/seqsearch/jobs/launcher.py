"""Worker launchers: start isolated workers and terminate them.

Two flavours share one small interface (``launch`` / ``terminate`` /
``is_alive`` / ``shutdown``):

    ProcessLauncher   one OS process per job (``multiprocessing``, ``spawn``
                      by default); termination is SIGTERM, wait
                      ``grace`` seconds, SIGKILL
    ThreadLauncher    one daemon thread per job; termination sets a
                      cooperative ``threading.Event`` the worker checks
                      before finalizing

Handles are plain strings (``"pid:4711"``, ``"thread:seqsearch-job-…"``) so
they can be persisted on the job row and parsed back by the Reaper or the
Cancellation Handler.

Only workers started by this launcher instance are ever signalled.  A handle
left over from a previous server run is overwritten by recovery before the
maintenance loops start, so an unknown PID is never killed on a guess.
"""

from __future__ import annotations

import multiprocessing
import threading
from dataclasses import dataclass
from typing import Protocol

from seqsearch.core.logging import get_logger
from seqsearch.core.settings import JobSettings
from seqsearch.jobs.worker import WorkerSpec, process_main, run_job

logger = get_logger(__name__)

PROCESS_KIND = "pid"
THREAD_KIND = "thread"


@dataclass(frozen=True)
class WorkerHandle:
    """Parsed form of a persisted worker handle."""

    kind: str
    ref: str

    @classmethod
    def parse(cls, value: str | None) -> WorkerHandle | None:
        if not value or ":" not in value:
            return None
        kind, _, ref = value.partition(":")
        if kind not in (PROCESS_KIND, THREAD_KIND) or not ref:
            return None
        return cls(kind=kind, ref=ref)

    def __str__(self) -> str:
        return f"{self.kind}:{self.ref}"


class Launcher(Protocol):
    """What the dispatcher, reaper and cancellation handler need from a launcher."""

    def launch(self, spec: WorkerSpec) -> str: ...

    def terminate(self, handle: str | None, grace: float) -> bool: ...

    def is_alive(self, handle: str | None) -> bool: ...

    def shutdown(self, grace: float) -> None: ...


class ProcessLauncher:
    """Runs every job in its own OS process."""

    def __init__(self, start_method: str = "spawn"):
        self._ctx = multiprocessing.get_context(start_method)
        self._procs: dict[int, multiprocessing.process.BaseProcess] = {}
        self._lock = threading.Lock()

    def launch(self, spec: WorkerSpec) -> str:
        proc = self._ctx.Process(
            target=process_main,
            args=(spec,),
            name=f"seqsearch-job-{spec.job_id}",
            daemon=False,
        )
        proc.start()
        with self._lock:
            self._reap_finished()
            self._procs[proc.pid] = proc
        handle = str(WorkerHandle(PROCESS_KIND, str(proc.pid)))
        logger.debug("launcher.process_started", job_id=spec.job_id, handle=handle)
        return handle

    def _reap_finished(self) -> None:
        # join exited children so they do not linger as zombies
        for pid, proc in list(self._procs.items()):
            if not proc.is_alive():
                proc.join(timeout=0)
                del self._procs[pid]

    def _lookup(self, handle: str | None):
        parsed = WorkerHandle.parse(handle)
        if parsed is None or parsed.kind != PROCESS_KIND:
            return None
        try:
            pid = int(parsed.ref)
        except ValueError:
            return None
        with self._lock:
            return self._procs.get(pid)

    def is_alive(self, handle: str | None) -> bool:
        proc = self._lookup(handle)
        return proc is not None and proc.is_alive()

    def terminate(self, handle: str | None, grace: float) -> bool:
        """SIGTERM, wait up to *grace* seconds, then SIGKILL.

        Returns True if a live worker was signalled.
        """
        proc = self._lookup(handle)
        if proc is None:
            logger.debug("launcher.unknown_handle", handle=handle)
            return False
        if not proc.is_alive():
            proc.join(timeout=0)
            return False

        proc.terminate()
        proc.join(timeout=grace)
        if proc.is_alive():
            logger.warning("launcher.kill_after_grace", handle=handle, grace=grace)
            proc.kill()
            proc.join()

        with self._lock:
            self._procs.pop(proc.pid, None)
        return True

    def shutdown(self, grace: float) -> None:
        with self._lock:
            pids = list(self._procs)
        for pid in pids:
            self.terminate(f"{PROCESS_KIND}:{pid}", grace)


class ThreadLauncher:
    """Runs every job in a daemon thread with cooperative cancellation.

    A thread cannot be killed: ``terminate`` sets the job's cancel event and
    waits up to ``grace`` for the thread to notice.  A worker still inside
    the backend call keeps running until the call returns, then discards its
    result.
    """

    def __init__(self):
        self._workers: dict[str, tuple[threading.Thread, threading.Event]] = {}
        self._lock = threading.Lock()

    def launch(self, spec: WorkerSpec) -> str:
        name = f"seqsearch-job-{spec.job_id}"
        event = threading.Event()
        thread = threading.Thread(
            target=run_job,
            args=(spec,),
            kwargs={"cancel_event": event},
            name=name,
            daemon=True,
        )
        with self._lock:
            for key, (t, _) in list(self._workers.items()):
                if not t.is_alive():
                    del self._workers[key]
            self._workers[name] = (thread, event)
        thread.start()
        return str(WorkerHandle(THREAD_KIND, name))

    def _lookup(self, handle: str | None):
        parsed = WorkerHandle.parse(handle)
        if parsed is None or parsed.kind != THREAD_KIND:
            return None
        with self._lock:
            return self._workers.get(parsed.ref)

    def is_alive(self, handle: str | None) -> bool:
        entry = self._lookup(handle)
        return entry is not None and entry[0].is_alive()

    def terminate(self, handle: str | None, grace: float) -> bool:
        entry = self._lookup(handle)
        if entry is None:
            return False
        thread, event = entry
        event.set()
        if not thread.is_alive():
            return False
        thread.join(timeout=grace)
        return True

    def shutdown(self, grace: float) -> None:
        with self._lock:
            handles = [f"{THREAD_KIND}:{name}" for name in self._workers]
        for handle in handles:
            self.terminate(handle, grace)


def make_launcher(settings: JobSettings) -> Launcher:
    if settings.worker_mode == "thread":
        return ThreadLauncher()
    return ProcessLauncher(settings.start_method)
