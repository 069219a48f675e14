"""Worker: executes one job to exactly one terminal outcome.

A worker owns everything it touches: its own job-store connection and its
own backend session, opened after it starts and closed before it exits.
Nothing is shared with the supervisor or with other workers.

Outcome rules:
    - backend returns → ``finalize(job_id, Result.success(...))``
    - backend raises  → ``finalize(job_id, Result.failure(...))``
      (a failure is a terminal Result, not an exception for the caller)
    - killed / cancelled before finalizing → nothing is written; the Reaper
      or a restart-time recovery resolves the row

``finalize`` refuses to write once the row is cancelled or timed out, so a
worker that loses the race against cancellation simply has no effect.

Two entry points:
    - :func:`run_job` runs in the caller's thread (used by ``ThreadLauncher``)
    - :func:`process_main` is the ``multiprocessing`` target (``ProcessLauncher``)
"""

from __future__ import annotations

import signal
import sys
import threading
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from seqsearch.backend.protocol import Match, SearchBackend, open_backend
from seqsearch.core.logging import LogContext, configure_logging, get_logger
from seqsearch.core.timestamps import utcnow
from seqsearch.jobs.models import Result
from seqsearch.jobs.store import JobStore

logger = get_logger(__name__)

MODES = ("minimum", "normal", "maximum")


@dataclass(frozen=True)
class WorkerSpec:
    """Everything a worker needs, as plain picklable data."""

    job_id: str
    parameters: dict[str, Any]
    store_path: str
    backend: str
    backend_options: dict[str, Any] = field(default_factory=dict)
    log_level: str = "INFO"
    log_json: bool | None = None


def search_arguments(parameters: dict[str, Any]) -> tuple[str, dict[str, Any], int]:
    """Map job parameters onto ``search(query, filters, limit)``."""
    query = str(parameters.get("queryseq", ""))
    filters = {
        key: parameters.get(key)
        for key in ("db", "partition", "minscore", "minpsharedkey")
        if parameters.get(key) not in (None, "")
    }
    limit = int(parameters.get("maxnseq") or 1000)
    return query, filters, limit


def build_payload(parameters: dict[str, Any], matches: Sequence[Match]) -> dict[str, Any]:
    """Shape the success payload according to the requested mode."""
    mode = parameters.get("mode") or "normal"
    results = [m.to_dict(include_sequence=(mode == "maximum")) for m in matches]
    if mode == "minimum":
        return {"status": "completed", "results": results}
    return {
        "status": "completed",
        "querylabel": parameters.get("querylabel"),
        "queryseq": parameters.get("queryseq"),
        "db": parameters.get("db"),
        "partition": parameters.get("partition"),
        "maxnseq": parameters.get("maxnseq"),
        "minscore": parameters.get("minscore"),
        "mode": mode,
        "results": results,
    }


def run_job(
    spec: WorkerSpec,
    *,
    cancel_event: threading.Event | None = None,
    store: JobStore | None = None,
) -> Result | None:
    """Execute the job described by *spec*.

    Returns the Result that was written, or ``None`` when the job was
    cancelled/timed out first (nothing written).
    """
    store = store or JobStore(spec.store_path)

    with LogContext(job_id=spec.job_id):
        logger.info("worker.started")
        backend: SearchBackend | None = None
        try:
            backend = open_backend(spec.backend, spec.backend_options)
            query, filters, limit = search_arguments(spec.parameters)
            matches = backend.search(query, filters, limit)
            result = Result.success(spec.job_id, build_payload(spec.parameters, matches), utcnow())
        except Exception as exc:
            reason = str(getattr(exc, "reason", None) or exc)
            logger.warning("worker.search_failed", error=reason, error_type=type(exc).__name__)
            result = Result.failure(spec.job_id, f"Search failed: {reason}", utcnow())
        finally:
            if backend is not None:
                try:
                    backend.close()
                except Exception:
                    logger.exception("worker.backend_close_failed")

        if cancel_event is not None and cancel_event.is_set():
            logger.info("worker.abandoned", reason="terminated before finalize")
            return None

        if store.finalize(spec.job_id, result):
            logger.info("worker.finalized", succeeded=result.succeeded)
            return result

        logger.info("worker.finalize_skipped", reason="job no longer running")
        return None


def _exit_on_sigterm(signum, frame) -> None:
    # SystemExit skips finalize but still runs the backend close in run_job
    sys.exit(128 + signum)


def process_main(spec: WorkerSpec) -> None:
    """``multiprocessing.Process`` target: one job in a fresh process."""
    signal.signal(signal.SIGTERM, _exit_on_sigterm)
    configure_logging(level=spec.log_level, json_format=spec.log_json, service="seqsearch-worker")
    run_job(spec)
