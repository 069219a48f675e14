"""HTTP client for a seqsearch job server.

Wraps the four job endpoints and the polling loop a batch client runs
after submitting: status is checked after 5, 10, 20 and 30 seconds, then
every 60 seconds until the job leaves ``running``.  Several server URLs
may be given; requests rotate over them round-robin.

Error mapping:
    404 JOB_NOT_FOUND  → JobNotFound (also a bare 404 without a code)
    503 QUEUE_FULL     → AdmissionRejected
    anything else      → ClientError (transport failures included)

Example::

    with SearchClient("http://localhost:8080") as client:
        job_id = client.submit({"querylabel": "q1", "queryseq": "ACGT..."})
        payload = client.wait(job_id)
"""

from __future__ import annotations

import itertools
import threading
import time
from collections.abc import Callable, Sequence
from typing import Any

import httpx

from seqsearch import __version__
from seqsearch.core.errors import AdmissionRejected, ClientError, JobNotFound
from seqsearch.core.logging import get_logger

logger = get_logger(__name__)

POLL_INTERVALS: tuple[float, ...] = (5, 10, 20, 30)
STEADY_POLL_INTERVAL: float = 60


def poll_schedule(
    intervals: Sequence[float] = POLL_INTERVALS, steady: float = STEADY_POLL_INTERVAL
):
    """Yield the sleep before each status poll: *intervals*, then *steady* forever."""
    yield from intervals
    while True:
        yield steady


def _normalize_url(url: str) -> str:
    url = url.rstrip("/")
    if url.endswith("/search"):
        url = url[: -len("/search")]
    return url


class SearchClient:
    """Synchronous httpx client for submit / status / result / cancel."""

    def __init__(
        self,
        base_urls: str | Sequence[str],
        *,
        timeout: float = 30.0,
        max_retries: int = 0,
        max_total_retries: int = 100,
        poll_intervals: Sequence[float] = POLL_INTERVALS,
        steady_poll_interval: float = STEADY_POLL_INTERVAL,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        urls = [base_urls] if isinstance(base_urls, str) else list(base_urls)
        if not urls:
            raise ValueError("At least one server URL is required")
        self.base_urls = [_normalize_url(u) for u in urls]
        self._cycle = itertools.cycle(self.base_urls)
        self._cycle_lock = threading.Lock()
        self.max_retries = max_retries
        self.max_total_retries = max_total_retries
        self.total_retries = 0
        self._retry_lock = threading.Lock()
        self._poll_intervals = tuple(poll_intervals)
        self._steady_poll_interval = steady_poll_interval
        self._sleep = sleep
        self._http = httpx.Client(
            timeout=timeout,
            transport=transport,
            headers={"User-Agent": f"seqsearch-client/{__version__}"},
        )

    def __enter__(self) -> SearchClient:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    # ── Transport ────────────────────────────────────────────────────

    def _request(self, method: str, path: str, body: dict[str, Any] | None = None) -> dict[str, Any]:
        with self._cycle_lock:
            base = next(self._cycle)
        url = f"{base}{path}"
        try:
            response = self._http.request(method, url, json=body)
        except httpx.HTTPError as exc:
            raise ClientError(f"HTTP error calling {url}: {exc}", cause=exc) from exc

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.is_success:
            return data

        code = None
        if isinstance(data, dict):
            legacy = data.get("error")
            code = data.get("code") or (legacy if isinstance(legacy, str) else None)
        message = (data.get("message") if isinstance(data, dict) else None) or response.reason_phrase
        if code == "JOB_NOT_FOUND" or (response.status_code == 404 and code is None):
            raise JobNotFound((body or {}).get("job_id", ""), message)
        if response.status_code == 503 or code == "QUEUE_FULL":
            limit = response.headers.get("X-Job-Queue-Limit")
            size = response.headers.get("X-Job-Queue-Size")
            raise AdmissionRejected(
                int(limit) if limit and limit.isdigit() else 0,
                running=int(size) if size and size.isdigit() else None,
            )
        raise ClientError(
            f"Server error ({response.status_code}): {message}",
            status_code=response.status_code,
            code=code or None,
        )

    # ── Endpoints ────────────────────────────────────────────────────

    def submit(self, request: dict[str, Any]) -> str:
        data = self._request("POST", "/search", request)
        job_id = data.get("job_id")
        if not data.get("success") or not job_id:
            raise ClientError(f"Server error: {data.get('message') or 'Unknown error'}")
        logger.info("client.submitted", job_id=job_id)
        return job_id

    def status(self, job_id: str) -> str:
        return self._request("POST", "/status", {"job_id": job_id})["status"]

    def result(self, job_id: str) -> dict[str, Any]:
        return self._request("POST", "/result", {"job_id": job_id})

    def cancel(self, job_id: str) -> dict[str, Any]:
        return self._request("POST", "/cancel", {"job_id": job_id})

    def health(self) -> dict[str, Any]:
        return self._request("GET", "/health")

    # ── Polling ──────────────────────────────────────────────────────

    def wait(self, job_id: str) -> dict[str, Any]:
        """Poll until *job_id* completes and return its (consumed) result.

        Status failures are retried until ``max_retries`` for this job
        (0 means unlimited) or ``max_total_retries`` for this client is hit.

        Raises:
            ClientError: job cancelled, timed out, or retries exhausted.
            JobNotFound: the server no longer knows the job.
        """
        retries = 0
        for delay in poll_schedule(self._poll_intervals, self._steady_poll_interval):
            self._sleep(delay)
            try:
                state = self.status(job_id)
            except ClientError as exc:
                retries += 1
                logger.warning("client.status_failed", job_id=job_id, attempt=retries, error=str(exc))
                if self.max_retries > 0 and retries >= self.max_retries:
                    raise ClientError("Maximum retry count reached", cause=exc) from exc
                with self._retry_lock:
                    if self.total_retries >= self.max_total_retries:
                        raise ClientError("Maximum total retry count reached", cause=exc) from exc
                    self.total_retries += 1
                continue

            logger.debug("client.polled", job_id=job_id, status=state)
            if state == "running":
                continue
            if state == "completed":
                return self.result(job_id)
            raise ClientError(f"Job {job_id} ended with status {state}")

    def search(self, request: dict[str, Any]) -> dict[str, Any]:
        """Submit *request* and wait for its result."""
        return self.wait(self.submit(request))
