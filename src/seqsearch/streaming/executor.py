"""Ordered Streaming Executor: bounded parallelism, original output order.

WHY
───
A batch client fans one large input (many query sequences) out over a few
concurrent workers, but the output file must list results in input order.
Completions arrive in any order, so finished outputs wait in a small
holding map until every earlier unit is done.

ARCHITECTURE
────────────
::

    OrderedStreamingExecutor(pool_size, window=pool_size, failure_policy="abort")
      ├── .map(fn, units)  -> Iterator[UnitOutcome]   (input order)
      └── .run(fn, units, sink) -> StreamStats

    admission                    completion                  drain
    ─────────                    ──────────                  ─────
    seq = next_seq++      →      holding[seq] = outcome  →   while next_due in holding:
    (blocks while pool or                                         yield holding.pop(next_due)
     window is saturated)                                         next_due++

Bounds:
    - at most ``pool_size`` units execute at once
    - ``next_seq - next_due <= window``: units admitted but not yet yielded
      (running + held) never exceed the window, so the holding map stays
      below ``window`` entries

Failure policy:
    abort    (default) first failed unit cancels pending work and raises
             :class:`~seqsearch.core.errors.UnitFailedError`
    isolate  the failed unit is yielded in its slot with ``error`` set and
             the stream continues

Example::

    executor = OrderedStreamingExecutor(pool_size=3)
    for outcome in executor.map(search_one, queries):
        write(outcome.output)
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Iterator
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Generic, Literal, TypeVar

from seqsearch.core.errors import UnitFailedError
from seqsearch.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")

FailurePolicy = Literal["abort", "isolate"]


@dataclass
class UnitOutcome(Generic[T, R]):
    """One unit's result, tagged with its 1-based input position."""

    seq: int
    unit: T
    output: R | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class StreamStats:
    admitted: int = 0
    completed: int = 0
    failed: int = 0
    max_held: int = 0
    duration_seconds: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "admitted": self.admitted,
            "completed": self.completed,
            "failed": self.failed,
            "max_held": self.max_held,
            "duration_seconds": round(self.duration_seconds, 3),
        }


class OrderedStreamingExecutor:
    """Runs units through a bounded pool and yields outcomes in input order."""

    def __init__(
        self,
        pool_size: int = 1,
        *,
        window: int | None = None,
        failure_policy: FailurePolicy = "abort",
    ):
        if pool_size < 1:
            raise ValueError("pool_size must be at least 1")
        if window is not None and window < pool_size:
            raise ValueError("window must be at least pool_size")
        if failure_policy not in ("abort", "isolate"):
            raise ValueError(f"Unknown failure policy: {failure_policy!r}")
        self.pool_size = pool_size
        self.window = window or pool_size
        self.failure_policy = failure_policy
        self.stats = StreamStats()

    def _make_pool(self) -> ThreadPoolExecutor:
        return ThreadPoolExecutor(max_workers=self.pool_size, thread_name_prefix="seqsearch-stream")

    def map(self, fn: Callable[[T], R], units: Iterable[T]) -> Iterator[UnitOutcome[T, R]]:
        """Apply *fn* to every unit, yielding outcomes in input order.

        Raises:
            UnitFailedError: a unit raised and the policy is ``abort``.
        """
        stats = self.stats = StreamStats()
        started = time.monotonic()
        pool = self._make_pool()
        in_flight: dict[Future, tuple[int, T]] = {}
        holding: dict[int, UnitOutcome[T, R]] = {}
        source = iter(units)
        exhausted = False
        next_seq = 1
        next_due = 1

        try:
            while True:
                while (
                    not exhausted
                    and len(in_flight) < self.pool_size
                    and next_seq - next_due < self.window
                ):
                    try:
                        unit = next(source)
                    except StopIteration:
                        exhausted = True
                        break
                    in_flight[pool.submit(fn, unit)] = (next_seq, unit)
                    next_seq += 1
                    stats.admitted += 1

                if not in_flight:
                    break

                done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                for future in done:
                    seq, unit = in_flight.pop(future)
                    exc = future.exception()
                    if exc is None:
                        holding[seq] = UnitOutcome(seq, unit, output=future.result())
                        stats.completed += 1
                        continue
                    stats.failed += 1
                    if self.failure_policy == "abort":
                        logger.warning("stream.aborted", seq=seq, error=str(exc))
                        for pending in in_flight:
                            pending.cancel()
                        raise UnitFailedError(seq, exc) from exc
                    logger.warning("stream.unit_failed", seq=seq, error=str(exc))
                    holding[seq] = UnitOutcome(seq, unit, error=exc)

                stats.max_held = max(stats.max_held, len(holding))
                while next_due in holding:
                    yield holding.pop(next_due)
                    next_due += 1
        finally:
            pool.shutdown(wait=True, cancel_futures=True)
            stats.duration_seconds = time.monotonic() - started

        logger.debug("stream.complete", **stats.to_dict())

    def run(
        self,
        fn: Callable[[T], R],
        units: Iterable[T],
        sink: Callable[[UnitOutcome[T, R]], Any],
    ) -> StreamStats:
        """Drive :meth:`map` into *sink*, one call per unit in input order."""
        for outcome in self.map(fn, units):
            sink(outcome)
        return self.stats
