"""Batch search: many queries, bounded parallelism, output in input order.

Each query becomes one unit of an :class:`OrderedStreamingExecutor`: a
full submit-and-wait round trip against the job server.  Results are
written as tab-separated rows as soon as every earlier query is done::

    <query number>  <label>  <correctedscore>  <seqid,seqid,...>  [<seq>]

The trailing ``seq`` column appears only in ``maximum`` mode.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any, TextIO

from seqsearch.client.http import SearchClient
from seqsearch.core.errors import BackendError
from seqsearch.core.logging import get_logger
from seqsearch.streaming.executor import FailurePolicy, OrderedStreamingExecutor, UnitOutcome

logger = get_logger(__name__)


@dataclass(frozen=True)
class Query:
    label: str
    sequence: str


def read_queries(lines: Iterable[str]) -> Iterator[Query]:
    """Parse ``label<TAB>sequence`` lines; blank lines and ``#`` comments are skipped."""
    for lineno, line in enumerate(lines, start=1):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        label, sep, sequence = line.partition("\t")
        if not sep or not sequence.strip():
            raise ValueError(f"line {lineno}: expected 'label<TAB>sequence'")
        yield Query(label=label.strip(), sequence=sequence.strip())


def format_rows(seq: int, query: Query, payload: dict[str, Any]) -> list[str]:
    rows = []
    for match in payload.get("results", []):
        cols = [
            str(seq),
            query.label,
            str(match.get("correctedscore", "")),
            ",".join(match.get("seqid", [])),
        ]
        if match.get("seq") is not None:
            cols.append(match["seq"])
        rows.append("\t".join(cols))
    return rows


@dataclass
class BatchReport:
    queries: int = 0
    results: int = 0
    failed: list[int] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.failed


class BatchSearch:
    """Runs queries through a :class:`SearchClient` with ordered output."""

    def __init__(
        self,
        client: SearchClient,
        *,
        pool_size: int = 1,
        window: int | None = None,
        failure_policy: FailurePolicy = "abort",
        request_defaults: dict[str, Any] | None = None,
    ):
        self._client = client
        self._executor = OrderedStreamingExecutor(
            pool_size, window=window, failure_policy=failure_policy
        )
        self._defaults = {k: v for k, v in (request_defaults or {}).items() if v is not None}

    def search_one(self, query: Query) -> dict[str, Any]:
        payload = self._client.search(
            {**self._defaults, "querylabel": query.label, "queryseq": query.sequence}
        )
        if payload.get("status") == "failed":
            raise BackendError(str(payload.get("message") or "Search failed"))
        return payload

    def run(self, queries: Iterable[Query], out: TextIO) -> BatchReport:
        """Search every query, writing rows to *out* in input order.

        Raises:
            UnitFailedError: a query failed and the policy is ``abort``.
        """
        report = BatchReport()

        def sink(outcome: UnitOutcome[Query, dict[str, Any]]) -> None:
            report.queries += 1
            if not outcome.ok:
                report.failed.append(outcome.seq)
                logger.warning(
                    "batch.query_failed",
                    seq=outcome.seq,
                    label=outcome.unit.label,
                    error=str(outcome.error),
                )
                return
            rows = format_rows(outcome.seq, outcome.unit, outcome.output or {})
            if not rows:
                logger.info("batch.no_matches", seq=outcome.seq, label=outcome.unit.label)
            for row in rows:
                out.write(row + "\n")
            report.results += len(rows)

        stats = self._executor.run(self.search_one, queries, sink)
        logger.info("batch.complete", results=report.results, **stats.to_dict())
        return report
