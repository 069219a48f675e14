"""In-memory k-mer backend.

A small, dependency-free implementation of the backend protocol that ranks
stored sequences by the number of k-mers they share with the query.  It is
the default backend of a fresh install, which keeps the server runnable
without an external sequence store.

Options (``SEQSEARCH_BACKEND_OPTIONS`` / ``backend_options``)::

    {
        "kmer_size": 8,
        "sequences": {"AB123:1:100": "ACGT...", ...},
        "sequences_file": "store.json",            # same mapping, as JSON
        "partitions": {"bacteria": ["AB123:1:100"]}
    }

Filters honoured by :meth:`InMemoryKmerBackend.search`: ``partition``,
``minscore`` (minimum shared k-mers) and ``minpsharedkey`` (minimum fraction
of the query's k-mers that must be shared).
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from seqsearch.core.errors import BackendError
from seqsearch.backend.protocol import Match

DEFAULT_KMER_SIZE = 8


def kmers(sequence: str, k: int) -> set[str]:
    seq = sequence.upper()
    return {seq[i : i + k] for i in range(len(seq) - k + 1)}


class InMemoryKmerBackend:
    """Shared-k-mer ranking over a dict of sequences."""

    def __init__(
        self,
        sequences: Mapping[str, str],
        *,
        kmer_size: int = DEFAULT_KMER_SIZE,
        partitions: Mapping[str, Sequence[str]] | None = None,
    ):
        if kmer_size < 1:
            raise ValueError("kmer_size must be positive")
        self.kmer_size = kmer_size
        self._sequences = dict(sequences)
        self._index = {seqid: kmers(seq, kmer_size) for seqid, seq in self._sequences.items()}
        self._partitions = {name: set(ids) for name, ids in (partitions or {}).items()}
        self._closed = False

    def search(self, query: str, filters: Mapping[str, Any], limit: int) -> list[Match]:
        if self._closed:
            raise BackendError("Backend session is closed")
        if len(query) < self.kmer_size:
            raise BackendError(
                f"Query sequence length ({len(query)} bases) is too short "
                f"(minimum {self.kmer_size} bases required)"
            )

        candidates = self._candidates(filters.get("partition"))
        query_kmers = kmers(query, self.kmer_size)
        minscore = filters.get("minscore")
        minpsharedkey = filters.get("minpsharedkey")

        scored: list[tuple[int, str]] = []
        for seqid in candidates:
            shared = len(query_kmers & self._index[seqid])
            if shared == 0:
                continue
            if minscore not in (None, "") and shared < int(minscore):
                continue
            if minpsharedkey not in (None, "") and shared / len(query_kmers) < float(minpsharedkey):
                continue
            scored.append((shared, seqid))

        # equal scores group into one hit, like the original seqid arrays
        by_score: dict[int, list[str]] = {}
        for score, seqid in sorted(scored, key=lambda t: (-t[0], t[1])):
            by_score.setdefault(score, []).append(seqid)

        matches = [
            Match(
                correctedscore=score,
                seqid=ids,
                seq=self._sequences[ids[0]],
            )
            for score, ids in by_score.items()
        ]
        return matches[:limit]

    def _candidates(self, partition: str | None) -> list[str]:
        if not partition:
            return list(self._sequences)
        if partition not in self._partitions:
            raise BackendError(f"Unknown partition: {partition}")
        return [s for s in self._sequences if s in self._partitions[partition]]

    def close(self) -> None:
        self._closed = True


def from_options(options: dict[str, Any]) -> InMemoryKmerBackend:
    """Backend factory used by workers (``seqsearch.backend.memory:from_options``)."""
    sequences: dict[str, str] = dict(options.get("sequences") or {})
    sequences_file = options.get("sequences_file")
    if sequences_file:
        try:
            sequences.update(json.loads(Path(sequences_file).read_text(encoding="utf-8")))
        except (OSError, json.JSONDecodeError) as exc:
            raise BackendError(f"Cannot load sequences from {sequences_file}: {exc}") from exc
    return InMemoryKmerBackend(
        sequences,
        kmer_size=int(options.get("kmer_size", DEFAULT_KMER_SIZE)),
        partitions=options.get("partitions"),
    )
