"""Bounded-parallelism execution that preserves input order."""

from seqsearch.streaming.executor import (
    FailurePolicy,
    OrderedStreamingExecutor,
    StreamStats,
    UnitOutcome,
)

__all__ = ["FailurePolicy", "OrderedStreamingExecutor", "StreamStats", "UnitOutcome"]
