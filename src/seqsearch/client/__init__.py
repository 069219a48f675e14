"""Clients for a seqsearch job server."""

from seqsearch.client.batch import BatchReport, BatchSearch, Query, read_queries
from seqsearch.client.http import SearchClient, poll_schedule

__all__ = ["BatchReport", "BatchSearch", "Query", "SearchClient", "poll_schedule", "read_queries"]
