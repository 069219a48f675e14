"""HTTP interface of the job server."""

from seqsearch.api.app import create_app

__all__ = ["create_app"]
