"""seqsearch: asynchronous similarity-search job server and batch client."""

__version__ = "0.1.0"
