"""Search backend collaborator: protocol, factory resolution and implementations."""

from seqsearch.backend.protocol import (
    BackendFactory,
    Match,
    SearchBackend,
    open_backend,
    resolve_backend_factory,
)

__all__ = [
    "BackendFactory",
    "Match",
    "SearchBackend",
    "open_backend",
    "resolve_backend_factory",
]
