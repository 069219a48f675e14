"""Search backend collaborator interface.

The orchestration layer treats the similarity search itself as opaque: a
backend *session* ranks stored sequences against one query.  Each worker
opens its own session through a factory and closes it when done; sessions
are never shared between workers.

Contract::

    session = factory(options)                 # private to one worker
    matches = session.search(query, filters, limit)
    session.close()

``search`` raises :class:`~seqsearch.core.errors.BackendError` (or any
exception, which the worker treats the same way) on failure.

Factories are referenced by ``"module:callable"`` strings so that a worker
started with the ``spawn`` method can rebuild them in a fresh interpreter.
"""

from __future__ import annotations

import importlib
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from seqsearch.core.errors import InternalError


@dataclass(frozen=True)
class Match:
    """One ranked hit."""

    correctedscore: int
    seqid: list[str] = field(default_factory=list)
    seq: str | None = None

    def to_dict(self, include_sequence: bool = False) -> dict[str, Any]:
        out: dict[str, Any] = {"correctedscore": self.correctedscore, "seqid": list(self.seqid)}
        if include_sequence and self.seq is not None:
            out["seq"] = self.seq
        return out


@runtime_checkable
class SearchBackend(Protocol):
    """A backend session owned by exactly one worker."""

    def search(self, query: str, filters: Mapping[str, Any], limit: int) -> Sequence[Match]: ...

    def close(self) -> None: ...


BackendFactory = Callable[[dict[str, Any]], SearchBackend]


def resolve_backend_factory(spec: str) -> BackendFactory:
    """Import the factory named by ``"package.module:callable"``."""
    module_name, _, attr = spec.partition(":")
    if not module_name or not attr:
        raise InternalError(f"Invalid backend spec {spec!r}; expected 'module:callable'")
    try:
        module = importlib.import_module(module_name)
        factory = getattr(module, attr)
    except (ImportError, AttributeError) as exc:
        raise InternalError(f"Cannot load backend factory {spec!r}", cause=exc) from exc
    if not callable(factory):
        raise InternalError(f"Backend factory {spec!r} is not callable")
    return factory


def open_backend(spec: str, options: dict[str, Any] | None = None) -> SearchBackend:
    """Resolve *spec* and open a new backend session."""
    return resolve_backend_factory(spec)(dict(options or {}))
