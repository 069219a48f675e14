"""Scripted backends for tests, demos and failure drills.

``ScriptedBackend`` does no searching: its behaviour comes entirely from the
options dict, so a test can describe "this query takes five seconds" or
"every search fails" without an external store.  Because the options travel
to worker processes as plain data, the same script works for thread and
process workers.

Options::

    {
        "delay": 0.0,                       # seconds before answering
        "delays": {"ACGTACGT": 5.0},        # per-query override
        "error": "index offline",           # raise BackendError with this reason
        "errors": {"NNNN": "bad query"},    # per-query override
        "matches": [{"correctedscore": 9, "seqid": ["AB1:1:10"]}],
        "calls_file": "/tmp/calls.log"      # one line appended per search
    }
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from seqsearch.backend.protocol import Match
from seqsearch.core.errors import BackendError


class ScriptedBackend:
    """Backend whose latency, failures and hits are scripted by options."""

    def __init__(self, options: Mapping[str, Any]):
        self._options = dict(options)
        self.closed = False

    def search(self, query: str, filters: Mapping[str, Any], limit: int) -> list[Match]:
        calls_file = self._options.get("calls_file")
        if calls_file:
            with Path(calls_file).open("a", encoding="utf-8") as fh:
                fh.write(f"{query}\n")

        delay = self._options.get("delays", {}).get(query, self._options.get("delay", 0.0))
        if delay:
            time.sleep(float(delay))

        error = self._options.get("errors", {}).get(query, self._options.get("error"))
        if error:
            raise BackendError(str(error))

        matches = [
            Match(
                correctedscore=int(m["correctedscore"]),
                seqid=list(m.get("seqid", [])),
                seq=m.get("seq"),
            )
            for m in self._options.get("matches", [])
        ]
        return matches[:limit]

    def close(self) -> None:
        self.closed = True


def scripted(options: dict[str, Any]) -> ScriptedBackend:
    """Factory for ``seqsearch.backend.testing:scripted``."""
    return ScriptedBackend(options)
