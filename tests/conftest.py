"""
Shared pytest fixtures for seqsearch tests.

This module provides:
- A fresh sqlite job store per test (``tmp_path``)
- ``make_settings`` for immutable ``JobSettings`` pointing at that store,
  using in-process thread workers and the scripted backend
- ``wait_for`` for polling background threads without fixed sleeps
"""

from __future__ import annotations

import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from seqsearch.core.settings import JobSettings
from seqsearch.jobs.store import JobStore

SCRIPTED_BACKEND = "seqsearch.backend.testing:scripted"

SAMPLE_MATCHES = [
    {"correctedscore": 42, "seqid": ["AB000001:1:100"], "seq": "ACGTACGTAC"},
    {"correctedscore": 17, "seqid": ["AB000002:1:100", "AB000003:5:90"], "seq": "TTGCA"},
]


@pytest.fixture()
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "jobs.sqlite"


@pytest.fixture()
def store(db_path: Path) -> JobStore:
    s = JobStore(db_path)
    s.initialize()
    return s


@pytest.fixture()
def make_settings(db_path: Path) -> Callable[..., JobSettings]:
    """Build settings for the per-test store; keyword overrides win."""

    def _make(**overrides: Any) -> JobSettings:
        values: dict[str, Any] = {
            "database_path": db_path,
            "worker_mode": "thread",
            "backend": SCRIPTED_BACKEND,
            "backend_options": {"matches": SAMPLE_MATCHES},
            "cleanup_interval": 3600.0,
            "termination_grace": 0.2,
        }
        values.update(overrides)
        return JobSettings(_env_file=None, **values)

    return _make


@pytest.fixture()
def settings(make_settings) -> JobSettings:
    return make_settings()


@pytest.fixture()
def wait_for() -> Callable[..., bool]:
    """Poll *predicate* until true or *timeout* seconds pass."""

    def _wait(predicate: Callable[[], bool], timeout: float = 5.0, interval: float = 0.02) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(interval)
        return predicate()

    return _wait
