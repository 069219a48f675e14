"""Background interval loop shared by the Reaper and the Result Collector.

::

    IntervalLoop(name, callback, interval)
      start()  → daemon thread:  while not stop_event.wait(interval): callback()
      stop()   → stop_event.set(); thread.join(timeout)

A failing pass is logged and the loop keeps its schedule.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import datetime
from typing import Any

from seqsearch.core.logging import get_logger
from seqsearch.core.timestamps import utcnow

logger = get_logger(__name__)


class IntervalLoop:
    """Calls *callback* every *interval* seconds in a daemon thread."""

    def __init__(self, name: str, callback: Callable[[], Any], interval: float):
        self.name = name
        self._callback = callback
        self._interval = interval
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._tick_count = 0
        self._last_tick: datetime | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            logger.warning("maintenance.already_started", loop=self.name)
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, daemon=True, name=f"seqsearch-{self.name}")
        self._thread.start()

    def _run(self) -> None:
        logger.info("maintenance.started", loop=self.name, interval=self._interval)
        while not self._stop_event.wait(self._interval):
            self.tick()
        logger.info("maintenance.stopped", loop=self.name)

    def tick(self) -> None:
        """Run one pass now; exceptions are logged, never raised."""
        self._tick_count += 1
        self._last_tick = utcnow()
        try:
            self._callback()
        except Exception:
            logger.exception("maintenance.pass_failed", loop=self.name)

    def stop(self, timeout: float = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("maintenance.stop_timeout", loop=self.name)
        self._thread = None

    def health(self) -> dict[str, Any]:
        return {
            "loop": self.name,
            "running": self.running,
            "tick_count": self._tick_count,
            "last_tick": self._last_tick.isoformat() if self._last_tick else None,
            "interval_seconds": self._interval,
        }
