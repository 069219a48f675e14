"""
Tests for OrderedStreamingExecutor.

Tests verify:
- Outputs come back in input order regardless of completion order
- At most pool_size units run at once and the holding map stays bounded
- abort raises UnitFailedError; isolate yields the failure in its slot
"""

from __future__ import annotations

import random
import threading
import time

import pytest

from seqsearch.core.errors import UnitFailedError
from seqsearch.streaming import OrderedStreamingExecutor


class TestOrdering:
    def test_out_of_order_completion(self):
        """Three units finishing 2, 3, 1 still yield 1, 2, 3."""
        delays = {"u1": 0.3, "u2": 0.1, "u3": 0.2}
        finished: list[str] = []
        lock = threading.Lock()

        def work(unit):
            time.sleep(delays[unit])
            with lock:
                finished.append(unit)
            return unit.upper()

        executor = OrderedStreamingExecutor(pool_size=3)
        outcomes = list(executor.map(work, ["u1", "u2", "u3"]))

        assert finished == ["u2", "u3", "u1"]
        assert [o.seq for o in outcomes] == [1, 2, 3]
        assert [o.output for o in outcomes] == ["U1", "U2", "U3"]

    def test_random_delays_keep_order(self):
        rng = random.Random(7)
        delays = [rng.uniform(0, 0.02) for _ in range(40)]

        def work(i):
            time.sleep(delays[i])
            return i * i

        outcomes = list(OrderedStreamingExecutor(pool_size=4, window=8).map(work, range(40)))
        assert [o.output for o in outcomes] == [i * i for i in range(40)]

    def test_empty_input(self):
        executor = OrderedStreamingExecutor(pool_size=2)
        assert list(executor.map(lambda x: x, [])) == []
        assert executor.stats.admitted == 0

    def test_run_feeds_sink_in_order(self):
        seen: list[int] = []
        stats = OrderedStreamingExecutor(pool_size=2).run(lambda x: x + 1, [1, 2, 3], lambda o: seen.append(o.output))
        assert seen == [2, 3, 4]
        assert stats.completed == 3
        assert stats.failed == 0


class TestBounds:
    def test_concurrency_never_exceeds_pool_size(self):
        active = 0
        peak = 0
        lock = threading.Lock()

        def work(unit):
            nonlocal active, peak
            with lock:
                active += 1
                peak = max(peak, active)
            time.sleep(0.01)
            with lock:
                active -= 1
            return unit

        list(OrderedStreamingExecutor(pool_size=3).map(work, range(20)))
        assert 1 <= peak <= 3

    def test_slow_head_bounds_holding_map(self):
        """A slow first unit stalls admission once the window is full."""
        release = threading.Event()
        started: list[int] = []
        lock = threading.Lock()

        def work(unit):
            with lock:
                started.append(unit)
            if unit == 0:
                release.wait(5)
            return unit

        executor = OrderedStreamingExecutor(pool_size=2, window=4)
        results: list[int] = []

        def consume():
            for outcome in executor.map(work, range(50)):
                results.append(outcome.output)

        consumer = threading.Thread(target=consume)
        consumer.start()
        time.sleep(0.3)
        with lock:
            started_while_blocked = len(started)
        release.set()
        consumer.join(10)

        assert started_while_blocked <= 4
        assert results == list(range(50))
        assert executor.stats.max_held <= 4

    def test_lazy_input_is_not_drained_ahead(self):
        pulled: list[int] = []

        def source():
            for i in range(100):
                pulled.append(i)
                yield i

        stream = OrderedStreamingExecutor(pool_size=2).map(lambda x: x, source())
        first = next(stream)
        assert first.output == 0
        assert len(pulled) <= 3
        stream.close()


class TestFailurePolicy:
    def test_abort_raises(self):
        def work(i):
            if i == 3:
                raise RuntimeError("bad unit")
            return i

        executor = OrderedStreamingExecutor(pool_size=1)
        yielded = []
        with pytest.raises(UnitFailedError) as exc_info:
            for outcome in executor.map(work, range(10)):
                yielded.append(outcome.output)

        assert yielded == [0, 1, 2]
        assert exc_info.value.seq == 4
        assert isinstance(exc_info.value.cause, RuntimeError)
        assert executor.stats.failed == 1

    def test_isolate_yields_failure_in_slot(self):
        def work(i):
            if i % 3 == 0:
                raise ValueError(f"unit {i}")
            return i

        outcomes = list(OrderedStreamingExecutor(pool_size=2, failure_policy="isolate").map(work, range(7)))

        assert [o.seq for o in outcomes] == list(range(1, 8))
        assert [o.ok for o in outcomes] == [False, True, True, False, True, True, False]
        assert str(outcomes[3].error) == "unit 3"
        assert outcomes[1].output == 1


class TestValidation:
    @pytest.mark.parametrize(
        "kwargs",
        [
            {"pool_size": 0},
            {"pool_size": 4, "window": 2},
            {"pool_size": 1, "failure_policy": "retry"},
        ],
    )
    def test_rejects_bad_configuration(self, kwargs):
        with pytest.raises(ValueError):
            OrderedStreamingExecutor(**kwargs)

    def test_window_defaults_to_pool_size(self):
        assert OrderedStreamingExecutor(pool_size=3).window == 3

    def test_units_run_on_stream_threads(self):
        def thread_name(_unit):
            return threading.current_thread().name

        names = [o.output for o in OrderedStreamingExecutor(pool_size=2).map(thread_name, range(4))]
        assert all(name.startswith("seqsearch-stream") for name in names)
