"""Tests for bounded parallel execution."""

import asyncio
import threading
import time

from controlwatch.fanout import ParallelRunner


class TestParallelRunner:
    """Test parallel sub-control evaluation."""

    def test_run_collects_results(self):
        runner = ParallelRunner(max_concurrent=2)

        outcome = runner.run({"a": lambda: 1, "b": lambda: 2})

        assert outcome.results == {"a": 1, "b": 2}
        assert outcome.succeeded == 2
        assert outcome.failed == 0

    def test_failures_do_not_cancel_siblings(self):
        runner = ParallelRunner(max_concurrent=2)

        def bad():
            raise RuntimeError("metric lookup failed")

        outcome = runner.run({"good": lambda: "ok", "bad": bad})

        assert outcome.results == {"good": "ok"}
        assert isinstance(outcome.errors["bad"], RuntimeError)

    def test_concurrency_limit(self):
        runner = ParallelRunner(max_concurrent=2)
        lock = threading.Lock()
        active = []
        peak = []

        def task():
            with lock:
                active.append(1)
                peak.append(len(active))
            time.sleep(0.02)
            with lock:
                active.pop()

        outcome = runner.run({str(i): task for i in range(6)})

        assert outcome.succeeded == 6
        assert max(peak) <= 2

    def test_run_parallel_in_running_loop(self):
        runner = ParallelRunner(max_concurrent=3)

        outcome = asyncio.run(runner.run_parallel({"x": lambda: "x"}))

        assert outcome.results == {"x": "x"}

    def test_nested_runs_have_their_own_limit(self):
        runner = ParallelRunner(max_concurrent=1)

        def parent(name):
            inner = runner.run({f"{name}.1": lambda: 1, f"{name}.2": lambda: 2})
            return inner.results

        outcome = runner.run({"p": lambda: parent("p")})

        # The parent keeps its slot while its children run
        assert outcome.results == {"p": {"p.1": 1, "p.2": 2}}

    def test_empty(self):
        assert ParallelRunner().run({}).succeeded == 0
