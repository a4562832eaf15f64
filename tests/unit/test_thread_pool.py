"""
Unit tests for the fixed-size thread pool.
"""

import collections
import sys
import threading
import time

import pytest

from conftest import wait_for

from poolserver.core.errors import PoolClosed, PoolConstructionError, WorkUnitFailure
from poolserver.core.thread_pool import (
    PoolState,
    ThreadPool,
    Worker,
    WorkerState,
    WorkUnit,
)


def new_threads_since(before: set) -> set:
    return set(threading.enumerate()) - before


class TestPoolConstruction:
    """Tests for creating a pool."""

    @pytest.mark.parametrize("size", [1, 2, 4, 8])
    def test_spawns_exactly_size_workers(self, size: int):
        """A pool of N starts N live worker threads, ids 0..N-1."""
        before = set(threading.enumerate())
        pool = ThreadPool(size)

        try:
            spawned = new_threads_since(before)
            assert len(spawned) == size
            assert pool.size == size
            assert [w.worker_id for w in pool.workers] == list(range(size))
            assert all(w.is_alive() for w in pool.workers)
            assert spawned == set(pool.workers)
        finally:
            pool.shutdown()

    @pytest.mark.parametrize("size", [1, 3, 5])
    def test_shutdown_joins_each_worker_exactly_once(self, size: int, monkeypatch):
        """Every spawned thread is joined once, even across repeated shutdowns."""
        joins = collections.Counter()
        original_join = threading.Thread.join

        def counting_join(self, timeout=None):
            joins[self.worker_id] += 1
            return original_join(self, timeout)

        monkeypatch.setattr(Worker, "join", counting_join)

        pool = ThreadPool(size)
        pool.shutdown()
        pool.shutdown()

        assert joins == {worker_id: 1 for worker_id in range(size)}
        assert all(not w.is_alive() for w in pool.workers)
        assert all(w.state is WorkerState.JOINED for w in pool.workers)
        assert pool.state is PoolState.CLOSED

    def test_size_zero_fails_without_spawning(self):
        """Size 0 raises PoolConstructionError and starts no thread."""
        before = set(threading.enumerate())

        with pytest.raises(PoolConstructionError):
            ThreadPool(0)

        assert new_threads_since(before) == set()

    @pytest.mark.parametrize("size", [-1, 2.0, "4", None, True])
    def test_invalid_sizes_rejected(self, size):
        with pytest.raises(PoolConstructionError):
            ThreadPool(size)

    def test_construction_error_is_a_value_error(self):
        with pytest.raises(ValueError):
            ThreadPool(0)

    def test_negative_queue_size_rejected(self):
        with pytest.raises(PoolConstructionError):
            ThreadPool(2, queue_size=-1)

    def test_worker_thread_names(self):
        with ThreadPool(2, name="conn") as pool:
            assert [w.name for w in pool.workers] == ["conn-0", "conn-1"]


class TestPoolExecution:
    """Tests for running submitted units."""

    def test_each_unit_executed_exactly_once(self):
        """K >> N units: every unit runs once, none twice, none dropped."""
        runs = collections.Counter()
        lock = threading.Lock()

        def record(n):
            with lock:
                runs[n] += 1

        units = 2000
        with ThreadPool(4) as pool:
            for n in range(units):
                assert pool.submit(record, args=(n,)) is True

        assert len(runs) == units
        assert set(runs.values()) == {1}

    def test_kwargs_are_passed(self):
        results = []

        with ThreadPool(1) as pool:
            pool.submit(lambda a, b=0: results.append(a + b), args=(1,), kwargs={"b": 2})

        assert results == [3]

    def test_units_run_in_parallel(self):
        """Pool of 2, four units of 0.25s each: done well before 4 x 0.25s."""
        sleep = 0.25
        sink = []
        lock = threading.Lock()

        def unit(unit_id):
            time.sleep(sleep)
            with lock:
                sink.append(unit_id)

        start = time.monotonic()
        with ThreadPool(2) as pool:
            for unit_id in range(4):
                pool.submit(unit, args=(unit_id,))
        elapsed = time.monotonic() - start

        assert sorted(sink) == [0, 1, 2, 3]
        assert elapsed < 4 * sleep

    def test_single_worker_preserves_submission_order(self):
        order = []

        with ThreadPool(1) as pool:
            for n in range(50):
                pool.submit(order.append, args=(n,))

        assert order == list(range(50))

    def test_submit_rejects_non_callable(self):
        with ThreadPool(1) as pool:
            with pytest.raises(TypeError):
                pool.submit("not a function")


class TestPoolConcurrencyLimit:
    """Tests that at most N units are in flight."""

    @pytest.mark.parametrize("size", [1, 3])
    def test_next_unit_waits_for_a_free_worker(self, size: int):
        """With N busy workers the (N+1)-th unit starts only after one finishes."""
        gates = [threading.Event() for _ in range(size + 1)]
        started = []
        lock = threading.Lock()

        def blocking_unit(n):
            with lock:
                started.append(n)
            gates[n].wait(timeout=5.0)

        pool = ThreadPool(size)
        try:
            for n in range(size + 1):
                pool.submit(blocking_unit, args=(n,))

            assert wait_for(lambda: len(started) == size)
            time.sleep(0.1)

            assert sorted(started) == list(range(size))
            assert pool.busy_workers == size
            assert pool.queue_size == 1

            gates[0].set()

            assert wait_for(lambda: len(started) == size + 1)
            assert started[-1] == size
        finally:
            for gate in gates:
                gate.set()
            pool.shutdown()


class TestFailureContainment:
    """Tests that a failing unit never takes a worker down."""

    def test_failing_unit_does_not_stop_same_worker(self):
        """One worker: after a failing unit it keeps processing."""
        results = []

        def boom():
            raise ValueError("boom")

        with ThreadPool(1) as pool:
            pool.submit(boom)
            for n in range(5):
                pool.submit(results.append, args=(n,))
            worker = pool.workers[0]

            assert wait_for(lambda: len(results) == 5)
            assert worker.is_alive()

        assert results == [0, 1, 2, 3, 4]
        assert pool.stats["tasks"]["failed"] == 1
        assert pool.stats["tasks"]["completed"] == 5

    def test_sys_exit_does_not_kill_worker(self):
        """A unit calling sys.exit() fails; its worker goes on to the next unit."""
        ran = []
        failures = []

        with ThreadPool(1, on_failure=failures.append) as pool:
            pool.submit(sys.exit, args=(3,))
            assert pool.submit(ran.append, args=(1,)) is True
            worker = pool.workers[0]

            assert wait_for(lambda: ran == [1])
            assert worker.is_alive()
            assert pool.stats["workers"]["alive"] == 1

        assert pool.stats["tasks"]["failed"] == 1
        assert pool.stats["tasks"]["completed"] == 1
        assert isinstance(failures[0].__cause__, SystemExit)

    def test_keyboard_interrupt_does_not_kill_worker(self):
        ran = []
        failures = []

        def interrupted():
            raise KeyboardInterrupt

        with ThreadPool(1, on_failure=failures.append) as pool:
            pool.submit(interrupted)
            assert pool.submit(ran.append, args=(1,)) is True
            worker = pool.workers[0]

            assert wait_for(lambda: ran == [1])
            assert worker.is_alive()

        assert pool.stats["tasks"]["failed"] == 1
        assert pool.stats["tasks"]["completed"] == 1
        assert isinstance(failures[0].__cause__, KeyboardInterrupt)

    def test_failures_spread_over_all_workers(self):
        """Half the units fail; every good unit still runs and no worker dies."""
        done = []
        lock = threading.Lock()

        def unit(n):
            if n % 2:
                raise RuntimeError(f"unit {n} failed")
            with lock:
                done.append(n)

        pool = ThreadPool(3)
        for n in range(200):
            pool.submit(unit, args=(n,))

        assert wait_for(lambda: pool.stats["tasks"]["failed"] == 100)
        assert all(w.is_alive() for w in pool.workers)
        pool.shutdown()

        assert sorted(done) == list(range(0, 200, 2))

    def test_failure_hook_receives_work_unit_failure(self):
        failures = []

        def boom():
            raise KeyError("missing")

        with ThreadPool(1, on_failure=failures.append) as pool:
            pool.submit(boom)

        assert len(failures) == 1
        failure = failures[0]
        assert isinstance(failure, WorkUnitFailure)
        assert failure.worker_id == 0
        assert failure.unit.func is boom
        assert isinstance(failure.__cause__, KeyError)

    def test_failing_hook_is_contained_too(self):
        results = []

        def bad_hook(failure):
            raise RuntimeError("hook broke")

        with ThreadPool(1, on_failure=bad_hook) as pool:
            pool.submit(lambda: 1 / 0)
            pool.submit(results.append, args=("still running",))

        assert results == ["still running"]

    def test_failure_is_logged(self, caplog):
        with caplog.at_level("ERROR", logger="poolserver.core.thread_pool"):
            with ThreadPool(1) as pool:
                pool.submit(lambda: 1 / 0)

        assert any("failed" in r.getMessage() for r in caplog.records)


class TestPoolShutdown:
    """Tests for shutdown, submission after close, and drain/discard."""

    def test_submit_after_shutdown_raises_pool_closed(self):
        ran = []
        pool = ThreadPool(2)
        pool.shutdown()

        with pytest.raises(PoolClosed):
            pool.submit(ran.append, args=(1,))

        time.sleep(0.05)
        assert ran == []

    def test_pool_closed_is_a_runtime_error(self):
        pool = ThreadPool(1)
        pool.shutdown()

        with pytest.raises(RuntimeError):
            pool.submit(print)

    def test_submit_rejected_while_closing(self):
        """Submissions fail as soon as shutdown starts, not only once it ends."""
        gate = threading.Event()
        pool = ThreadPool(1)
        pool.submit(gate.wait, args=(5.0,))

        stopper = threading.Thread(target=pool.shutdown)
        stopper.start()
        assert wait_for(lambda: pool.state is PoolState.CLOSING)

        with pytest.raises(PoolClosed):
            pool.submit(print)

        gate.set()
        stopper.join(timeout=5.0)
        assert pool.state is PoolState.CLOSED

    def test_drain_after_sys_exit_unit_runs_everything(self):
        """A unit that calls sys.exit() does not leave queued units stranded."""
        ran = []

        with ThreadPool(1, drain_on_shutdown=True) as pool:
            pool.submit(sys.exit)
            for n in range(5):
                pool.submit(ran.append, args=(n,))

        assert ran == [0, 1, 2, 3, 4]
        assert pool.stats["tasks"]["queued"] == 0

    def test_drain_runs_queued_units(self):
        """drain_on_shutdown=True: units queued before shutdown still run."""
        gate = threading.Event()
        ran = []
        pool = ThreadPool(1, drain_on_shutdown=True)

        pool.submit(gate.wait, args=(5.0,))
        for n in range(5):
            pool.submit(ran.append, args=(n,))

        result = {}
        stopper = threading.Thread(target=lambda: result.setdefault("discarded", pool.shutdown()))
        stopper.start()
        assert wait_for(lambda: pool.state is PoolState.CLOSING)

        gate.set()
        stopper.join(timeout=5.0)

        assert result["discarded"] == []
        assert ran == [0, 1, 2, 3, 4]
        assert pool.state is PoolState.CLOSED

    def test_discard_drops_queued_units(self):
        """drain_on_shutdown=False: queued units are returned, never run.

        The unit already running is not interrupted.
        """
        gate = threading.Event()
        in_flight_done = threading.Event()
        ran = []

        def in_flight():
            gate.wait(5.0)
            in_flight_done.set()

        pool = ThreadPool(1, drain_on_shutdown=False)
        pool.submit(in_flight)
        assert wait_for(lambda: pool.busy_workers == 1)
        for n in range(5):
            pool.submit(ran.append, args=(n,))

        result = {}
        stopper = threading.Thread(target=lambda: result.setdefault("discarded", pool.shutdown()))
        stopper.start()
        assert wait_for(lambda: pool.state is PoolState.CLOSING)

        gate.set()
        stopper.join(timeout=5.0)

        discarded = result["discarded"]
        assert len(discarded) == 5
        assert all(isinstance(unit, WorkUnit) for unit in discarded)
        assert all(not unit.consumed for unit in discarded)
        assert [unit.args for unit in discarded] == [(n,) for n in range(5)]
        assert ran == []
        assert in_flight_done.is_set()

    def test_blocked_submitter_gets_pool_closed(self):
        """A submit() waiting on a full bounded queue fails when shutdown starts."""
        gate = threading.Event()
        ran = []
        pool = ThreadPool(1, queue_size=1)

        pool.submit(gate.wait, args=(5.0,))
        assert wait_for(lambda: pool.busy_workers == 1)
        pool.submit(ran.append, args=("queued",))

        errors = []

        def late_submit():
            try:
                pool.submit(ran.append, args=("late",))
            except PoolClosed as e:
                errors.append(e)

        submitter = threading.Thread(target=late_submit)
        submitter.start()
        time.sleep(0.05)
        assert submitter.is_alive()

        stopper = threading.Thread(target=pool.shutdown)
        stopper.start()
        submitter.join(timeout=5.0)

        assert len(errors) == 1

        gate.set()
        stopper.join(timeout=5.0)
        assert ran == ["queued"]

    def test_non_blocking_submit_on_full_queue_returns_false(self):
        gate = threading.Event()
        pool = ThreadPool(1, queue_size=1)
        try:
            pool.submit(gate.wait, args=(5.0,))
            assert wait_for(lambda: pool.busy_workers == 1)
            assert pool.submit(print, block=False) is True
            assert pool.submit(print, block=False) is False
            assert pool.submit(print, queue_timeout=0.05) is False
        finally:
            gate.set()
            pool.shutdown()

    def test_concurrent_shutdown_calls(self):
        """Racing shutdown() calls all return after the pool is CLOSED."""
        pool = ThreadPool(3)
        states = []

        def stop():
            pool.shutdown()
            states.append(pool.state)

        stoppers = [threading.Thread(target=stop) for _ in range(4)]
        for t in stoppers:
            t.start()
        for t in stoppers:
            t.join(timeout=5.0)

        assert states == [PoolState.CLOSED] * 4

    def test_context_manager_shuts_down(self):
        with ThreadPool(2) as pool:
            assert pool.state is PoolState.OPEN

        assert pool.state is PoolState.CLOSED
        assert all(not w.is_alive() for w in pool.workers)


class TestWorkUnit:
    """Tests for WorkUnit."""

    def test_runs_once(self):
        calls = []
        unit = WorkUnit(func=calls.append, args=("x",))

        unit.run()
        assert calls == ["x"]
        assert unit.consumed

        with pytest.raises(RuntimeError):
            unit.run()
        assert calls == ["x"]

    def test_defaults(self):
        unit = WorkUnit(func=print)

        assert unit.args == ()
        assert unit.kwargs == {}
        assert unit.submitted_at > 0
        assert not unit.consumed

    def test_consumed_flag_not_a_constructor_argument(self):
        with pytest.raises(TypeError):
            WorkUnit(func=print, _consumed=True)


class TestPoolStats:
    """Tests for monitoring properties."""

    def test_stats_shape(self):
        with ThreadPool(2) as pool:
            pool.submit(print, args=("",))
            stats = pool.stats

            assert stats["state"] == "open"
            assert stats["workers"]["total"] == 2
            assert stats["workers"]["alive"] == 2

        assert pool.stats["state"] == "closed"
        assert pool.stats["workers"]["alive"] == 0
        assert pool.stats["tasks"]["completed"] == 1
