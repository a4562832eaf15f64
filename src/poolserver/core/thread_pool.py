"""
=============================================================================
FIXED-SIZE THREAD POOL
=============================================================================

A thread pool manages a group of worker threads that process work units
from a shared channel. The pool in this module is deliberately FIXED: the
number of workers is chosen once, at construction, and never changes.

=============================================================================
WHY A FIXED POOL?
=============================================================================

Spawning a thread per connection has no upper bound:

    for connection in accept_connections():
        Thread(target=handle, args=(connection,)).start()   # 10,000 threads?

A fixed pool puts a hard ceiling on concurrency. When every worker is busy,
new work simply waits in the channel until one frees up:

    pool = ThreadPool(4)
    for connection in accept_connections():
        pool.submit(handle, args=(connection,))

=============================================================================
ARCHITECTURE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                          ThreadPool                                  │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   submit(func) ──► WorkUnit ──► Channel.send()                       │
    │                                     │                                │
    │                                     │ receive()                      │
    │                                     ▼                                │
    │   ┌──────────┐ ┌──────────┐ ┌──────────┐ ┌──────────┐               │
    │   │ Worker 0 │ │ Worker 1 │ │ Worker 2 │ │ Worker 3 │               │
    │   │ (idle)   │ │ (busy)   │ │ (busy)   │ │ (idle)   │               │
    │   └──────────┘ └──────────┘ └──────────┘ └──────────┘               │
    │                                                                      │
    │   _workers[i] is the ONLY reference to worker i's thread.            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
LIFECYCLE
=============================================================================

    Pool:    OPEN ──shutdown()──► CLOSING ──all workers joined──► CLOSED

    Worker:  IDLE ⇄ BUSY ──channel closed──► TERMINATING ──join──► JOINED

shutdown():
    1. Reject new submissions (PoolClosed)
    2. Close the channel (drain pending units, or discard them)
    3. Join every worker, in id order, exactly once

A unit that is already running is never interrupted. "Stop offering new
work and let running work finish" is the only cancellation there is.

=============================================================================
FAILURE CONTAINMENT
=============================================================================

If a work unit raises, the exception stops at the worker:

    try:
        unit.run()
    except BaseException:
        log it, report it, carry on     ← the worker thread survives

That includes SystemExit and KeyboardInterrupt: a unit calling
sys.exit() ends the unit, not the worker. Without this, every failing
request would silently kill one worker and the pool would shrink until
nothing was left to serve requests.

=============================================================================
"""

import itertools
import threading
import queue
import time
import logging
from typing import Callable, Optional, Any, List
from dataclasses import dataclass, field
from enum import Enum

from .channel import Channel
from .errors import ChannelClosed, PoolClosed, PoolConstructionError, WorkUnitFailure


logger = logging.getLogger(__name__)


FailureHook = Callable[[WorkUnitFailure], None]


class WorkerState(Enum):
    """
    Worker thread states.

    IDLE and BUSY together make up "running".
    """
    IDLE = "idle"                # Waiting on the channel
    BUSY = "busy"                # Executing a unit
    TERMINATING = "terminating"  # Saw the closed channel, thread returning
    JOINED = "joined"            # Thread joined by the pool


class PoolState(Enum):
    """Pool lifecycle states. No transition ever leaves CLOSED."""
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class WorkUnit:
    """
    A single deferred call, executed at most once.

    Attributes:
        func: The function to execute.
        args: Positional arguments for the function.
        kwargs: Keyword arguments for the function.
        id: Sequence number assigned by the pool (for logging).
        submitted_at: Time the unit was created.
    """
    func: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = None
    id: int = 0
    submitted_at: float = 0.0
    _consumed: bool = field(default=False, init=False, repr=False)

    def __post_init__(self):
        if self.kwargs is None:
            self.kwargs = {}
        if self.submitted_at == 0.0:
            self.submitted_at = time.time()

    @property
    def consumed(self) -> bool:
        return self._consumed

    def run(self) -> None:
        """
        Execute the unit. The return value of func is discarded.

        Raises:
            RuntimeError: If the unit has already been run.
        """
        if self._consumed:
            raise RuntimeError(f"Work unit {self.id} has already been executed")
        self._consumed = True
        self.func(*self.args, **self.kwargs)


class Worker(threading.Thread):
    """
    Long-lived thread that executes units from the channel, one at a time.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        Worker Loop                                   │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   1. receive() from the channel (blocks)                             │
    │          │                                                           │
    │          ├── None → channel closed, exit loop                        │
    │          │                                                           │
    │          └── unit → step 2                                           │
    │                                                                      │
    │   2. Run the unit                                                    │
    │          │                                                           │
    │          └── Raised? Log + report, don't crash                       │
    │                                                                      │
    │   3. Back to step 1                                                  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘
    """

    def __init__(
        self,
        channel: Channel,
        worker_id: int,
        on_failure: Optional[FailureHook] = None,
        name_prefix: str = "Worker",
    ):
        """
        Args:
            channel: Channel to receive units from.
            worker_id: Stable small integer id (index in the pool).
            on_failure: Called with a WorkUnitFailure when a unit raises.
            name_prefix: Thread name prefix, e.g. "Worker" -> "Worker-0".
        """
        # daemon=True so a forgotten pool can't keep the interpreter alive;
        # an orderly shutdown still joins every worker.
        super().__init__(name=f"{name_prefix}-{worker_id}", daemon=True)

        self.channel = channel
        self.worker_id = worker_id
        self.on_failure = on_failure

        self.state = WorkerState.IDLE
        self._current_unit: Optional[WorkUnit] = None

        # Written only by this worker's own thread
        self.tasks_completed = 0
        self.tasks_failed = 0

    def run(self):
        """Main worker loop. Returns when the channel is closed and empty."""
        logger.debug(f"Worker {self.worker_id} started")

        while True:
            unit = self.channel.receive()
            if unit is None:
                break
            self._execute(unit)

        self.state = WorkerState.TERMINATING
        logger.debug(f"Worker {self.worker_id} shutting down")

    def _execute(self, unit: WorkUnit):
        """Run one unit to completion, containing any exception it raises."""
        self.state = WorkerState.BUSY
        self._current_unit = unit
        start_time = time.time()

        try:
            logger.debug(f"Worker {self.worker_id} got unit {unit.id}, executing")
            unit.run()

            elapsed = time.time() - start_time
            logger.debug(f"Worker {self.worker_id} completed unit {unit.id} in {elapsed:.3f}s")
            self.tasks_completed += 1

        except BaseException as e:
            elapsed = time.time() - start_time
            self.tasks_failed += 1
            failure = WorkUnitFailure(self.worker_id, unit, e)
            logger.exception(
                f"Worker {self.worker_id} unit {unit.id} failed after {elapsed:.3f}s: {e}"
            )
            self._report(failure)

        finally:
            self.state = WorkerState.IDLE
            self._current_unit = None

    def _report(self, failure: WorkUnitFailure):
        if self.on_failure is None:
            return
        try:
            self.on_failure(failure)
        except BaseException:
            logger.exception(f"Worker {self.worker_id} failure hook raised")

    def reclaim(self):
        """
        Join this worker's thread. Called by the pool during shutdown.

        Joining happens once; later calls return immediately.
        """
        if self.state is WorkerState.JOINED:
            return
        self.join()
        self.state = WorkerState.JOINED
        logger.debug(f"Worker {self.worker_id} joined")


class ThreadPool:
    """
    Fixed-size pool of worker threads.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      ThreadPool Usage                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   # Workers are spawned right away                                   │
    │   pool = ThreadPool(4)                                               │
    │                                                                      │
    │   # Submit work                                                      │
    │   pool.submit(handle_connection, args=(conn,))                       │
    │                                                                      │
    │   # Check status                                                     │
    │   print(pool.stats)                                                  │
    │                                                                      │
    │   # Stop: no new work, finish queued work, join every worker         │
    │   pool.shutdown()                                                    │
    │                                                                      │
    │   # Or let a with-block do it                                        │
    │   with ThreadPool(4) as pool:                                        │
    │       pool.submit(...)                                               │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    Work units must not submit to the pool they run on. With a bounded
    queue and every worker blocked in submit(), nobody is left to make
    space and the pool deadlocks.
    """

    def __init__(
        self,
        size: int,
        queue_size: int = 0,
        drain_on_shutdown: bool = True,
        on_failure: Optional[FailureHook] = None,
        name: str = "Worker",
    ):
        """
        Create the pool and start its workers.

        Args:
            size: Number of worker threads. Must be >= 1.

            queue_size: Maximum number of pending units. 0 = unbounded,
                        so submit() never blocks.

            drain_on_shutdown: If True, units already queued when shutdown
                               starts still run. If False they are dropped
                               and returned by shutdown().

            on_failure: Called (in the worker thread) with a
                        WorkUnitFailure whenever a unit raises.

            name: Thread name prefix for the workers.

        Raises:
            PoolConstructionError: If size or queue_size is invalid.
                                   No thread is spawned in that case.
        """
        if isinstance(size, bool) or not isinstance(size, int) or size < 1:
            raise PoolConstructionError(f"Pool size must be a positive integer, got {size!r}")
        if queue_size < 0:
            raise PoolConstructionError(f"queue_size must be >= 0, got {queue_size!r}")

        self._size = size
        self.queue_size_limit = queue_size
        self.drain_on_shutdown = drain_on_shutdown
        self.name = name

        # The one shared channel. This pool holds the sending side;
        # every worker holds the receiving side.
        self._channel = Channel(maxsize=queue_size)

        self._workers: List[Worker] = []
        self._state = PoolState.OPEN
        self._shutdown_lock = threading.Lock()
        self._unit_ids = itertools.count()

        logger.info(f"Starting thread pool with {size} workers")

        try:
            for worker_id in range(size):
                worker = Worker(
                    channel=self._channel,
                    worker_id=worker_id,
                    on_failure=on_failure,
                    name_prefix=name,
                )
                self._workers.append(worker)
                worker.start()
        except Exception:
            # Could not start every thread: stop the ones that did start
            self._channel.close()
            for worker in self._workers:
                if worker.is_alive():
                    worker.reclaim()
            self._state = PoolState.CLOSED
            raise

    # =========================================================================
    # SUBMISSION
    # =========================================================================

    def submit(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        kwargs: dict = None,
        block: bool = True,
        queue_timeout: Optional[float] = None,
    ) -> bool:
        """
        Submit a unit of work.

        Args:
            func: The function to execute.
            args: Positional arguments for the function.
            kwargs: Keyword arguments for the function.
            block: Whether to wait if a bounded queue is full.
            queue_timeout: How long to wait if a bounded queue is full.

        Returns:
            True if the unit was queued, False if a bounded queue was full.

        Raises:
            PoolClosed: If shutdown has begun.
            TypeError: If func is not callable.
        """
        if not callable(func):
            raise TypeError(f"func must be callable, got {type(func).__name__}")

        if self._state is not PoolState.OPEN:
            raise PoolClosed("Thread pool is shutting down")

        unit = WorkUnit(
            func=func,
            args=args,
            kwargs=kwargs or {},
            id=next(self._unit_ids),
        )

        try:
            self._channel.send(unit, block=block, timeout=queue_timeout)
        except ChannelClosed as e:
            # Lost the race with shutdown(), or closed while waiting for space
            raise PoolClosed("Thread pool is shutting down") from e
        except queue.Full:
            logger.debug(f"Queue full, unit {unit.id} not submitted")
            return False

        return True

    # =========================================================================
    # SHUTDOWN
    # =========================================================================

    def shutdown(self) -> List[WorkUnit]:
        """
        Stop the pool and join every worker.

        Safe to call more than once: later calls (or calls racing the first)
        wait for the first shutdown to finish and return an empty list.
        Must not be called from inside a work unit.

        Returns:
            Units that were queued but never run. Always empty when
            drain_on_shutdown is True.
        """
        with self._shutdown_lock:
            if self._state is not PoolState.OPEN:
                logger.debug("Thread pool already shut down")
                return []

            logger.info(f"Shutting down thread pool (drain={self.drain_on_shutdown})...")
            self._state = PoolState.CLOSING

            discarded = self._channel.close(drain=self.drain_on_shutdown)
            if discarded:
                logger.warning(f"Discarded {len(discarded)} pending work units")

            for worker in self._workers:
                logger.debug(f"Shutting down worker {worker.worker_id}")
                worker.reclaim()

            self._state = PoolState.CLOSED
            logger.info("Thread pool shutdown complete")
            return discarded

    def __enter__(self) -> "ThreadPool":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()
        return False

    # =========================================================================
    # MONITORING: Check pool status
    # =========================================================================

    @property
    def size(self) -> int:
        """Number of workers. Fixed for the life of the pool."""
        return self._size

    @property
    def state(self) -> PoolState:
        return self._state

    @property
    def workers(self) -> tuple:
        """The workers, indexed by worker id."""
        return tuple(self._workers)

    @property
    def busy_workers(self) -> int:
        """Get count of busy workers."""
        return sum(1 for w in self._workers if w.state == WorkerState.BUSY)

    @property
    def idle_workers(self) -> int:
        """Get count of idle workers."""
        return sum(1 for w in self._workers if w.state == WorkerState.IDLE)

    @property
    def queue_size(self) -> int:
        """Get current number of queued units."""
        return self._channel.qsize()

    @property
    def stats(self) -> dict:
        """
        Get thread pool statistics.

        Returns a dict with worker and task counts,
        useful for monitoring and debugging.
        """
        return {
            "state": self._state.value,
            "workers": {
                "total": len(self._workers),
                "busy": self.busy_workers,
                "idle": self.idle_workers,
                "alive": sum(1 for w in self._workers if w.is_alive()),
            },
            "tasks": {
                "queued": self._channel.qsize(),
                "completed": sum(w.tasks_completed for w in self._workers),
                "failed": sum(w.tasks_failed for w in self._workers),
            },
        }
