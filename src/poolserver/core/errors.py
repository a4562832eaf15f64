"""
=============================================================================
POOL ERROR TAXONOMY
=============================================================================

Every failure the worker pool can produce has its own exception type, so
callers can react to each one differently:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        Who sees what?                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   PoolConstructionError   ThreadPool(0)          → caller (fatal)   │
    │   PoolClosed              submit() after close   → caller (reject)  │
    │   WorkUnitFailure         unit raised            → worker log only  │
    │   ChannelClosed           send() after close     → pool internals   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Lifecycle errors are raised synchronously in the caller's thread.
A WorkUnitFailure is never raised out of a worker: it is built, logged and
handed to the pool's failure hook, and the worker moves on.

=============================================================================
"""

from typing import Any, Optional


class PoolError(Exception):
    """Base class for all worker pool errors."""


class PoolConstructionError(PoolError, ValueError):
    """
    Raised when a pool is created with an invalid size.

    A size of zero is a programming error. It is never coerced to 1,
    and no worker threads are spawned when this is raised.
    """


class PoolClosed(PoolError, RuntimeError):
    """
    Raised by submit() once the pool has started shutting down.

    This is recoverable: the accept loop catches it and rejects the
    connection instead of crashing.
    """


class WorkUnitFailure(PoolError):
    """
    Report of a work unit that raised during execution.

    The original exception is chained as __cause__.

    Attributes:
        worker_id: Id of the worker that ran the unit.
        unit: The unit that failed.
    """

    def __init__(self, worker_id: int, unit: Any, cause: Optional[BaseException] = None):
        unit_id = getattr(unit, "id", "?")
        super().__init__(f"Work unit {unit_id} failed on worker {worker_id}: {cause!r}")
        self.worker_id = worker_id
        self.unit = unit
        self.__cause__ = cause


class ChannelClosed(Exception):
    """Raised when sending on a channel that has been closed."""
