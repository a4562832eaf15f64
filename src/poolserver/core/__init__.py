"""
=============================================================================
CORE SERVER COMPONENTS
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         SOCKET SERVER                                │
    │  • Owns the listening socket, runs the accept() loop                 │
    │  • Wraps each client socket in a Connection                          │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    │ submit(work unit)
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                       CHANNEL + THREAD POOL                          │
    │  • Fixed number of workers, created once                             │
    │  • Workers pull work units from one shared Channel                   │
    │  • Failing units are contained, shutdown joins every worker          │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    │ worker runs the unit
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                          CONNECTION                                  │
    │  • Reads the request line, writes the response, closes               │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .errors import (
    PoolError,
    PoolConstructionError,
    PoolClosed,
    WorkUnitFailure,
    ChannelClosed,
)
from .channel import Channel
from .thread_pool import ThreadPool, Worker, WorkUnit, WorkerState, PoolState
from .connection import Connection, ConnectionState
from .socket_server import SocketServer

__all__ = [
    "Channel",                # MPMC conduit with a closed state
    "ThreadPool",             # Fixed-size worker pool
    "Worker",                 # One pool thread
    "WorkUnit",               # One deferred call
    "WorkerState",
    "PoolState",
    "Connection",             # Client socket wrapper
    "ConnectionState",
    "SocketServer",           # Accept loop
    "PoolError",
    "PoolConstructionError",
    "PoolClosed",
    "WorkUnitFailure",
    "ChannelClosed",
]
