"""
=============================================================================
POOLSERVER - A Minimal Concurrent Request Server
=============================================================================

Listens on a TCP socket and hands every accepted connection to a FIXED
pool of worker threads. Each worker reads the request line, answers with
a canned HTML page and closes the connection.

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    poolserver/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m poolserver)
    ├── server.py            # Server: accept loop → thread pool
    ├── config.py            # ServerConfig dataclass
    ├── core/
    │   ├── errors.py        # Pool error taxonomy
    │   ├── channel.py       # Closeable MPMC channel
    │   ├── thread_pool.py   # WorkUnit, Worker, ThreadPool
    │   ├── socket_server.py # TCP accept loop
    │   └── connection.py    # Client socket wrapper
    ├── http/
    │   ├── request.py       # Request line parsing
    │   ├── response.py      # Response serialization
    │   └── status_codes.py  # Status enum
    ├── handlers/
    │   └── pages.py         # / and /sleep → hello.html, else 404.html
    └── pages/               # The canned HTML pages

=============================================================================
QUICK START
=============================================================================

    from poolserver import ThreadPool

    with ThreadPool(4) as pool:
        for n in range(10):
            pool.submit(print, args=(n,))
    # all 10 printed, all 4 workers joined

    from poolserver import Server, ServerConfig
    Server(ServerConfig(port=7878)).run()

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .core import (
    ThreadPool,
    WorkUnit,
    PoolError,
    PoolConstructionError,
    PoolClosed,
    WorkUnitFailure,
)
from .server import Server

__all__ = [
    "Server",
    "ServerConfig",
    "ThreadPool",
    "WorkUnit",
    "PoolError",
    "PoolConstructionError",
    "PoolClosed",
    "WorkUnitFailure",
    "__version__",
]
