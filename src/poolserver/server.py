"""
=============================================================================
SERVER
=============================================================================

Ties the accept loop to the thread pool.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        SERVER ARCHITECTURE                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   main thread                         N worker threads               │
    │   ───────────                         ────────────────               │
    │                                                                      │
    │   SocketServer.accept()                                              │
    │        │                                                             │
    │        ▼                                                             │
    │   _handle_connection(conn)                                           │
    │        │                                                             │
    │        └──► pool.submit(_process_connection, (conn,))                │
    │                         │                                            │
    │                         └──── channel ────►  _process_connection()   │
    │                                                  read request line   │
    │                                                  PageHandler         │
    │                                                  send response       │
    │                                                  close connection    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The accept thread never reads from or writes to a client. It only wraps
the socket and hands it over. From then on the connection belongs to
the work unit, which closes it when done, whatever happens.

=============================================================================
SHUTDOWN
=============================================================================

    1. SocketServer stops accepting (signal, stop(), or Ctrl+C)
    2. Pool is shut down:
       - drain_on_shutdown=True  → queued connections are still served
       - drain_on_shutdown=False → queued connections get a 503
    3. Every worker is joined

A connection that arrives after the pool closed is answered with 503.

=============================================================================
"""

import logging
import socket
from typing import Optional, Tuple

from .config import ServerConfig
from .core import Connection, PoolClosed, SocketServer, ThreadPool, WorkUnit
from .handlers import PageHandler
from .http import service_unavailable


logger = logging.getLogger(__name__)


class Server:
    """
    Minimal concurrent request server.

    Usage:
        server = Server(ServerConfig(port=7878, workers=4))
        server.run()   # Blocks until SIGINT/SIGTERM or stop()

    A pool may be passed in explicitly; otherwise one is created from the
    config when run() starts. Either way the server shuts the pool down
    when run() returns.
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        pool: Optional[ThreadPool] = None,
        handler: Optional[PageHandler] = None,
        install_signal_handlers: bool = True,
    ):
        """
        Args:
            config: Server configuration. Defaults to 127.0.0.1:7878, 4 workers.
            pool: Thread pool to dispatch connections to.
            handler: Turns request lines into responses.
            install_signal_handlers: Catch SIGINT/SIGTERM while running.
        """
        self.config = config or ServerConfig()
        self.config.validate()

        self._socket_server = SocketServer(self.config, install_signal_handlers)
        self._pool = pool
        self._handler = handler or PageHandler(
            pages_dir=self.config.pages_dir,
            sleep_seconds=self.config.sleep_seconds,
        )
        self._running = False

    @property
    def pool(self) -> Optional[ThreadPool]:
        return self._pool

    @property
    def address(self) -> Tuple[str, int]:
        """Address the server is (or will be) listening on."""
        return self._socket_server.address

    @property
    def is_running(self) -> bool:
        return self._running

    # =========================================================================
    # SERVER LIFECYCLE
    # =========================================================================

    def run(self):
        """
        Start the server (blocking).

        Raises:
            PoolConstructionError: If config.workers is not >= 1.
            OSError: If the address cannot be bound.
        """
        self._setup_logging()

        if self._pool is None:
            self._pool = ThreadPool(
                size=self.config.workers,
                queue_size=self.config.queue_size,
                drain_on_shutdown=self.config.drain_on_shutdown,
            )

        self._running = True
        logger.info(
            f"Starting server on {self.config.host}:{self.config.port} "
            f"with {self._pool.size} workers"
        )

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def stop(self):
        """Ask the server to stop. Safe from any thread, and before run()."""
        self._socket_server.shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the server is listening. False on timeout."""
        return self._socket_server.wait_until_ready(timeout)

    def _setup_logging(self):
        """Configure logging based on config."""
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        logging.getLogger("poolserver").setLevel(level)

    def _shutdown(self):
        logger.info("Shutting down server...")
        self._running = False

        if self._pool is not None:
            discarded = self._pool.shutdown()
            for unit in discarded:
                self._reject_unit(unit)

        logger.info("Server stopped")

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """
        Hand a freshly accepted connection to the pool (accept thread).

        With a bounded queue this blocks until a slot frees up.
        """
        try:
            self._pool.submit(self._process_connection, args=(conn,))
        except PoolClosed:
            logger.warning(f"[{conn.id}] Pool is closed, rejecting connection")
            self._reject(conn)

    def _process_connection(self, conn: Connection):
        """
        Serve one connection (worker thread).

        Anything not handled here propagates to the worker, which logs
        it as a failed unit. The connection is closed either way.
        """
        with conn:
            try:
                line = conn.read_request_line()
            except (socket.timeout, TimeoutError, ValueError) as e:
                logger.warning(f"[{conn.id}] Could not read request line: {e}")
                return

            if line is None:
                logger.debug(f"[{conn.id}] Client closed without sending a request")
                return

            response = self._handler.handle(line)
            logger.info(f'[{conn.id}] {conn.client_ip} "{line}" {int(response.status)}')

            conn.send_response(response.to_bytes())

    def _reject(self, conn: Connection):
        conn.send_response(service_unavailable().to_bytes())
        conn.close()

    def _reject_unit(self, unit: WorkUnit):
        """Answer 503 on the connection of a unit that will never run."""
        for arg in unit.args:
            if isinstance(arg, Connection):
                self._reject(arg)
