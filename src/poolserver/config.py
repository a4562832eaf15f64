"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Centralized configuration for the server.

Defaults reproduce the classic behaviour: bind 127.0.0.1:7878 with a pool
of 4 workers. Every value can be overridden from code or from the command
line (see __main__.py). There is no config file and no environment
variable source.

=============================================================================
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class ServerConfig:
    """
    Configuration for the server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK SETTINGS
    - host, port, backlog, buffer_size, timeout

    THREAD POOL SETTINGS
    - workers, queue_size, drain_on_shutdown

    PAGES
    - pages_dir, sleep_seconds

    LOGGING
    - log_level

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """The IP address to bind to."""

    port: int = 7878
    """
    The port number to listen on.
    0 lets the OS pick a free port (handy in tests).
    """

    backlog: int = 128
    """Maximum number of connections the OS queues before refusing."""

    buffer_size: int = 1024
    """Bytes read per recv() call."""

    timeout: Optional[float] = 30.0
    """
    Socket timeout in seconds for reading the request and writing the
    response. None = blocking (a silent client then holds a worker forever).
    """

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    workers: int = 4
    """Number of worker threads. Fixed for the life of the server."""

    queue_size: int = 0
    """
    Maximum number of accepted connections waiting for a worker.
    0 = unbounded.
    """

    drain_on_shutdown: bool = True
    """
    On shutdown, still serve connections that were already queued (True)
    or drop them (False).
    """

    # ─────────────────────────────────────────────────────────────────────
    # PAGES
    # ─────────────────────────────────────────────────────────────────────

    pages_dir: Optional[str] = None
    """
    Directory holding hello.html and 404.html.
    None = the pages shipped inside the package.
    """

    sleep_seconds: float = 5.0
    """How long GET /sleep holds its worker before answering."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."""

    def validate(self) -> None:
        """
        Validate configuration values.

        Called once at server construction so bad values fail fast.

        Raises:
            ValueError: On the first invalid value found.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        # workers is checked by ThreadPool itself (PoolConstructionError)

        if self.queue_size < 0:
            raise ValueError(f"queue_size must be >= 0, got {self.queue_size}")

        if self.backlog < 1:
            raise ValueError(f"backlog must be >= 1, got {self.backlog}")

        if self.buffer_size < 1:
            raise ValueError(f"buffer_size must be >= 1, got {self.buffer_size}")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.sleep_seconds < 0:
            raise ValueError("sleep_seconds must be >= 0")

        if self.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log_level: {self.log_level}")
