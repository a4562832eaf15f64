"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

This module wraps an accepted client socket with just enough API for a
one-request, one-response exchange.

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL!
=============================================================================

TCP does NOT preserve message boundaries. A client that sends

    GET / HTTP/1.1\r\n

might arrive at the server as "GET / H" followed by "TTP/1.1\r\n".
So we keep calling recv() and buffering until we see the line terminator.

We only care about the FIRST line of the request (the request line):

    GET /sleep HTTP/1.1\r\n      ← we read up to here
    Host: localhost:7878\r\n     ← ignored
    \r\n                         ← ignored

=============================================================================
CONNECTION STATE MACHINE
=============================================================================

    NEW ──────► READING ──────► WRITING ──────► CLOSING ──────► CLOSED
     │             │                               ▲
     └─────────────┴───────────────────────────────┘
                   (error or client went away)

Every connection is owned by exactly one work unit, which closes it when
it is done. There is no keep-alive: one request per connection.

=============================================================================
"""

import socket
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional
import uuid


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Connection lifecycle states."""
    NEW = "new"          # Just accepted, haven't read anything yet
    READING = "reading"  # Reading the request line
    WRITING = "writing"  # Sending the response
    CLOSING = "closing"  # Shutdown sequence in progress
    CLOSED = "closed"    # Socket released


@dataclass
class Connection:
    """
    Represents a client connection.

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Unique connection identifier (for logging).
        state: Current connection state.
        created_at: Timestamp when connection was accepted.
    """

    socket: socket.socket
    address: tuple

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)

    buffer_size: int = 1024           # How much to read at once
    timeout: Optional[float] = 30.0   # Read/write timeout
    max_line_length: int = 8192       # Longest request line we accept

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def client_port(self) -> int:
        return self.address[1]

    @property
    def age(self) -> float:
        """Get connection age in seconds."""
        return time.time() - self.created_at

    # =========================================================================
    # READING
    # =========================================================================

    def read_request_line(self) -> Optional[str]:
        """
        Read the first line of the request.

        Returns:
            The line without its line terminator, or None if the client
            closed the connection before sending anything.

        Raises:
            TimeoutError: If the client is too slow.
            ValueError: If the line exceeds max_line_length.
        """
        self.state = ConnectionState.READING

        while b"\n" not in self._buffer:
            chunk = self._recv()
            if not chunk:
                # Client closed. A partial line is still a line.
                if not self._buffer:
                    return None
                break

            self._buffer += chunk

            if len(self._buffer) > self.max_line_length:
                raise ValueError(f"Request line too long: {len(self._buffer)} bytes")

        line, _, self._buffer = self._buffer.partition(b"\n")
        return line.rstrip(b"\r").decode("utf-8", errors="replace")

    def _recv(self) -> bytes:
        """socket.recv() that treats a reset as end-of-stream."""
        try:
            return self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            return b""

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        Send response bytes to the client.

        Uses sendall(): plain send() may write only part of the data.

        Returns:
            True if send succeeded, False if the connection was lost.
        """
        self.state = ConnectionState.WRITING

        try:
            self.socket.sendall(data)
            return True
        except (ConnectionResetError, BrokenPipeError, OSError) as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close the connection.

        1. shutdown(SHUT_WR): client sees a clean FIN after the response
        2. Drain whatever the client sent that we never read (the rest of
           the headers). Closing with unread data makes the kernel send
           RST, and the client may lose the response we just wrote.
        3. close(): release the file descriptor
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Already disconnected

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass  # socket.timeout is an OSError too

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.age:.3f}s")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
