"""
=============================================================================
HTTP RESPONSE
=============================================================================

Responses are as small as they can be while still being valid HTTP:

    HTTP/1.1 200 OK\r\n          ← Status line
    Content-Length: 27\r\n       ← Byte length of the body
    \r\n                         ← Empty line (separator)
    <!DOCTYPE html>...           ← Body bytes

Content-Length is what tells the client where the body ends. It counts
BYTES, not characters, so it is computed after encoding.

=============================================================================
"""

from dataclasses import dataclass
from typing import Union

from .status_codes import HTTPStatus


@dataclass
class HTTPResponse:
    """
    An HTTP response to be sent to the client.

    Attributes:
        status: HTTP status code.
        body: Response body bytes.
        version: HTTP version for the status line.
    """

    status: HTTPStatus = HTTPStatus.OK
    body: bytes = b""
    version: str = "HTTP/1.1"

    def __post_init__(self):
        if isinstance(self.body, str):
            self.body = self.body.encode("utf-8")

    @property
    def status_line(self) -> str:
        """Example: "HTTP/1.1 200 OK"."""
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    @property
    def content_length(self) -> int:
        return len(self.body)

    def to_bytes(self) -> bytes:
        """Serialize the response, ready for socket.sendall()."""
        head = (
            f"{self.status_line}\r\n"
            f"Content-Length: {self.content_length}\r\n"
            f"\r\n"
        )
        return head.encode("utf-8") + self.body


def text_response(status: HTTPStatus, body: Union[str, bytes] = "") -> HTTPResponse:
    """Build a response from a status and a str or bytes body."""
    return HTTPResponse(status=status, body=body)


def service_unavailable() -> HTTPResponse:
    """Sent when a connection arrives while the pool is shutting down."""
    return text_response(HTTPStatus.SERVICE_UNAVAILABLE, "Service Unavailable")
