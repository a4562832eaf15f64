"""
=============================================================================
REQUEST LINE PARSER
=============================================================================

The server only ever looks at the first line of a request:

    GET /sleep HTTP/1.1
    └─┘ └────┘ └──────┘
    Method Target Version

Headers and bodies are never read. The target is kept exactly as the
client sent it, so "/?x=1" is a different path from "/".

=============================================================================
"""

from dataclasses import dataclass


class RequestLineError(Exception):
    """Raised when a request line does not have the METHOD TARGET VERSION shape."""

    def __init__(self, message: str, line: str = ""):
        super().__init__(message)
        self.line = line


@dataclass(frozen=True)
class RequestLine:
    """
    A parsed request line.

    Attributes:
        method: Upper-case method, e.g. "GET".
        path: Request target, e.g. "/" or "/sleep".
        version: Protocol version, e.g. "HTTP/1.1".
    """
    method: str
    path: str
    version: str

    def __str__(self) -> str:
        return f"{self.method} {self.path} {self.version}"


def parse_request_line(line: str) -> RequestLine:
    """
    Parse "METHOD TARGET VERSION".

    Args:
        line: The request line, without its line terminator.

    Returns:
        The parsed RequestLine.

    Raises:
        RequestLineError: If the line is empty or malformed.
    """
    parts = line.split()
    if len(parts) != 3:
        raise RequestLineError(f"Malformed request line: {line!r}", line)

    method, path, version = parts

    if not method.isalpha() or not method.isupper():
        raise RequestLineError(f"Invalid method: {method!r}", line)

    if not path.startswith("/"):
        raise RequestLineError(f"Invalid request target: {path!r}", line)

    if not version.startswith("HTTP/"):
        raise RequestLineError(f"Invalid HTTP version: {version!r}", line)

    return RequestLine(method=method, path=path, version=version)
