"""
HTTP status codes used by the server.

Only the handful of codes the server can actually produce are defined.
Each one carries its reason phrase for the status line:

    HTTP/1.1 404 Not Found
             ─── ─────────
              │      │
              │      └── phrase
              └───────── code
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes as an IntEnum, so HTTPStatus.OK == 200.

    Example:
        >>> HTTPStatus.NOT_FOUND.phrase
        'Not Found'
    """

    OK = 200                        # Page found and served
    NOT_FOUND = 404                 # Anything we don't route
    INTERNAL_SERVER_ERROR = 500     # Page file missing or unreadable
    SERVICE_UNAVAILABLE = 503       # Pool is shutting down

    @property
    def phrase(self) -> str:
        """Get the reason phrase for this status code."""
        return _STATUS_PHRASES.get(self, "Unknown")


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
}
