"""
HTTP bits: just enough to read a request line and write a response.
"""

from .status_codes import HTTPStatus
from .request import RequestLine, RequestLineError, parse_request_line
from .response import HTTPResponse, text_response, service_unavailable

__all__ = [
    "HTTPStatus",
    "RequestLine",
    "RequestLineError",
    "parse_request_line",
    "HTTPResponse",
    "text_response",
    "service_unavailable",
]
