"""
=============================================================================
CANNED PAGE HANDLER
=============================================================================

Maps a request line to one of two HTML pages on disk:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         Routing table                               │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   GET / HTTP/1.1        →  200 OK         hello.html                 │
    │   GET /sleep HTTP/1.1   →  200 OK         hello.html (after a pause) │
    │   anything else         →  404 Not Found  404.html                   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Only those two exact lines match. "Anything else" includes other methods,
unknown paths, other HTTP versions, extra whitespace, and request lines
that could not be parsed at all.

/sleep holds its worker for a few seconds. Open it in one tab and / in
another: with a pool of N workers, / still answers immediately as long
as fewer than N sleeps are in flight.

Pages are read from disk on every request, so editing them takes effect
without a restart.

=============================================================================
"""

import logging
import time
from pathlib import Path
from typing import Callable, Optional, Tuple, Union

from ..http.request import RequestLine, RequestLineError, parse_request_line
from ..http.response import HTTPResponse, text_response
from ..http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)


DEFAULT_PAGES_DIR = Path(__file__).resolve().parent.parent / "pages"

HELLO_PAGE = "hello.html"
NOT_FOUND_PAGE = "404.html"


class PageHandler:
    """
    Turns a raw request line into a canned HTTPResponse.

    Usage:
        handler = PageHandler()
        response = handler.handle("GET / HTTP/1.1")
        conn.send_response(response.to_bytes())
    """

    def __init__(
        self,
        pages_dir: Optional[Union[str, Path]] = None,
        sleep_seconds: float = 5.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            pages_dir: Directory containing hello.html and 404.html.
                       Defaults to the pages shipped with the package.
            sleep_seconds: How long GET /sleep waits before answering.
            sleep: Sleep function (replaceable in tests).
        """
        self.pages_dir = Path(pages_dir) if pages_dir else DEFAULT_PAGES_DIR
        self.sleep_seconds = sleep_seconds
        self._sleep = sleep

        # (method, path, version) -> (status, page, delay in seconds)
        self._routes = {
            ("GET", "/", "HTTP/1.1"): (HTTPStatus.OK, HELLO_PAGE, 0.0),
            ("GET", "/sleep", "HTTP/1.1"): (HTTPStatus.OK, HELLO_PAGE, sleep_seconds),
        }

    def route(self, request: Optional[RequestLine]) -> Tuple[HTTPStatus, str, float]:
        """
        Look up the response for a parsed request line.

        Args:
            request: The parsed line, or None if it could not be parsed.

        Returns:
            (status, page file name, seconds to sleep first)
        """
        if request is not None:
            found = self._routes.get((request.method, request.path, request.version))
            if found is not None:
                return found
        return (HTTPStatus.NOT_FOUND, NOT_FOUND_PAGE, 0.0)

    def handle(self, raw_line: Optional[str]) -> HTTPResponse:
        """
        Build the response for a raw request line.

        Args:
            raw_line: The first line of the request, or None if the client
                      sent nothing.
        """
        request: Optional[RequestLine] = None
        if raw_line is not None:
            try:
                request = parse_request_line(raw_line)
            except RequestLineError as e:
                logger.debug(f"Unroutable request line: {e}")

        # Routes match the exact line: single spaces, nothing around it
        if request is not None and str(request) != raw_line:
            logger.debug(f"Non-canonical request line: {raw_line!r}")
            request = None

        status, page, delay = self.route(request)

        if delay > 0:
            self._sleep(delay)

        try:
            body = self.read_page(page)
        except OSError as e:
            logger.error(f"Cannot read page {page!r} from {self.pages_dir}: {e}")
            return text_response(HTTPStatus.INTERNAL_SERVER_ERROR, "Internal Server Error")

        return HTTPResponse(status=status, body=body)

    def read_page(self, name: str) -> bytes:
        """
        Read a page from the pages directory.

        Raises:
            OSError: If the file is missing or unreadable.
        """
        return (self.pages_dir / name).read_bytes()
