"""
Request handlers.

The only handler maps a request line to a canned HTML page.
"""

from .pages import PageHandler, DEFAULT_PAGES_DIR, HELLO_PAGE, NOT_FOUND_PAGE

__all__ = ["PageHandler", "DEFAULT_PAGES_DIR", "HELLO_PAGE", "NOT_FOUND_PAGE"]
