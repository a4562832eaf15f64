"""
=============================================================================
POOLSERVER CLI ENTRY POINT
=============================================================================

    # Run with defaults (127.0.0.1:7878, 4 workers)
    python -m poolserver

    # Custom port and pool size
    python -m poolserver --port 3000 --workers 8

    # Drop queued connections instead of serving them on shutdown
    python -m poolserver --discard-on-shutdown

Every flag is optional. The server runs until SIGINT/SIGTERM and exits
with status 0 after a clean shutdown.

=============================================================================
"""

import argparse
import sys
from typing import List, Optional

from . import __version__
from .server import Server
from .config import ServerConfig


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="poolserver",
        description="Minimal concurrent request server backed by a fixed thread pool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m poolserver                      # 127.0.0.1:7878, 4 workers
  python -m poolserver --workers 8          # 8 worker threads
  python -m poolserver --queue-size 64      # Bound the pending queue
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=7878,
        help="Port to listen on (default: 7878)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # POOL ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=4,
        help="Number of worker threads (default: 4)"
    )

    parser.add_argument(
        "--queue-size", "-q",
        type=int,
        default=0,
        help="Maximum pending connections, 0 for unbounded (default: 0)"
    )

    parser.add_argument(
        "--discard-on-shutdown",
        action="store_true",
        help="On shutdown, answer queued connections with 503 instead of serving them"
    )

    # ─────────────────────────────────────────────────────────────────────
    # PAGES AND LOGGING
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--pages-dir", "-d",
        default=None,
        help="Directory containing hello.html and 404.html"
    )

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"poolserver {__version__}"
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Parse arguments, build the server and run it.

    Returns:
        Process exit status: 0 after a clean shutdown, 1 on startup error.
    """
    args = build_parser().parse_args(argv)

    config = ServerConfig(
        host=args.host,
        port=args.port,
        workers=args.workers,
        queue_size=args.queue_size,
        drain_on_shutdown=not args.discard_on_shutdown,
        pages_dir=args.pages_dir,
        log_level=args.log_level,
    )

    try:
        server = Server(config)
        server.run()
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
