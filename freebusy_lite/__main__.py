"""Command-line entry for freebusy_lite.

Thin argparse wrapper around ``freebusy_lite.run_server()``.
"""

from __future__ import annotations

import argparse
import sys
from typing import NoReturn

from . import run_server
from .lite_exceptions import ConfigError


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the freebusy_lite CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="freebusy_lite",
        description="freebusy-lite - busy/free intervals from a CalDAV calendar account",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m freebusy_lite                  # Start server on default port (3000, or PORT env var)
  python -m freebusy_lite --port 8080      # Start server on port 8080
        """,
    )

    parser.add_argument(
        "--port",
        type=int,
        metavar="PORT",
        help="Port number for the web server (default: 3000, or from PORT env var)",
    )

    return parser


def main() -> NoReturn:
    """Run the freebusy_lite CLI.

    Exits with status 1 when the CalDAV credentials are missing.
    """
    parser = _create_parser()
    args = parser.parse_args()

    try:
        run_server(args)
    except ConfigError as exc:
        print(f"freebusy_lite: {exc} (set them in the environment or a .env file)", file=sys.stderr)
        sys.exit(1)
    sys.exit(0)


if __name__ == "__main__":
    main()
