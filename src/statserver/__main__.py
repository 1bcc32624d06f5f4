"""
=============================================================================
STATSERVER CLI ENTRY POINT
=============================================================================

    # Run with defaults (127.0.0.1:8080)
    python -m statserver

    # Custom port, all interfaces
    statserver --host 0.0.0.0 --port 3000

    # JSON access logs for a log shipper
    statserver --log-format json

Command-line flags override STATSERVER_* environment variables, which
override the ServerConfig defaults.

=============================================================================
"""

import argparse
import sys
from typing import List, Optional

from . import __version__
from .config import LOG_FORMATS, LOG_LEVELS, ConfigError, ServerConfig
from .server import HTTPServer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="statserver",
        description="JSON statistics server built on raw sockets",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  statserver                        # 127.0.0.1:8080
  statserver --port 3000            # Custom port
  statserver --host 0.0.0.0         # Listen on all interfaces
  statserver --log-level DEBUG      # Verbose diagnostics
  statserver --no-access-log        # Quiet under load tests
        """
    )

    # Defaults are None so unset flags fall through to the environment
    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Host to bind to (default: 127.0.0.1)"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to listen on (default: 8080, 0 picks a free port)"
    )

    parser.add_argument(
        "--log-level", "-l",
        type=str.upper,
        choices=LOG_LEVELS,
        default=None,
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        default=None,
        help="Access log format (default: text)"
    )

    parser.add_argument(
        "--no-access-log",
        dest="access_log",
        action="store_false",
        default=None,
        help="Disable per-request access logging"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"statserver {__version__}"
    )

    return parser


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """Layer parsed CLI flags over the environment configuration."""
    return ServerConfig.from_env().merge(
        host=args.host,
        port=args.port,
        log_level=args.log_level,
        log_format=args.log_format,
        access_log=args.access_log,
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = config_from_args(args)
        server = HTTPServer(config)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    try:
        server.run()
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
