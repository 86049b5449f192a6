"""
=============================================================================
HELLO SERVER CLI ENTRY POINT
=============================================================================

    python -m helloserver
    python -m helloserver --port 3000
    python -m helloserver --sloth-delay 2
    PRINT_TEXT="Bonjour" SHUTDOWN_TIMEOUT=10 python -m helloserver

or, once installed, the `helloserver` console script.

    1. argparse reads the CLI flags
    2. ServerConfig.from_env() reads PRINT_TEXT and SHUTDOWN_TIMEOUT
    3. HTTPServer(config).run() serves until a signal arrives
    4. its return value becomes the process exit status

Exit status:
    0  clean shutdown
    1  bad configuration, port unavailable, listener failure, or the
       shutdown deadline passed with requests still running

=============================================================================
"""

import argparse
import logging
import sys
from typing import List, Mapping, Optional

from . import __version__
from .config import ServerConfig, ConfigError
from .server import HTTPServer, configure_logging


logger = logging.getLogger("helloserver")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="helloserver",
        description="Hello World HTTP server with graceful shutdown",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment:
  PRINT_TEXT         Greeting to serve (default: Hello World!)
  SHUTDOWN_TIMEOUT   Seconds to drain on shutdown (default: 30)

Examples:
  python -m helloserver                      # Listen on 0.0.0.0:8080
  python -m helloserver --port 3000          # Custom port
  python -m helloserver --sloth-delay 2      # Faster /sloth/* routes
        """
    )

    parser.add_argument(
        "--host", "-H",
        default="0.0.0.0",
        help="Host to bind to (default: 0.0.0.0)"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=8080,
        help="Port to listen on (default: 8080)"
    )

    parser.add_argument(
        "--sloth-delay",
        type=float,
        default=30.0,
        help="Seconds the /sloth/* routes wait before answering (default: 30)"
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
        version=f"helloserver {__version__}"
    )

    return parser


def main(argv: Optional[List[str]] = None, environ: Optional[Mapping[str, str]] = None) -> int:
    """
    Run the server from the command line.

    Args:
        argv: Arguments without the program name. Defaults to sys.argv[1:].
        environ: Environment to read. Defaults to os.environ.

    Returns:
        Exit status.
    """
    args = build_parser().parse_args(argv)
    configure_logging(getattr(logging, args.log_level))

    try:
        config = ServerConfig.from_env(
            environ,
            host=args.host,
            port=args.port,
            sloth_delay=args.sloth_delay,
            log_level=args.log_level,
        )
        server = HTTPServer(config)
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    return server.run()


def run():
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
