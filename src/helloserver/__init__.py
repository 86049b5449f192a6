"""
=============================================================================
HELLOSERVER - Hello World HTTP Server With Graceful Shutdown
=============================================================================

Serves one configurable greeting as text, HTML or JSON, plus "sloth"
variants that wait before answering, and shuts down cleanly on SIGTERM:
stop accepting, let in-flight requests finish, give up after a deadline.

=============================================================================
ROUTES
=============================================================================

    /                    application/json     {"message":"Hello World!"}
    /hello               text/plain           Hello World!
    /hello.html          text/html            <h1>Hello World!</h1>
    /hello.json          application/json     {"message":"Hello World!"}
    /sloth/hello         text/plain           (after sloth_delay)
    /sloth/hello.html    text/html            (after sloth_delay)
    /sloth/hello.json    application/json     (after sloth_delay)
    anything else        404                  {"message":"not found"}

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    helloserver/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m helloserver)
    ├── server.py            # HTTPServer: lifecycle coordinator
    ├── config.py            # ServerConfig frozen dataclass
    ├── core/                # Sockets, connections, workers, signals
    ├── http/                # Parser, responses, router, status codes
    ├── middleware/          # Access log
    └── handlers/            # Greeting renderer

=============================================================================
QUICK START
=============================================================================

    from helloserver import HTTPServer, ServerConfig

    server = HTTPServer(ServerConfig(print_text="Hi!", port=8080))
    raise SystemExit(server.run())

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig, ConfigError
from .server import HTTPServer, LifecycleState

__all__ = [
    "HTTPServer",
    "LifecycleState",
    "ServerConfig",
    "ConfigError",
    "__version__",
]
