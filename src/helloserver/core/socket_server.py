"""
=============================================================================
LOW-LEVEL TCP SOCKET SERVER
=============================================================================

The listening socket and the accept loop.

SOCKET LIFECYCLE (server side):

    1. socket()    create the listening socket
    2. bind()      claim host:port           ← bind()     (fatal on error)
    3. listen()    start queueing clients    ← bind()
    4. accept()    one new socket per client ← serve()    (loops)
    5. close()     stop accepting            ← close()

bind() and serve() are separate so the coordinator can treat "port already
in use" as a startup failure before it starts a listener thread.

=============================================================================
SOCKET OPTIONS
=============================================================================

SO_REUSEADDR:
    Rebind right after a restart instead of waiting out TIME_WAIT.

TCP_NODELAY:
    Disable Nagle's algorithm. Responses are small and written in one
    sendall(); there is nothing to gain from delaying them.

SO_REUSEPORT is NOT set. With it, a second server could bind the same port
and silently share its traffic instead of failing at startup.

=============================================================================
THE ACCEPT LOOP
=============================================================================

accept() has a 1 second timeout so the loop can notice close():

    while running:
        try:
            accept()            ← at most 1 s
        except timeout:
            continue            ← re-check running
        except OSError:
            running?  → ListenerError (fatal, exit 1)
            closed?   → return normally

=============================================================================
"""

import socket
import logging
import threading
from typing import Callable, Optional, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


class ListenerError(Exception):
    """The accept loop failed for a reason other than being closed."""


class SocketServer:
    """
    Low-level TCP socket server.

    Usage:
        server = SocketServer(config)
        server.bind()                   # raises OSError if the port is taken
        server.serve(handle_connection) # blocks until close()

    serve() raises ListenerError if accept() fails while the server is
    still meant to be running.
    """

    def __init__(self, config: ServerConfig):
        self.config = config
        self._socket: Optional[socket.socket] = None
        self._running = False
        self._lock = threading.Lock()

    @property
    def address(self) -> Tuple[str, int]:
        """The bound (host, port); with port 0 this is the port the OS chose."""
        if self._socket is not None:
            try:
                host, port = self._socket.getsockname()[:2]
                return (host, port)
            except OSError:
                pass
        return (self.config.host, self.config.port)

    def _create_socket(self) -> socket.socket:
        family = socket.AF_INET6 if ":" in self.config.host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        sock.settimeout(1.0)
        return sock

    def bind(self):
        """
        Create the socket, bind it and start listening.

        Raises:
            OSError: If the address cannot be bound (in use, no permission).
        """
        sock = self._create_socket()
        try:
            sock.bind((self.config.host, self.config.port))
            sock.listen(self.config.backlog)
        except OSError as e:
            sock.close()
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            raise

        with self._lock:
            self._socket = sock
            self._running = True

        host, port = self.address
        logger.info(f"Server listening on {host}:{port}")

    def serve(self, connection_handler: Callable[[Connection], None]):
        """
        Accept connections until close() is called.

        Args:
            connection_handler: Receives each accepted Connection. It must
                not block; the HTTP server hands it to a worker thread.

        Raises:
            ListenerError: If accept() fails while still running.
            RuntimeError: If bind() was not called.
        """
        if self._socket is None:
            raise RuntimeError("serve() called before bind()")

        listener = self._socket
        while self._running:
            try:
                client_socket, client_address = listener.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if not self._running:
                    break  # close() was called
                raise ListenerError(f"Accept failed: {e}") from e

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address[:2],
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                keep_alive_timeout=self.config.keep_alive_timeout,
                max_request_size=self.config.max_request_size,
            )
            connection_handler(conn)

        logger.debug("Accept loop stopped")

    def close(self):
        """
        Stop accepting and release the listening socket.

        Idempotent. The accept loop exits within a second.
        """
        with self._lock:
            self._running = False
            sock, self._socket = self._socket, None

        if sock is not None:
            try:
                sock.close()
            except OSError:
                pass
            logger.info("Listener closed")
