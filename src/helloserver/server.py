"""
=============================================================================
HELLO SERVER
=============================================================================

The lifecycle coordinator: wires the socket layer, the worker group, the
access log and the router together, and runs the shutdown protocol.

=============================================================================
ARCHITECTURE OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                          HTTPServer                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │   main thread           listener thread        worker threads       │
    │   ───────────           ───────────────        ──────────────       │
    │   run()                 SocketServer.serve()   RequestWorker × N    │
    │     │                       │                      │                │
    │     │ bind()                │ accept()             │ read_request() │
    │     │ start listener ──────►│──► WorkerGroup ─────►│ parse          │
    │     │                       │       .submit()      │ AccessLog      │
    │     │ wait on               │                      │   └► Router    │
    │     │ ShutdownSignal ◄──────┤ ListenerError        │ send_response  │
    │     │      ▲                                       │                │
    │     │      └── SIGTERM / SIGINT / SIGHUP / SIGQUIT / stop()         │
    │     ▼                                                               │
    │   drain, return exit code                                           │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
LIFECYCLE
=============================================================================

    STARTING ──bind ok──► SERVING ──signal / stop()──► DRAINING ──► STOPPED
        │                    │                                        ▲
        │ bind failed        │ listener failed                        │
        └────────────────────┴────────────────────────────────────────┘

    ┌────────────────────────────────────────────┬──────────────────────┐
    │ How it ended                               │ run() returns        │
    ├────────────────────────────────────────────┼──────────────────────┤
    │ bind failed (port in use, no permission)   │ 1                    │
    │ listener failed while serving              │ 1 (forced close)     │
    │ drained before shutdown_timeout            │ 0                    │
    │ shutdown_timeout elapsed                   │ 1 (forced close)     │
    └────────────────────────────────────────────┴──────────────────────┘

Lifecycle log lines (INFO, logger "helloserver.server"):

    running hello server.
    stopping hello server.
    stopped hello server.

=============================================================================
"""

import logging
import threading
from enum import Enum
from typing import Callable, Optional, Tuple

from .config import ServerConfig
from .core import (
    SocketServer, ListenerError,
    Connection, RequestTooLarge,
    WorkerGroup,
    ShutdownSignal, SignalHandlers,
)
from .handlers import HelloRenderer
from .http import (
    HTTPRequest, RequestParser, HTTPParseError,
    HTTPResponse, ResponseBuilder, HTTPStatus,
    Router, internal_error,
)
from .http.response import SERVER_NAME
from .middleware import MiddlewarePipeline, AccessLogMiddleware


logger = logging.getLogger(__name__)


_TRANSPORT_ERROR_MESSAGES = {
    HTTPStatus.BAD_REQUEST: "bad request",
    HTTPStatus.REQUEST_TIMEOUT: "request timeout",
    HTTPStatus.PAYLOAD_TOO_LARGE: "payload too large",
    HTTPStatus.SERVICE_UNAVAILABLE: "server is shutting down",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "http version not supported",
}


class LifecycleState(Enum):
    """Where the server is in its lifecycle."""
    STARTING = "starting"
    SERVING = "serving"
    DRAINING = "draining"
    STOPPED = "stopped"


class HTTPServer:
    """
    The hello server.

    Usage:
        config = ServerConfig.from_env()
        server = HTTPServer(config)
        exit_code = server.run()          # blocks until shutdown

    From a non-main thread (tests, embedding), signal handlers are not
    installed; call stop() to begin the drain instead:

        thread = threading.Thread(target=lambda: codes.append(server.run()))
        thread.start()
        server.wait_until_serving(5)
        ...
        server.stop()
        thread.join()
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        """
        Initialize the server.

        Args:
            config: Server configuration. Defaults to ServerConfig().
            sleep: Replacement for time.sleep in the sloth routes.

        Raises:
            ConfigError: If the configuration is invalid.
        """
        self.config = config or ServerConfig()
        self.config.validate()

        self._renderer = HelloRenderer(self.config.print_text)
        router_options = {} if sleep is None else {"sleep": sleep}
        self._router = Router(self._renderer, self.config.sloth_delay, **router_options)

        self._middleware = MiddlewarePipeline()
        self._middleware.add(AccessLogMiddleware())
        self._handler: Callable[[HTTPRequest], HTTPResponse] = self._middleware.wrap(self._router.handle)

        self._parser = RequestParser(max_request_size=self.config.max_request_size)
        self._socket_server = SocketServer(self.config)
        self._workers = WorkerGroup(self._process_connection)
        self._shutdown = ShutdownSignal()

        self._state = LifecycleState.STARTING
        self._serving = threading.Event()
        self._listener_thread: Optional[threading.Thread] = None

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def address(self) -> Tuple[str, int]:
        """The address actually bound (useful with port 0)."""
        return self._socket_server.address

    def wait_until_serving(self, timeout: Optional[float] = None) -> bool:
        return self._serving.wait(timeout)

    def stop(self):
        """Begin a graceful shutdown, as if SIGTERM had arrived."""
        if self._shutdown.trigger("stop requested"):
            logger.info("Stop requested, initiating shutdown...")

    def run(self, install_signals: bool = True) -> int:
        """
        Run the server until it is told to stop.

        Args:
            install_signals: Handle SIGHUP/SIGINT/SIGTERM/SIGQUIT. Ignored
                             (treated as False) off the main thread.

        Returns:
            Process exit status: 0 after a complete drain, 1 otherwise.
        """
        self._setup_logging()

        signal_handlers = SignalHandlers(self._shutdown)
        if install_signals:
            signal_handlers.install()

        try:
            return self._run()
        finally:
            signal_handlers.restore()
            self._set_state(LifecycleState.STOPPED)
            self._serving.clear()

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def _run(self) -> int:
        try:
            self._socket_server.bind()
        except OSError:
            return 1

        self._listener_thread = threading.Thread(
            target=self._listen, name="Listener", daemon=True
        )
        self._set_state(LifecycleState.SERVING)
        self._listener_thread.start()

        logger.info("running hello server.")
        self._log_routes()
        self._serving.set()

        # Short waits so signal handlers get to run on the main thread.
        while not self._shutdown.wait(0.5):
            pass

        if self._shutdown.fatal:
            logger.error(f"Listener stopped unexpectedly: {self._shutdown.reason}")
            self._socket_server.close()
            self._workers.abort_all()
            return 1

        return self._drain()

    def _drain(self) -> int:
        """
        Graceful shutdown.

        1. Stop accepting new connections
        2. Close connections that are between requests
        3. Wait up to shutdown_timeout for the rest to finish
        4. Abort whatever is still open
        """
        self._set_state(LifecycleState.DRAINING)
        logger.info("stopping hello server.")

        self._socket_server.close()
        self._workers.begin_drain()

        deadline = self.config.drain_deadline
        if self._workers.wait(deadline):
            exit_code = 0
        else:
            logger.error(
                f"Graceful shutdown did not finish within {deadline:g}s, "
                f"closing {self._workers.active_count} connection(s)"
            )
            self._workers.abort_all()
            exit_code = 1

        if self._listener_thread is not None:
            self._listener_thread.join(timeout=2.0)

        logger.info("stopped hello server.")
        return exit_code

    def _listen(self):
        """Listener thread body. Any failure becomes a fatal shutdown."""
        try:
            self._socket_server.serve(self._handle_connection)
        except ListenerError as e:
            self._shutdown.trigger(str(e), fatal=True)
        except Exception as e:
            logger.exception(f"Listener crashed: {e}")
            self._shutdown.trigger(f"listener crashed: {e}", fatal=True)

    def _set_state(self, state: LifecycleState):
        if state != self._state:
            logger.debug(f"Lifecycle: {self._state.value} -> {state.value}")
            self._state = state

    def _setup_logging(self):
        """Configure logging based on config."""
        configure_logging(self.config.log_level_number)

    def _log_routes(self):
        for route in self._router.routes():
            delay = f" after {self.config.sloth_delay:g}s" if route.is_sloth else ""
            logger.debug(f"Route {route.path} -> {route.kind.value}{delay}")

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """Hand a new connection to a worker (runs on the listener thread)."""
        if not self._workers.submit(conn):
            logger.warning(f"[{conn.id}] Draining, rejecting connection from {conn.client_ip}")
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE)
            conn.close()

    def _process_connection(self, conn: Connection):
        """
        Serve requests on one connection until it closes (worker thread).

            1. Read one request
            2. Parse it            (400/413/505 and close on failure)
            3. AccessLog → Router  (500 if anything escapes)
            4. Send the response   (headers only for HEAD)
            5. Keep-alive? Loop. Draining? Close.
        """
        while True:
            try:
                raw_request = conn.read_request()
            except TimeoutError:
                logger.warning(f"[{conn.id}] Request from {conn.client_ip} timed out")
                self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT)
                return
            except RequestTooLarge as e:
                logger.warning(f"[{conn.id}] {e}")
                self._send_error(conn, HTTPStatus.PAYLOAD_TOO_LARGE)
                return

            if raw_request is None:
                return

            try:
                request = self._parser.parse(raw_request, conn.address)
            except HTTPParseError as e:
                logger.warning(f"[{conn.id}] Bad request from {conn.client_ip}: {e}")
                self._send_error(conn, HTTPStatus(e.status_code))
                return

            try:
                response = self._handler(request)
            except Exception as e:
                logger.exception(f"[{conn.id}] Handler error: {e}")
                response = internal_error()

            keep_alive = request.is_keep_alive and not self._workers.draining
            if keep_alive:
                response.headers.setdefault("Connection", "keep-alive")
                response.headers.setdefault(
                    "Keep-Alive", f"timeout={int(self.config.keep_alive_timeout)}"
                )
            else:
                response.headers["Connection"] = "close"

            response_bytes = response.to_bytes(SERVER_NAME, include_body=not request.is_head)
            if not conn.send_response(response_bytes):
                return

            if not keep_alive:
                return
            conn.set_keep_alive()

    def _send_error(self, conn: Connection, status: HTTPStatus):
        """
        Send a transport-level error (before or instead of dispatch).

        These bodies go through the escaping JSON builder and are not
        access-logged.
        """
        response = (ResponseBuilder()
            .status(status)
            .json({"message": _TRANSPORT_ERROR_MESSAGES.get(status, status.phrase.lower())})
            .close_connection()
            .build())
        conn.send_response(response.to_bytes(SERVER_NAME))


def configure_logging(level: int = logging.INFO):
    """
    Configure the root logger once for the process.

    basicConfig() does nothing if logging is already configured, so calling
    this from both the CLI and HTTPServer.run() is harmless.
    """
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger("helloserver").setLevel(level)
