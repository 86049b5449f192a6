"""
pytest configuration and fixtures.
"""

import dataclasses
import socket
import threading
from typing import Dict, Generator, List, Optional
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from helloserver import HTTPServer, ServerConfig


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request with the headers the access log reads."""
    return (
        b"GET /hello.json?lang=en HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Referer: http://example.com/start\r\n"
        b"X-Forwarded-For: 10.0.0.7\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with a body."""
    body = b'{"name": "John"}'
    return (
        b"POST /hello HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/json\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"Connection: close\r\n"
        + b"\r\n"
        + body
    )


@pytest.fixture
def config() -> ServerConfig:
    """Default test server configuration."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        sloth_delay=0.5,
        shutdown_timeout=5,
        timeout=5.0,
        log_level="INFO",
    )


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


# =============================================================================
# RAW HTTP CLIENT
# =============================================================================

class RawResponse:
    """A response read straight off the socket."""

    def __init__(self, data: bytes):
        head, _, self.body = data.partition(b"\r\n\r\n")
        lines = head.decode("latin-1").split("\r\n")
        self.status_line = lines[0]
        self.status = int(lines[0].split(" ")[1])
        self.headers: Dict[str, str] = {}
        for line in lines[1:]:
            name, _, value = line.partition(":")
            self.headers[name.strip().lower()] = value.strip()


def recv_all(sock: socket.socket) -> bytes:
    chunks = []
    while True:
        chunk = sock.recv(65536)
        if not chunk:
            return b"".join(chunks)
        chunks.append(chunk)


def http_request(
    port: int,
    path: str,
    method: str = "GET",
    headers: Optional[Dict[str, str]] = None,
    timeout: float = 10.0,
) -> RawResponse:
    """Send one request with Connection: close and read the whole reply."""
    lines = [f"{method} {path} HTTP/1.1", "Host: 127.0.0.1"]
    for name, value in (headers or {}).items():
        lines.append(f"{name}: {value}")
    lines.append("Connection: close")
    raw = ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1")

    with socket.create_connection(("127.0.0.1", port), timeout=timeout) as s:
        s.sendall(raw)
        return RawResponse(recv_all(s))


# =============================================================================
# SERVER RUNNER
# =============================================================================

class ServerRunner:
    """Runs an HTTPServer in a background thread and collects its exit code."""

    def __init__(self, server: HTTPServer):
        self.server = server
        self.exit_codes: List[int] = []
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self) -> "ServerRunner":
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()
        if not self.server.wait_until_serving(5.0):
            raise RuntimeError("Server failed to start")
        return self

    def _run(self):
        self.exit_codes.append(self.server.run(install_signals=False))

    def stop(self, timeout: float = 15.0) -> Optional[int]:
        """Request a graceful stop and wait for run() to return."""
        self.server.stop()
        return self.join(timeout)

    def join(self, timeout: float = 15.0) -> Optional[int]:
        if self._thread is not None:
            self._thread.join(timeout)
        return self.exit_codes[0] if self.exit_codes else None

    @property
    def finished(self) -> bool:
        return self._thread is not None and not self._thread.is_alive()


@pytest.fixture
def make_server(config: ServerConfig) -> Generator:
    """
    Factory for running servers. Keyword arguments override fields of the
    `config` fixture. Every server still running at teardown is stopped.
    """
    runners: List[ServerRunner] = []

    def factory(**overrides) -> ServerRunner:
        server = HTTPServer(dataclasses.replace(config, **overrides))
        runner = ServerRunner(server)
        runners.append(runner)
        return runner.start()

    yield factory

    for runner in runners:
        if not runner.finished:
            runner.stop()


@pytest.fixture
def running_server(make_server) -> ServerRunner:
    """A server with default test settings, already serving."""
    return make_server()


@pytest.fixture
def http():
    """The raw one-shot HTTP client, as a fixture."""
    return http_request
