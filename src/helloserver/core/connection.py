"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket with an API for reading whole HTTP requests
and writing responses, plus the two hooks the lifecycle coordinator needs
while draining: close_if_idle() and abort().

=============================================================================
TCP IS A BYTE STREAM
=============================================================================

recv() returns whatever the kernel has, not one request:

    Client sends:   "GET /hello HTTP/1.1\r\nHost: x\r\n\r\n"
    Server may get: "GET /he" + "llo HTTP/1.1\r\nHo" + "st: x\r\n\r\n"

So bytes are buffered until the \r\n\r\n header terminator shows up, and
then Content-Length more bytes are read for the body. Anything past the end
of the request stays in the buffer for the next one (pipelining).

=============================================================================
CONNECTION STATE MACHINE
=============================================================================

    NEW ──► READING ──► PROCESSING ──► WRITING ──► KEEP_ALIVE ──┐
     │         ▲                                                │
     │         └────────────────────────────────────────────────┘
     │
     └────────────────────► CLOSING ──► CLOSED

A connection is IDLE when no request is in progress on it: it is NEW, or
KEEP_ALIVE, or READING with nothing buffered yet. Draining closes idle
connections at once and waits for the others.

=============================================================================
CLOSING FROM ANOTHER THREAD
=============================================================================

The worker thread that owns a connection may be blocked in recv(). Calling
close() on the socket from another thread does not wake it up on Linux, so
close_if_idle() and abort() only call shutdown(SHUT_RDWR):

    coordinator thread              worker thread
    ──────────────────              ─────────────
    conn.close_if_idle()            recv() blocked...
      socket.shutdown(RDWR) ──────► recv() returns b""
                                    read_request() → None
                                    conn.close()  (releases the fd)

The worker always does the final close().

=============================================================================
"""

import socket
import threading
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional
import uuid


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Connection lifecycle states."""

    NEW = "new"                # Just accepted, nothing read yet
    READING = "reading"        # Reading request bytes
    PROCESSING = "processing"  # Request parsed, handler running
    WRITING = "writing"        # Sending response bytes
    KEEP_ALIVE = "keep_alive"  # Response sent, waiting for next request
    CLOSING = "closing"        # Shutdown sequence in progress
    CLOSED = "closed"          # Socket released


class RequestTooLarge(ValueError):
    """The client sent more than max_request_size bytes for one request."""


@dataclass
class Connection:
    """
    Represents a client connection.

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Short identifier for log lines.
        state: Current connection state.
        requests_handled: Number of complete requests read.
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: float = 30.0             # Timeout for the first request
    keep_alive_timeout: float = 5.0   # Idle timeout between requests
    max_request_size: int = 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _shut_down: bool = field(default=False, repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def is_idle(self) -> bool:
        """True when no request is in progress on this connection."""
        if self.state in (ConnectionState.NEW, ConnectionState.KEEP_ALIVE):
            return True
        return self.state == ConnectionState.READING and not self._buffer

    @property
    def is_closed(self) -> bool:
        return self.state == ConnectionState.CLOSED

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete HTTP request from the socket.

            1. recv() until \\r\\n\\r\\n is buffered
            2. Parse Content-Length out of the raw headers
            3. recv() until the body is complete
            4. Hand back exactly one request, keep the rest buffered

        Returns:
            Complete HTTP request bytes, or None if the client closed the
            connection, went quiet on a keep-alive connection, or the
            connection was shut down while idle.

        Raises:
            TimeoutError: The first request did not arrive in time.
            RequestTooLarge: The request exceeds max_request_size.
        """
        with self._lock:
            if self._shut_down:
                return None
            self.state = ConnectionState.READING

        if self.requests_handled > 0:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            while b"\r\n\r\n" not in self._buffer:
                chunk = self._recv()
                if not chunk:
                    return None
                self._buffer += chunk
                if len(self._buffer) > self.max_request_size:
                    raise RequestTooLarge(f"Request too large: {len(self._buffer)} bytes")

            header_end = self._buffer.find(b"\r\n\r\n")
            body_start = header_end + 4
            content_length = self._parse_content_length(self._buffer[:header_end])

            while len(self._buffer) - body_start < content_length:
                chunk = self._recv()
                if not chunk:
                    break  # Closed mid-body; the parser reports it
                self._buffer += chunk
                if len(self._buffer) > self.max_request_size:
                    raise RequestTooLarge(f"Request too large: {len(self._buffer)} bytes")

            request_end = body_start + content_length
            request_data = self._buffer[:request_end]
            self._buffer = self._buffer[request_end:]

            self.requests_handled += 1
            with self._lock:
                if not self._shut_down:
                    self.state = ConnectionState.PROCESSING
            return request_data

        except socket.timeout:
            if self.requests_handled > 0:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout")

        finally:
            if not self._shut_down:
                try:
                    self.socket.settimeout(self.timeout)
                except OSError:
                    pass

    def _recv(self) -> bytes:
        """recv() that maps an abrupt disconnect to b""."""
        try:
            return self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            return b""

    def _parse_content_length(self, headers: bytes) -> int:
        """
        Find Content-Length in raw header bytes, before full parsing.

        Invalid values count as 0 here; RequestParser rejects them later.
        """
        try:
            header_str = headers.decode("latin-1").lower()
            for line in header_str.split("\r\n"):
                if line.startswith("content-length:"):
                    return max(0, int(line.split(":", 1)[1].strip()))
        except (ValueError, IndexError):
            pass
        return 0

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        Send response bytes with sendall().

        Returns:
            True if sent, False if the connection is gone (including when it
            was aborted while the request was being handled).
        """
        self.state = ConnectionState.WRITING

        try:
            self.socket.sendall(data)
            return True
        except OSError as e:
            logger.debug(f"[{self.id}] Send failed: {e}")
            return False

    def set_keep_alive(self):
        """Mark connection as waiting for the next request."""
        with self._lock:
            if not self._shut_down:
                self.state = ConnectionState.KEEP_ALIVE

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close_if_idle(self) -> bool:
        """
        Shut the connection down if no request is in progress.

        Safe to call from any thread. The owning worker notices on its next
        read and finishes the close.

        Returns:
            True if the connection was idle and has been shut down.
        """
        with self._lock:
            if self._shut_down or not self.is_idle:
                return False
            self._shut_down = True
            self.state = ConnectionState.CLOSING
        self._shutdown_socket()
        return True

    def abort(self):
        """
        Sever the connection immediately, whatever it is doing.

        An in-flight response is lost. Safe to call from any thread.
        """
        with self._lock:
            if self._shut_down:
                return
            self._shut_down = True
            self.state = ConnectionState.CLOSING
        self._shutdown_socket()

    def _shutdown_socket(self):
        try:
            self.socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass  # Already disconnected

    def close(self):
        """
        Close the connection gracefully. Called by the owning worker.

        1. shutdown(SHUT_WR) sends FIN
        2. drain whatever the client still sent
        3. close() releases the file descriptor
        """
        if self.is_closed:
            return

        with self._lock:
            already_shut_down = self._shut_down
            self._shut_down = True
            self.state = ConnectionState.CLOSING

        if not already_shut_down:
            try:
                self.socket.shutdown(socket.SHUT_WR)
            except OSError:
                pass

            try:
                self.socket.settimeout(0.5)
                while self.socket.recv(1024):
                    pass
            except OSError:
                pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests")
