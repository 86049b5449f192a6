"""
=============================================================================
REQUEST WORKERS
=============================================================================

One thread per accepted connection, tracked as a group so that shutdown can
wait for them.

=============================================================================
WHY NOT A FIXED POOL?
=============================================================================

A /sloth/* request holds its thread for the whole sloth delay (30 s by
default). With a fixed pool of N threads, N sloth requests would stall every
other client. A thread per connection keeps fast routes fast no matter how
many slow ones are in flight.

    listener thread                    WorkerGroup
    ───────────────                    ───────────
    accept() ──► conn ──► submit(conn) ──► RequestWorker(conn).start()
                                              │
                                              ▼
                                         handler(conn)    ← keep-alive loop
                                              │
                                              ▼
                                         conn.close(), leave the group

=============================================================================
DRAINING
=============================================================================

    begin_drain()          refuse new connections, close idle ones
         │
         ▼
    wait(deadline) ──────► every worker finished ──► True
         │                 (idle connections are re-checked every tick,
         │                  so a request finishing during the drain does
         │                  not hold its keep-alive connection open)
         ▼
    deadline passed ─────► False
         │
         ▼
    abort_all()            shut down every remaining socket

Workers are daemon threads. After abort_all() a worker still sleeping
through a sloth delay cannot keep the process alive.

=============================================================================
"""

import threading
import time
import logging
from typing import Callable, Optional, Set

from .connection import Connection


logger = logging.getLogger(__name__)


ConnectionHandler = Callable[[Connection], None]


class RequestWorker(threading.Thread):
    """
    Serves every request on one connection, then closes it.

    The handler owns the request loop; the worker only guarantees that the
    connection is closed and the group is told, however the handler ends.
    """

    def __init__(
        self,
        connection: Connection,
        handler: ConnectionHandler,
        on_exit: Callable[["RequestWorker"], None],
    ):
        super().__init__(name=f"Worker-{connection.id}", daemon=True)
        self.connection = connection
        self._handler = handler
        self._on_exit = on_exit

    def run(self):
        logger.debug(f"Worker for [{self.connection.id}] started")
        try:
            self._handler(self.connection)
        except Exception as e:
            logger.exception(f"Worker for [{self.connection.id}] failed: {e}")
        finally:
            self.connection.close()
            self._on_exit(self)
            logger.debug(f"Worker for [{self.connection.id}] stopped")


class WorkerGroup:
    """
    Tracks live request workers.

    This is the only synchronization point between the listener, the
    workers and the lifecycle coordinator.

    Usage:
        group = WorkerGroup(server.process_connection)
        group.submit(conn)         # from the listener thread
        ...
        group.begin_drain()        # from the coordinator
        if not group.wait(30):
            group.abort_all()
    """

    def __init__(self, handler: ConnectionHandler, poll_interval: float = 0.1):
        self._handler = handler
        self._poll_interval = poll_interval
        self._workers: Set[RequestWorker] = set()
        self._lock = threading.Lock()
        self._changed = threading.Condition(self._lock)
        self._draining = False

    @property
    def draining(self) -> bool:
        return self._draining

    @property
    def active_count(self) -> int:
        with self._lock:
            return len(self._workers)

    def submit(self, connection: Connection) -> bool:
        """
        Start a worker for `connection`.

        Returns:
            False if the group is draining; the caller keeps ownership of
            the connection and must close it.
        """
        with self._lock:
            if self._draining:
                return False
            worker = RequestWorker(connection, self._handler, self._remove)
            self._workers.add(worker)
        worker.start()
        return True

    def _remove(self, worker: RequestWorker):
        with self._changed:
            self._workers.discard(worker)
            self._changed.notify_all()

    def begin_drain(self):
        """Refuse new work and close connections that are between requests."""
        with self._lock:
            self._draining = True
        closed = self.close_idle()
        logger.debug(f"Drain started: closed {closed} idle connection(s)")

    def close_idle(self) -> int:
        """Shut down every idle connection. Returns how many were closed."""
        with self._lock:
            workers = list(self._workers)
        return sum(1 for worker in workers if worker.connection.close_if_idle())

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for every worker to finish.

        Args:
            timeout: Seconds to wait. None waits forever.

        Returns:
            True if all workers finished, False if the deadline passed.
        """
        deadline = None if timeout is None else time.monotonic() + timeout

        while True:
            with self._changed:
                if not self._workers:
                    return True
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                interval = self._poll_interval if remaining is None else min(self._poll_interval, remaining)
                self._changed.wait(interval)
            if self._draining:
                self.close_idle()

    def abort_all(self) -> int:
        """
        Sever every remaining connection. In-flight responses are lost.

        Returns:
            Number of connections aborted.
        """
        with self._lock:
            workers = list(self._workers)
        for worker in workers:
            worker.connection.abort()
        if workers:
            logger.warning(f"Force-closed {len(workers)} connection(s)")
        return len(workers)
