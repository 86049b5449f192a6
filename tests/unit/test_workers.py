"""
Unit tests for WorkerGroup.
"""

import socket
import threading

import pytest

from helloserver.core.connection import Connection
from helloserver.core.workers import WorkerGroup


@pytest.fixture
def connections():
    """Factory for server-side connections; client sockets are kept open."""
    clients = []

    def make() -> Connection:
        server_side, client_side = socket.socketpair()
        clients.append(client_side)
        return Connection(
            socket=server_side,
            address=("127.0.0.1", 40000 + len(clients)),
            timeout=5.0,
            keep_alive_timeout=5.0,
        )

    yield make

    for client in clients:
        client.close()


def read_until_closed(conn: Connection):
    while conn.read_request() is not None:
        pass


class TestSubmit:
    """Tests for WorkerGroup.submit()."""

    def test_runs_handler_and_closes_connection(self, connections):
        seen = []
        group = WorkerGroup(seen.append)
        conn = connections()

        assert group.submit(conn) is True
        assert group.wait(5) is True

        assert seen == [conn]
        assert conn.is_closed
        assert group.active_count == 0

    def test_handler_exception_still_closes(self, connections):
        def broken(conn):
            raise RuntimeError("boom")

        group = WorkerGroup(broken)
        conn = connections()

        group.submit(conn)

        assert group.wait(5) is True
        assert conn.is_closed

    def test_refused_while_draining(self, connections):
        group = WorkerGroup(read_until_closed)
        group.begin_drain()

        assert group.submit(connections()) is False
        assert group.draining


class TestDrain:
    """Tests for begin_drain(), wait() and abort_all()."""

    def test_wait_with_no_workers(self):
        assert WorkerGroup(read_until_closed).wait(0) is True

    def test_drain_closes_idle_connections(self, connections):
        group = WorkerGroup(read_until_closed, poll_interval=0.05)
        for _ in range(3):
            group.submit(connections())

        group.begin_drain()

        assert group.wait(5) is True

    def test_wait_times_out_on_busy_worker(self, connections):
        release = threading.Event()
        group = WorkerGroup(lambda conn: release.wait(5), poll_interval=0.05)
        group.submit(connections())

        group.begin_drain()
        try:
            assert group.wait(0.2) is False
            assert group.active_count == 1
        finally:
            release.set()

        assert group.wait(5) is True

    def test_in_flight_request_finishes_during_drain(self, connections):
        started = threading.Event()
        finished = []

        def slow(conn):
            started.set()
            threading.Event().wait(0.3)
            finished.append(conn)

        group = WorkerGroup(slow, poll_interval=0.05)
        group.submit(connections())
        started.wait(5)

        group.begin_drain()

        assert group.wait(5) is True
        assert len(finished) == 1

    def test_abort_all(self, connections):
        release = threading.Event()
        group = WorkerGroup(lambda conn: release.wait(5))
        conns = [connections(), connections()]
        for conn in conns:
            group.submit(conn)

        try:
            assert group.abort_all() == 2
        finally:
            release.set()

        assert group.wait(5) is True
        assert all(conn.is_closed for conn in conns)
