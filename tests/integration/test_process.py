"""
End-to-end tests of `python -m helloserver` as a real process.
"""

import os
import signal
import subprocess
import sys
import threading
import time
from pathlib import Path

import pytest

from helloserver.__main__ import build_parser, main

from conftest import http_request


SRC = Path(__file__).resolve().parents[2] / "src"

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals")


def spawn(port: int, environ=None, *args) -> subprocess.Popen:
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(SRC), env.get("PYTHONPATH")]))
    env.update(environ or {})
    return subprocess.Popen(
        [sys.executable, "-m", "helloserver", "--host", "127.0.0.1", "--port", str(port), *args],
        env=env,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    )


def wait_for_line(proc: subprocess.Popen, text: str, timeout: float = 10.0) -> list:
    """Read stderr until a line containing `text` shows up."""
    seen = []
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        line = proc.stderr.readline()
        if not line:
            break
        seen.append(line)
        if text in line:
            return seen
    raise AssertionError(f"{text!r} not logged; got: {''.join(seen)}")


@pytest.fixture
def server_process(free_port):
    procs = []

    def start(environ=None, *args):
        proc = spawn(free_port, environ, *args)
        procs.append(proc)
        wait_for_line(proc, "running hello server.")
        return proc

    yield start

    for proc in procs:
        if proc.poll() is None:
            proc.kill()
            proc.wait(5)


class TestProcess:
    """The server as an operator runs it."""

    @pytest.mark.parametrize("signum", [signal.SIGTERM, signal.SIGINT, signal.SIGHUP])
    def test_signal_drains_and_exits_0(self, server_process, free_port, signum):
        proc = server_process({"PRINT_TEXT": "from env"})

        assert http_request(free_port, "/hello").body == b"from env"

        proc.send_signal(signum)
        _, stderr = proc.communicate(timeout=15)

        assert proc.returncode == 0
        assert "stopping hello server." in stderr
        assert "stopped hello server." in stderr

    def test_access_line_on_stderr(self, server_process, free_port):
        proc = server_process()

        http_request(free_port, "/nope", headers={"User-Agent": "proc-test"})
        proc.send_signal(signal.SIGTERM)
        _, stderr = proc.communicate(timeout=15)

        assert "proc-test - /nope 404" in stderr

    def test_signal_lets_in_flight_sloth_request_finish(self, server_process, free_port):
        proc = server_process({"SHUTDOWN_TIMEOUT": "5"}, "--sloth-delay", "1")
        results = []

        client = threading.Thread(
            target=lambda: results.append(http_request(free_port, "/sloth/hello")),
            daemon=True,
        )
        client.start()
        time.sleep(0.5)

        proc.send_signal(signal.SIGTERM)
        _, stderr = proc.communicate(timeout=15)
        client.join(5)

        assert proc.returncode == 0
        assert results[0].status == 200
        assert results[0].body == b"Hello World!"
        assert "/sloth/hello 200" in stderr

    def test_drain_deadline_exceeded_exits_1(self, server_process, free_port):
        proc = server_process({"SHUTDOWN_TIMEOUT": "1"}, "--sloth-delay", "10")

        client = threading.Thread(
            target=lambda: _ignore_errors(http_request, free_port, "/sloth/hello"),
            daemon=True,
        )
        client.start()
        time.sleep(0.5)

        proc.send_signal(signal.SIGTERM)
        proc.communicate(timeout=15)

        assert proc.returncode == 1

    def test_invalid_shutdown_timeout_exits_1(self, free_port):
        proc = spawn(free_port, {"SHUTDOWN_TIMEOUT": "soon"})
        _, stderr = proc.communicate(timeout=15)

        assert proc.returncode == 1
        assert "SHUTDOWN_TIMEOUT" in stderr
        assert "running hello server." not in stderr


def _ignore_errors(func, *args):
    try:
        func(*args)
    except (OSError, IndexError, ValueError):
        pass


class TestMain:
    """main() without a subprocess, for the paths that exit before serving."""

    def test_invalid_environment(self):
        assert main(["--port", "0"], environ={"SHUTDOWN_TIMEOUT": "1.5"}) == 1

    def test_invalid_port(self):
        assert main(["--port", "70000"], environ={}) == 1

    def test_parser_defaults(self):
        args = build_parser().parse_args([])

        assert args.host == "0.0.0.0"
        assert args.port == 8080
        assert args.sloth_delay == 30.0
        assert args.log_level == "INFO"

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(["--version"])

        assert exc_info.value.code == 0
        assert "helloserver" in capsys.readouterr().out
