"""
=============================================================================
SHUTDOWN SIGNALLING
=============================================================================

A one-shot cancellation token plus the OS signal handlers that trigger it.

    SIGHUP  ─┐
    SIGINT  ─┤
    SIGTERM ─┼──► ShutdownSignal.trigger(reason)  ──►  coordinator wakes up
    SIGQUIT ─┤                   ▲
             │                   │
    HTTPServer.stop() ───────────┤
    listener crash ──────────────┘

Only the lifecycle coordinator waits on the token. Request workers never
look at it: a request that has started runs to completion (or until the
drain deadline aborts its connection).

SIGKILL cannot be caught. Neither can SIGSTOP.

=============================================================================
"""

import signal
import threading
import logging
from typing import Dict, Optional, Tuple


logger = logging.getLogger(__name__)


SHUTDOWN_SIGNALS: Tuple[signal.Signals, ...] = tuple(
    getattr(signal, name)
    for name in ("SIGHUP", "SIGINT", "SIGTERM", "SIGQUIT")
    if hasattr(signal, name)  # Windows has only SIGINT and SIGTERM
)


class ShutdownSignal:
    """
    One-shot token: the first trigger() wins, later ones are ignored.

        token = ShutdownSignal()
        ...
        token.wait()
        if token.reason == "listener failed":
            ...
    """

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._reason: Optional[str] = None
        self._fatal = False

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    @property
    def fatal(self) -> bool:
        """True when the trigger was an error rather than a stop request."""
        return self._fatal

    def trigger(self, reason: str, fatal: bool = False) -> bool:
        """
        Set the token.

        Returns:
            True if this call set it, False if it was already set.
        """
        with self._lock:
            if self._event.is_set():
                return False
            self._reason = reason
            self._fatal = fatal
            self._event.set()
        return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)


class SignalHandlers:
    """
    Installs handlers for SHUTDOWN_SIGNALS and restores the previous ones.

        handlers = SignalHandlers(token)
        handlers.install()
        try:
            ...
        finally:
            handlers.restore()

    signal.signal() only works from the main thread, so install() is a
    no-op (returning False) anywhere else.
    """

    def __init__(self, token: ShutdownSignal):
        self.token = token
        self._original_handlers: Dict[signal.Signals, object] = {}

    def install(self) -> bool:
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not on the main thread, signal handlers not installed")
            return False

        for sig in SHUTDOWN_SIGNALS:
            self._original_handlers[sig] = signal.signal(sig, self._handle)
        return True

    def _handle(self, signum, frame):
        signal_name = signal.Signals(signum).name
        if self.token.trigger(f"received {signal_name}"):
            logger.info(f"Received {signal_name}, initiating shutdown...")

    def restore(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()
