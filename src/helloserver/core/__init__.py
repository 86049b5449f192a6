"""
=============================================================================
CORE SERVER COMPONENTS
=============================================================================

The networking plumbing under the HTTP layer:

    ┌─────────────────────────────────────────────────────────────────────┐
    │ SocketServer (socket_server.py)                                     │
    │   bind(), accept loop, close()                                      │
    └─────────────────────────────────────────────────────────────────────┘
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │ WorkerGroup (workers.py)                                            │
    │   one daemon thread per connection, drain and abort                 │
    └─────────────────────────────────────────────────────────────────────┘
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │ Connection (connection.py)                                          │
    │   buffered request reads, response writes, idle detection           │
    └─────────────────────────────────────────────────────────────────────┘

    ShutdownSignal / SignalHandlers (signals.py) tell the coordinator when
    to start draining.

=============================================================================
"""

from .socket_server import SocketServer, ListenerError
from .connection import Connection, ConnectionState, RequestTooLarge
from .workers import WorkerGroup, RequestWorker
from .signals import ShutdownSignal, SignalHandlers, SHUTDOWN_SIGNALS

__all__ = [
    "SocketServer",
    "ListenerError",
    "Connection",
    "ConnectionState",
    "RequestTooLarge",
    "WorkerGroup",
    "RequestWorker",
    "ShutdownSignal",
    "SignalHandlers",
    "SHUTDOWN_SIGNALS",
]
