"""
=============================================================================
CORE SERVER COMPONENTS
=============================================================================

Networking and shared state underneath the HTTP layer.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         SOCKET SERVER                                │
    │  • Binds host:port, runs the accept() loop on the calling thread    │
    │  • Survives failed accepts; only bind errors are fatal              │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    │ one Connection per client
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                          WORKERS                                     │
    │  • One thread per connection, started on accept                     │
    │  • A crash in one worker never reaches the accept loop              │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                          CONNECTION                                  │
    │  • Buffered request framing over the TCP byte stream                │
    │  • Keeps pipelined bytes for the next request                       │
    └─────────────────────────────────────────────────────────────────────┘

    ┌─────────────────────────────────────────────────────────────────────┐
    │                          STATS                                       │
    │  • Lock-protected request counter plus monotonic start time         │
    │  • Shared by every worker thread                                    │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState, RequestTooLargeError
from .workers import ConnectionWorker, WorkerGroup
from .stats import StatsSnapshot, StatsTracker

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "RequestTooLargeError",
    "ConnectionWorker",
    "WorkerGroup",
    "StatsSnapshot",
    "StatsTracker",
]
