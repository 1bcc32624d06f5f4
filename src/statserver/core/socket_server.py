"""
=============================================================================
LOW-LEVEL TCP SOCKET SERVER
=============================================================================

The listening side of the server: create, bind, listen, and accept.

    1. socket()    Create a TCP socket
    2. bind()      Claim host:port (port 0 lets the OS pick a free one)
    3. listen()    Start the kernel's accept queue (backlog)
    4. accept()    Take the next client; returns a NEW socket for it
    5. close()     Release the listening socket

                    ┌───────────────────────┐
                    │   Listening Socket    │ ◄── Created once at startup
                    │   127.0.0.1:8080      │     Never reads or writes
                    └───────────┬───────────┘
                                │ accept()
        ┌───────────────────────┼───────────────────────┐
        ▼                       ▼                       ▼
    ┌───────────┐         ┌───────────┐         ┌───────────┐
    │ Client    │         │ Client    │         │ Client    │
    │ Socket 1  │         │ Socket 2  │         │ Socket 3  │
    └───────────┘         └───────────┘         └───────────┘

=============================================================================
SOCKET OPTIONS
=============================================================================

SO_REUSEADDR   rebind immediately after a restart instead of waiting out
               TIME_WAIT ("Address already in use")
TCP_NODELAY    disable Nagle's algorithm; small JSON responses go out
               immediately instead of waiting to be coalesced

=============================================================================
ACCEPT ERRORS
=============================================================================

A failed accept() (EMFILE when out of file descriptors, ECONNABORTED when
the client gave up in the queue) affects one pending connection, not the
server. It is logged and the loop carries on. Only a bind/listen failure
is fatal, and that happens before the loop starts.

=============================================================================
"""

import socket
import logging
import threading
import time
from typing import Optional, Callable, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


# accept() wakes up this often to notice shutdown()
ACCEPT_POLL_INTERVAL = 0.5

# Pause after a failed accept() so EMFILE does not spin the loop
ACCEPT_ERROR_BACKOFF = 0.05


class SocketServer:
    """
    TCP listener that hands each accepted client to a callback.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      SocketServer Internals                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    bind()            socket() → setsockopt() → bind() → listen()    │
    │                      address now reports the real port              │
    │                                                                      │
    │    start(handler)    bind() if needed, then the accept loop         │
    │        │             (BLOCKS until shutdown())                       │
    │        └──► while running:                                           │
    │                accept()      wait for a client                       │
    │                Connection()  wrap the client socket                  │
    │                handler(conn) hand off (HTTPServer spawns a thread)   │
    │                                                                      │
    │    shutdown()        stop the loop; safe from any thread             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    Usage:
        server = SocketServer(config)
        server.bind()
        print(server.address)          # ("127.0.0.1", 53411) for port=0
        server.start(handle_connection)
    """

    def __init__(self, config: ServerConfig):
        self.config = config
        self._socket: Optional[socket.socket] = None
        self._bound_address: Optional[Tuple[str, int]] = None
        self._running = False
        self._ready_event = threading.Event()
        self._shutdown_event = threading.Event()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """
        The (host, port) the server listens on.

        Before bind() this is the configured address; afterwards it is the
        address the OS actually assigned.
        """
        if self._bound_address is not None:
            return self._bound_address
        return (self.config.host, self.config.port)

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        # accept() returns socket.timeout periodically so the loop can
        # check the running flag
        sock.settimeout(ACCEPT_POLL_INTERVAL)
        return sock

    def bind(self) -> Tuple[str, int]:
        """
        Create the listening socket, bind it and start listening.

        Returns:
            The bound (host, port).

        Raises:
            OSError: If the address cannot be bound (in use, no permission).
        """
        if self._socket is not None:
            return self.address

        sock = self._create_socket()
        try:
            sock.bind((self.config.host, self.config.port))
            sock.listen(self.config.backlog)
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            sock.close()
            raise

        self._socket = sock
        host, port = sock.getsockname()[:2]
        self._bound_address = (host, port)
        return self._bound_address

    def start(self, connection_handler: Callable[[Connection], None]):
        """
        Accept connections until shutdown() is called.

        Args:
            connection_handler: Called with each accepted Connection, on the
                                accept thread. It must return quickly.
        """
        self.bind()

        self._running = True
        self._shutdown_event.clear()
        self._ready_event.set()

        host, port = self.address
        logger.info(f"Server listening on {host}:{port}")

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if not self._running:
                    break
                logger.error(f"Accept error: {e}")
                time.sleep(ACCEPT_ERROR_BACKOFF)
                continue

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                keep_alive_timeout=self.config.timeout,
                max_request_size=self.config.max_request_size,
            )

            try:
                connection_handler(conn)
            except Exception as e:
                # A hand-off failure (e.g. cannot start a thread) loses this
                # client only
                logger.exception(f"Failed to dispatch connection {conn.id}: {e}")
                conn.close()

    def shutdown(self):
        """Stop the accept loop. Idempotent; callable from any thread."""
        if self._running:
            logger.info("Shutting down socket server...")
        self._running = False
        self._shutdown_event.set()

    def _cleanup(self):
        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        self._running = False
        self._ready_event.clear()
        self._shutdown_event.set()
        logger.info("Socket server stopped")

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the accept loop is running. Returns False on timeout."""
        return self._ready_event.wait(timeout)

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        """Block until the accept loop has stopped. Returns False on timeout."""
        return self._shutdown_event.wait(timeout)
