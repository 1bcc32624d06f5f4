"""
=============================================================================
STATISTICS HTTP SERVER
=============================================================================

Ties the pieces together into a running server.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        HTTPServer                                    │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    ┌──────────────┐    ┌──────────────┐    ┌──────────────┐        │
    │    │ SocketServer │    │ WorkerGroup  │    │    Router    │        │
    │    │  (accept)    │───►│ (1 thread per│───►│ (count, then │        │
    │    │              │    │  connection) │    │  dispatch)   │        │
    │    └──────────────┘    └──────────────┘    └──────┬───────┘        │
    │                                                    │                │
    │                                             ┌──────▼───────┐        │
    │                                             │ StatsTracker │        │
    │                                             │  (shared)    │        │
    │                                             └──────────────┘        │
    │                                                                      │
    │           ┌─────────────────────────────────────────┐               │
    │           │  Middleware: LoggingMiddleware → Router │               │
    │           └─────────────────────────────────────────┘               │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
REQUEST LIFECYCLE
=============================================================================

    1. SocketServer accepts a client
    2. WorkerGroup starts a thread for it
    3. Connection reads one framed request
    4. RequestParser builds an HTTPRequest    (errors → 400/413/505, close)
    5. Middleware → Router.handle             (count, route, build JSON)
    6. Connection header decided, bytes sent
    7. Keep-alive? back to 3. Otherwise close.

Each connection's failures stay inside its own thread: a parse error, a
broken pipe, or even a bug in a handler closes that connection and nothing
else.

=============================================================================
"""

import logging
from typing import Callable, Optional, Tuple

from .config import ServerConfig
from .core import (
    Connection, ConnectionState, RequestTooLargeError,
    SocketServer, StatsTracker, WorkerGroup,
)
from .handlers import install_routes
from .http import (
    HTTPRequest, RequestParser, HTTPParseError,
    HTTPResponse, HTTPStatus, ResponseSerializationError,
    Router, error_response, serialization_fallback,
)
from .middleware import LoggingMiddleware, MiddlewarePipeline


logger = logging.getLogger(__name__)


class HTTPServer:
    """
    The statistics server.

    Usage:
        server = HTTPServer(ServerConfig(port=8080))
        server.run()                 # blocks until shutdown()

    From another thread (tests):
        server = HTTPServer(ServerConfig(port=0, access_log=False))
        thread = threading.Thread(target=server.run, daemon=True)
        thread.start()
        server.wait_until_ready(5.0)
        host, port = server.address
        ...
        server.shutdown()
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        stats: Optional[StatsTracker] = None,
    ):
        """
        Args:
            config: Server configuration. Defaults are used when omitted.
            stats: Tracker to count into. A fresh one is created when omitted.

        Raises:
            ConfigError: If the configuration is invalid.
        """
        self.config = config or ServerConfig()
        self.config.validate()

        self.stats = stats or StatsTracker()

        self._socket_server = SocketServer(self.config)
        self._workers = WorkerGroup()
        self._parser = RequestParser(max_request_size=self.config.max_request_size)

        self._router = Router(self.stats, server_name=self.config.server_name)
        install_routes(self._router)

        self._middleware = MiddlewarePipeline()
        if self.config.access_log:
            self._middleware.add(LoggingMiddleware(log_format=self.config.log_format))

        self._handler: Optional[Callable[[HTTPRequest], HTTPResponse]] = None
        self._running = False

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    @property
    def router(self) -> Router:
        return self._router

    @property
    def workers(self) -> WorkerGroup:
        return self._workers

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); the real port once the server is listening."""
        return self._socket_server.address

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def handler(self) -> Callable[[HTTPRequest], HTTPResponse]:
        """The middleware chain wrapped around Router.handle."""
        if self._handler is None:
            self._handler = self._middleware.wrap(self._router.handle)
        return self._handler

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self):
        """
        Bind and serve until shutdown() is called (or Ctrl+C).

        Raises:
            OSError: If the address cannot be bound.
        """
        self._setup_logging()
        self._socket_server.bind()
        self._running = True

        self._print_startup_banner()

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._running = False
            logger.info(
                f"Server stopped after {self.stats.total_requests} requests "
                f"({self._workers.active} connections still open)"
            )

    def shutdown(self):
        """Stop accepting connections. Open connections are not drained."""
        self._running = False
        self._socket_server.shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the accept loop is running."""
        return self._socket_server.wait_until_ready(timeout)

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        """Block until the accept loop has stopped."""
        return self._socket_server.wait_for_shutdown(timeout)

    def _setup_logging(self):
        level = self.config.log_level_value

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        logging.getLogger("statserver").setLevel(level)

    def _print_startup_banner(self):
        host, port = self.address
        print()
        print(f"{self.config.server_name} listening on http://{host}:{port}")
        print("Available endpoints:")
        for route in self._router.routes():
            print(f"  {route.method or 'ANY'} {route.pattern}")
        print()

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """Called on the accept thread: give the connection its own worker."""
        self._workers.spawn(self._process_connection, args=(conn,))

    def _process_connection(self, conn: Connection):
        """
        Serve one connection until it closes (runs in its worker thread).

        Requests on a keep-alive connection are read, answered, and written
        strictly one after another, so responses come back in request order.
        """
        logger.debug(f"[{conn.id}] Connection from {conn.client_ip}:{conn.client_port}")

        with conn:
            while self._running:
                try:
                    raw_request = conn.read_request()
                except RequestTooLargeError as e:
                    logger.debug(f"[{conn.id}] {e}")
                    self._send_error(conn, HTTPStatus.PAYLOAD_TOO_LARGE)
                    break
                except TimeoutError:
                    logger.debug(f"[{conn.id}] Timed out waiting for a request")
                    break

                if raw_request is None:
                    break

                try:
                    request = self._parser.parse(raw_request, conn.address)
                except HTTPParseError as e:
                    logger.debug(f"[{conn.id}] Bad request: {e}")
                    self._send_error(conn, e.status_code)
                    break

                conn.state = ConnectionState.PROCESSING
                response = self._respond(conn, request)

                keep_alive = (
                    self.config.keep_alive
                    and request.is_keep_alive
                    and response.headers.get("Connection") != "close"
                )
                response.headers["Connection"] = "keep-alive" if keep_alive else "close"

                payload = response.to_bytes(
                    self.config.server_name,
                    include_body=request.method != "HEAD",
                )
                if not conn.send_response(payload):
                    break

                if not keep_alive:
                    break

                conn.set_keep_alive()

    def _respond(self, conn: Connection, request: HTTPRequest) -> HTTPResponse:
        try:
            return self.handler(request)
        except ResponseSerializationError as e:
            logger.exception(f"[{conn.id}] Could not serialize response: {e}")
        except Exception as e:
            logger.exception(f"[{conn.id}] Handler error: {e}")
        return serialization_fallback(self.config.server_name)

    def _send_error(self, conn: Connection, status: HTTPStatus):
        """Answer a request that never reached the router."""
        response = error_response(status, status.phrase, self.config.server_name)
        conn.send_response(response.to_bytes(self.config.server_name))
