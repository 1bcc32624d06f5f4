"""
pytest configuration and fixtures.
"""

import socket
import threading
from typing import Callable, Generator, List

import pytest

from statserver import HTTPServer, ServerConfig, StatsTracker


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /echo/hello?page=1 HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: application/json\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with a body the server ignores."""
    body = b'{"name": "John"}'
    return (
        b"POST /stats HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/json\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"Connection: close\r\n"
        b"\r\n"
    ) + body


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def stats(clock: FakeClock) -> StatsTracker:
    """Tracker pinned to a fake clock."""
    return StatsTracker(clock=clock)


@pytest.fixture
def config() -> ServerConfig:
    """Test server configuration."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        log_level="WARNING",
        access_log=False,
    )


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


class TestServer:
    """Runs an HTTPServer in a background thread."""

    __test__ = False  # not a test class, despite the name

    def __init__(self, server: HTTPServer):
        self.server = server
        self._thread: threading.Thread = None

    @property
    def host(self) -> str:
        return self.server.address[0]

    @property
    def port(self) -> int:
        return self.server.address[1]

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def start(self):
        """Start the server and wait until it accepts connections."""
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()

        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        self.server.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)

    def connect(self) -> socket.socket:
        """Open a raw client socket to the server."""
        sock = socket.create_connection((self.host, self.port), timeout=5.0)
        return sock

    def send_raw(self, data: bytes) -> bytes:
        """Send raw bytes on a fresh connection and read until the server closes."""
        with self.connect() as sock:
            sock.sendall(data)
            return read_until_close(sock)


def read_until_close(sock: socket.socket) -> bytes:
    chunks: List[bytes] = []
    while True:
        chunk = sock.recv(65536)
        if not chunk:
            break
        chunks.append(chunk)
    return b"".join(chunks)


@pytest.fixture
def server_factory() -> Generator[Callable[[ServerConfig], TestServer], None, None]:
    """Start servers with custom configs; all are stopped at teardown."""
    started: List[TestServer] = []

    def factory(server_config: ServerConfig) -> TestServer:
        test_srv = TestServer(HTTPServer(server_config))
        test_srv.start()
        started.append(test_srv)
        return test_srv

    yield factory

    for test_srv in started:
        test_srv.stop()


@pytest.fixture
def test_server(config: ServerConfig, server_factory) -> TestServer:
    """A running server on an ephemeral port."""
    return server_factory(config)
