"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket: buffered request framing, response
writes, and an orderly close.

=============================================================================
TCP IS A BYTE STREAM
=============================================================================

TCP keeps bytes in order but does not keep message boundaries. One
request may arrive across several recv() calls, and one recv() may return
the tail of one request plus the head of the next:

    client sends:   "GET / HTTP/1.1\\r\\n\\r\\nGET /health HTTP/1.1\\r\\n\\r\\n"

    recv() → "GET / HTTP/1.1\\r\\n\\r\\nGET /hea"
    recv() → "lth HTTP/1.1\\r\\n\\r\\n"

So reads go into a buffer, and a request is cut off the front of that
buffer once it is complete:

    1. read until the buffer holds \\r\\n\\r\\n (end of headers)
    2. read Content-Length (or Transfer-Encoding: chunked) from the headers
    3. read until the whole body is buffered
    4. slice the request off; whatever follows stays for the next call

Step 4 is what keeps pipelined requests on a keep-alive connection in
order.

=============================================================================
CONNECTION STATE MACHINE
=============================================================================

    NEW ──────► READING ──────► PROCESSING ──────► WRITING ────────┐
     │             │                                    │           │
     │             │                                    │           ▼
     │             │                                    │      KEEP_ALIVE
     │             │                                    │           │
     │             ▼                                    │           │
     └──────────► CLOSING ◄─────────────────────────────┴───────────┘
                    │
                    ▼
                  CLOSED

=============================================================================
"""

import socket
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, Tuple
import uuid

from .chunked import ChunkedEncodingError, decode_chunked, is_chunked


logger = logging.getLogger(__name__)


HEADER_TERMINATOR = b"\r\n\r\n"

# Upper bounds on reading leftover input before a close
DRAIN_TIMEOUT = 0.5
DRAIN_LIMIT = 64 * 1024


class RequestTooLargeError(ValueError):
    """The buffered request grew past max_request_size."""

    def __init__(self, size: int, limit: int):
        super().__init__(f"Request too large: {size} bytes (limit {limit})")
        self.size = size
        self.limit = limit


class ConnectionState(Enum):
    """Connection lifecycle states."""
    NEW = "new"                # Accepted, nothing read yet
    READING = "reading"        # Reading request bytes
    PROCESSING = "processing"  # Request parsed, handler running
    WRITING = "writing"        # Sending the response
    KEEP_ALIVE = "keep_alive"  # Response sent, waiting for the next request
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    One client connection.

    Attributes:
        socket: The accepted client socket.
        address: Client's (ip, port) tuple.
        id: Short connection identifier for log lines.
        state: Current ConnectionState.
        requests_handled: Requests read from this connection so far.
        timeout: Socket timeout for the first request. None blocks forever.
        keep_alive_timeout: Socket timeout while waiting for a follow-up
                            request. None blocks forever.
    """

    socket: socket.socket
    address: Tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    last_activity: float = field(default_factory=time.time)
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: Optional[float] = None
    keep_alive_timeout: Optional[float] = None
    max_request_size: int = 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def client_port(self) -> int:
        return self.address[1]

    @property
    def has_buffered_data(self) -> bool:
        """True if pipelined bytes are waiting in the buffer."""
        return bool(self._buffer)

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete HTTP request from the connection.

        Returns:
            The request bytes (head plus body), or None if the client closed
            the connection before starting a new request.

        Raises:
            RequestTooLargeError: If the request exceeds max_request_size.
            TimeoutError: If the first request does not arrive in time.
        """
        self.state = ConnectionState.READING
        self.last_activity = time.time()

        if self.requests_handled > 0:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            while HEADER_TERMINATOR not in self._buffer:
                chunk = self._recv()
                if not chunk:
                    if self._buffer:
                        # Peer closed mid-headers; hand back what we have so
                        # the parser can reject it
                        return self._take(len(self._buffer))
                    return None
                self._append(chunk)

            header_end = self._buffer.find(HEADER_TERMINATOR)
            body_start = header_end + len(HEADER_TERMINATOR)
            content_length, chunked = self._parse_framing(self._buffer[:header_end])

            if chunked:
                request_end = self._read_chunked_body(body_start)
            else:
                request_end = self._read_fixed_body(body_start, content_length)

            request_data = self._take(request_end)
            self.requests_handled += 1
            return request_data

        except socket.timeout:
            if self.requests_handled > 0:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout")

        finally:
            if self.state != ConnectionState.CLOSED:
                self.socket.settimeout(self.timeout)

    def _read_fixed_body(self, body_start: int, content_length: int) -> int:
        """Buffer a Content-Length body. Returns the offset where it ends."""
        request_end = body_start + content_length
        if request_end > self.max_request_size:
            raise RequestTooLargeError(request_end, self.max_request_size)

        while len(self._buffer) < request_end:
            chunk = self._recv()
            if not chunk:
                break  # Peer closed mid-body; the parser reports it
            self._append(chunk)

        return min(request_end, len(self._buffer))

    def _read_chunked_body(self, body_start: int) -> int:
        """
        Buffer a chunked body up to its last chunk and trailers.

        Returns:
            The offset where the request ends. On a malformed or truncated
            body this is the end of the buffer, and the parser rejects it.
        """
        while True:
            try:
                framed = decode_chunked(self._buffer, body_start)
            except ChunkedEncodingError:
                return len(self._buffer)

            if framed is not None:
                request_end = framed[1]
                if request_end > self.max_request_size:
                    raise RequestTooLargeError(request_end, self.max_request_size)
                return request_end

            if len(self._buffer) > self.max_request_size:
                raise RequestTooLargeError(len(self._buffer), self.max_request_size)

            chunk = self._recv()
            if not chunk:
                return len(self._buffer)
            self._append(chunk)

    def _append(self, chunk: bytes):
        self._buffer += chunk
        header_end = self._buffer.find(HEADER_TERMINATOR)
        head_size = header_end if header_end >= 0 else len(self._buffer)
        if head_size > self.max_request_size:
            raise RequestTooLargeError(len(self._buffer), self.max_request_size)

    def _take(self, size: int) -> bytes:
        data = self._buffer[:size]
        self._buffer = self._buffer[size:]
        self.last_activity = time.time()
        return data

    def _recv(self) -> bytes:
        try:
            data = self.socket.recv(self.buffer_size)
            self.last_activity = time.time()
            return data
        except (ConnectionResetError, BrokenPipeError):
            return b""

    @staticmethod
    def _parse_framing(headers: bytes) -> Tuple[int, bool]:
        """
        Find how the body is framed in a raw header block.

        Returns:
            (content_length, chunked). Transfer-Encoding: chunked wins over
            Content-Length. A missing, malformed, or negative Content-Length
            counts as 0 here and is rejected properly by the request parser.
        """
        content_length = 0
        chunked = False

        for line in headers.split(b"\r\n")[1:]:
            name, sep, value = line.partition(b":")
            if not sep:
                continue
            name = name.strip().lower()
            if name == b"content-length":
                try:
                    content_length = max(0, int(value.strip()))
                except ValueError:
                    content_length = 0
            elif name == b"transfer-encoding":
                chunked = is_chunked(value.decode("latin-1"))

        return (0 if chunked else content_length), chunked

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        Write a complete response.

        Returns:
            True on success, False if the client has gone away.
        """
        self.state = ConnectionState.WRITING
        self.last_activity = time.time()

        try:
            self.socket.sendall(data)
            self.last_activity = time.time()
            return True
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

    def set_keep_alive(self):
        self.state = ConnectionState.KEEP_ALIVE

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close the connection: send FIN, drain unread input, release the fd.

        Draining matters when we close after an error response: closing a
        socket with unread input makes the kernel send RST, which can
        discard the response before the client reads it.
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Peer already gone

        self._drain()

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests")

    def _drain(self):
        """Discard input until EOF, DRAIN_LIMIT bytes, or DRAIN_TIMEOUT seconds."""
        deadline = time.monotonic() + DRAIN_TIMEOUT
        drained = 0

        try:
            while drained < DRAIN_LIMIT:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                self.socket.settimeout(remaining)
                data = self.socket.recv(4096)
                if not data:
                    break
                drained += len(data)
        except OSError:
            pass  # Includes socket.timeout

        if drained:
            logger.debug(f"[{self.id}] Discarded {drained} unread bytes")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
