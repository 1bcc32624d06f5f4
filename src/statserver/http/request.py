"""
=============================================================================
HTTP REQUEST PARSING
=============================================================================

This module parses raw HTTP/1.1 request bytes into HTTPRequest objects.

=============================================================================
HTTP REQUEST STRUCTURE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────┐
    │ GET /echo/hello?x=1 HTTP/1.1             ← Request Line         │
    ├─────────────────────────────────────────────────────────────────┤
    │ Host: localhost:8080                     ← Headers              │
    │ Connection: keep-alive                                          │
    ├─────────────────────────────────────────────────────────────────┤
    │                                          ← Empty line (CRLF)    │
    ├─────────────────────────────────────────────────────────────────┤
    │ (optional body, Content-Length or chunked) ← Body               │
    └─────────────────────────────────────────────────────────────────┘

Only the request line and a few headers matter here:

    method      → routing
    path        → routing (query string removed, NOT percent-decoded)
    version     → keep-alive default
    Connection  → keep-alive override

The body is framed by Content-Length or chunked transfer coding so the
next request on a persistent connection starts at the right byte, and is
otherwise ignored.

=============================================================================
THE PATH IS TAKEN VERBATIM
=============================================================================

    GET /echo/hello%20world HTTP/1.1
                                    → path = "/echo/hello%20world"

The echo route returns exactly the bytes after "/echo/". Decoding "%20",
collapsing "//" or stripping a trailing "/" here would change what the
client gets back, so the parser leaves the path alone.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Dict
from urllib.parse import urlsplit
import re

from ..core.chunked import ChunkedEncodingError, decode_chunked, is_chunked
from .status_codes import HTTPStatus


class HTTPParseError(Exception):
    """
    Raised when HTTP request parsing fails.

    Carries the status code to answer with:

        400 Bad Request                - Malformed request syntax
        413 Payload Too Large          - Request exceeds size limit
        505 HTTP Version Not Supported - Not HTTP/1.0 or HTTP/1.1
    """

    def __init__(self, message: str, status_code: HTTPStatus = HTTPStatus.BAD_REQUEST):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    Represents a parsed HTTP request.

    Attributes:
        method: Request method exactly as sent ("GET", "POST", ...).
        path: Request path without query string, not decoded.
        version: "HTTP/1.1" or "HTTP/1.0".
        headers: Header dict with lowercase names.
        query_string: Raw text after "?" (may be empty).
        body: Raw body bytes (read for framing only).
        path_params: Values captured by the router (e.g. {"message": "hi"}).
        client_address: (ip, port) of the peer.
        request_number: Server-wide request count right after this request
                        was counted. Set by the router, used in access logs.
    """

    method: str
    path: str
    version: str = "HTTP/1.1"

    headers: Dict[str, str] = field(default_factory=dict)
    query_string: str = ""
    body: bytes = b""

    path_params: Dict[str, str] = field(default_factory=dict)

    client_address: tuple[str, int] = ("", 0)
    request_number: int = 0

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def is_keep_alive(self) -> bool:
        """
        Check if this connection should be kept alive.

        HTTP/1.1 (default: keep-alive):
            Connection: close      → close after response
            (missing)              → keep alive

        HTTP/1.0 (default: close):
            Connection: keep-alive → keep alive
            (missing)              → close after response
        """
        connection = self.headers.get("connection", "").lower()

        if self.version == "HTTP/1.1":
            return connection != "close"
        else:
            return connection == "keep-alive"

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)


class RequestParser:
    """
    Parses raw HTTP request bytes into HTTPRequest objects.

        Raw Request Bytes
              │
              ▼
        1. Size check               → 413 if too large
        2. Find \\r\\n\\r\\n          → 400 if missing
        3. Parse request line       → 400 / 505
        4. Parse headers            (names lowercased)
        5. Slice body               (Content-Length or chunked)
              │
              ▼
        HTTPRequest

    REQUEST_LINE_PATTERN accepts any RFC 7230 token as the method. Unknown
    methods are not a parse error: they reach the router and get a 404.
    """

    REQUEST_LINE_PATTERN = re.compile(
        r"^([!#$%&'*+.^_`|~0-9A-Za-z-]+) (\S+) (HTTP/\d\.\d)$"
    )
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    SUPPORTED_VERSIONS = ("HTTP/1.0", "HTTP/1.1")

    def __init__(self, max_request_size: int = 1024 * 1024):
        """
        Args:
            max_request_size: Maximum allowed request size in bytes.
        """
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0)
    ) -> HTTPRequest:
        """
        Parse raw HTTP request data into an HTTPRequest object.

        Args:
            data: Raw HTTP request bytes from socket.
            client_address: Client's (ip, port) tuple for logging.

        Returns:
            Parsed HTTPRequest object.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {len(data)} bytes",
                status_code=HTTPStatus.PAYLOAD_TOO_LARGE,
            )

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        # Latin-1 never fails to decode; the request line is checked for
        # plain ASCII separately (a URI may not carry raw 8-bit bytes).
        header_section = data[:header_end].decode("latin-1")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        if not lines[0].isascii():
            raise HTTPParseError("Invalid request line: non-ASCII bytes")

        method, path, query_string, version = self._parse_request_line(lines[0])

        headers = self._parse_headers(lines[1:])

        if is_chunked(headers.get("transfer-encoding", "")):
            body = self._parse_chunked_body(body)
        else:
            body = self._parse_fixed_body(body, headers.get("content-length", "0"))

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            query_string=query_string,
            body=body,
            client_address=client_address,
        )

    def _parse_fixed_body(self, body: bytes, content_length_header: str) -> bytes:
        try:
            content_length = int(content_length_header)
        except ValueError:
            raise HTTPParseError("Invalid Content-Length header")

        if content_length < 0:
            raise HTTPParseError("Invalid Content-Length header")

        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        return body[:content_length]

    def _parse_chunked_body(self, body: bytes) -> bytes:
        try:
            decoded = decode_chunked(body)
        except ChunkedEncodingError as e:
            raise HTTPParseError(f"Invalid chunked body: {e}")

        if decoded is None:
            raise HTTPParseError("Incomplete chunked body")

        return decoded[0]

    def _parse_request_line(self, line: str) -> tuple[str, str, str, str]:
        """
        Parse the HTTP request line.

            METHOD SP REQUEST-TARGET SP HTTP-VERSION

            Example: "GET /echo/hi?x=1 HTTP/1.1"

        Returns:
            Tuple of (method, path, query_string, version)

        Raises:
            HTTPParseError: If line is malformed
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line!r}")

        method, target, version = match.groups()

        if version not in self.SUPPORTED_VERSIONS:
            raise HTTPParseError(
                f"Unsupported HTTP version: {version}",
                status_code=HTTPStatus.HTTP_VERSION_NOT_SUPPORTED,
            )

        path, query_string = split_target(target)
        return method, path, query_string, version

    def _parse_headers(self, lines: list[str]) -> Dict[str, str]:
        """
        Parse HTTP headers into a dictionary.

        - Names are lowercased ("Content-Type" == "content-type").
        - Repeated headers are joined with ", ".
        - Lines that don't look like "Name: value" are skipped.
        """
        headers: Dict[str, str] = {}

        for line in lines:
            if not line:
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers


def split_target(target: str) -> tuple[str, str]:
    """
    Split a request-target into (path, query_string).

    Origin-form ("/a/b?q") is split on the first "?". Absolute-form
    ("http://host/a/b?q", sent to proxies) keeps only its path. Neither
    form is percent-decoded.
    """
    if "://" in target and not target.startswith("/"):
        parts = urlsplit(target)
        return parts.path or "/", parts.query

    path, _, query_string = target.partition("?")
    return path, query_string


def parse_request(
    data: bytes,
    client_address: tuple[str, int] = ("", 0),
    max_size: int = 1024 * 1024
) -> HTTPRequest:
    """Parse one request with a throwaway RequestParser."""
    return RequestParser(max_request_size=max_size).parse(data, client_address)
