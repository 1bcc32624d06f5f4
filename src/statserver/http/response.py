"""
=============================================================================
HTTP RESPONSE BUILDING
=============================================================================

This module turns a status code and a JSON payload into the bytes that go
on the wire.

=============================================================================
HTTP RESPONSE STRUCTURE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────┐
    │ HTTP/1.1 200 OK                          ← Status Line          │
    ├─────────────────────────────────────────────────────────────────┤
    │ Content-Type: application/json           ← Headers              │
    │ Server: statserver/1.0                                          │
    │ Content-Length: 86                                              │
    │ Date: Wed, 01 Jan 2026 12:00:00 GMT                             │
    ├─────────────────────────────────────────────────────────────────┤
    │                                          ← Empty line (CRLF)    │
    ├─────────────────────────────────────────────────────────────────┤
    │ {"message": "Server is healthy", ...}    ← Body                 │
    └─────────────────────────────────────────────────────────────────┘

Content-Type and Server are set on EVERY response: successes, 404s, parse
errors, and the 500 fallback alike.

=============================================================================
BUILDER PATTERN
=============================================================================

    response = (ResponseBuilder(server_name="statserver/1.0")
        .status(HTTPStatus.OK)
        .payload(JsonMessage.now("hi", "statserver/1.0"))
        .build())

or, in one call:

    response = build_response(HTTPStatus.OK, payload, "statserver/1.0")

=============================================================================
SERIALIZATION MUST NOT FAIL
=============================================================================

Only the fixed payload shapes in payloads.py are ever serialized, so
json.dumps cannot fail on them. If it does anyway, that is a bug in this
package. build() raises ResponseSerializationError and the connection
handler answers with serialization_fallback(), a 500 whose JsonMessage
body is rendered once per server name from plain strings and a timestamp
fixed at import time.

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import lru_cache
from typing import Dict, Optional
import json

from .payloads import JsonMessage, Payload, now_rfc3339
from .status_codes import HTTPStatus


JSON_CONTENT_TYPE = "application/json"

DEFAULT_SERVER_NAME = "statserver/1.0"


class ResponseSerializationError(Exception):
    """
    Raised when a payload cannot be rendered as JSON.

    This is a programming error, not a client error. The connection that hit
    it gets a 500; other connections are unaffected.
    """


@dataclass
class HTTPResponse:
    """
    Represents an HTTP response to be sent to the client.

    =========================================================================
    RESPONSE LIFECYCLE
    =========================================================================

        Router builds          to_bytes()              Socket sends
        HTTPResponse   ─────►  serializes    ─────►    raw bytes

    =========================================================================
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """
        Get the HTTP status line.

        Format: HTTP-VERSION SP STATUS-CODE SP REASON-PHRASE
        Example: "HTTP/1.1 200 OK"
        """
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        """Set a response header. Returns self for chaining."""
        self.headers[name] = value
        return self

    def json(self) -> Dict:
        """Decode the body back into a dict."""
        return json.loads(self.body.decode("utf-8"))

    def to_bytes(
        self,
        server_name: str = DEFAULT_SERVER_NAME,
        include_body: bool = True,
    ) -> bytes:
        """
        Serialize the response to bytes for sending over socket.

            HTTP/1.1 200 OK\\r\\n
            Content-Type: application/json\\r\\n
            Server: statserver/1.0\\r\\n
            Content-Length: 27\\r\\n       ← Auto-calculated
            Date: Wed, 01 Jan 2026 ...\\r\\n  ← Auto-added
            \\r\\n
            {"message": "Hello"}

        Args:
            server_name: Server header value used when the response does
                         not carry one already.
            include_body: False for HEAD: the headers, Content-Length
                          included, describe the body but it is not sent.

        Returns:
            Complete HTTP response as bytes ready for socket.sendall()
        """
        response_headers = dict(self.headers)

        response_headers.setdefault("Content-Type", JSON_CONTENT_TYPE)
        response_headers.setdefault("Server", server_name)

        if "Content-Length" not in response_headers:
            response_headers["Content-Length"] = str(len(self.body))

        if "Date" not in response_headers:
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("utf-8") + b"\r\n"

        if not include_body:
            return header_bytes
        return header_bytes + self.body


class ResponseBuilder:
    """
    Fluent builder for JSON responses.

    Each method returns `self`, enabling chaining:

        builder.status(404).payload(msg).close_connection().build()
    """

    def __init__(self, server_name: str = DEFAULT_SERVER_NAME):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._payload: Optional[Payload] = None
        self._server_name = server_name

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        """Set the HTTP status code."""
        self._status = status
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        """Add a single response header."""
        self._headers[name] = value
        return self

    def payload(self, payload: Payload) -> "ResponseBuilder":
        """Set the JSON body entity."""
        self._payload = payload
        return self

    def keep_alive(self) -> "ResponseBuilder":
        """Tell the client this connection stays open."""
        self._headers["Connection"] = "keep-alive"
        return self

    def close_connection(self) -> "ResponseBuilder":
        """Tell the client the connection closes after this response."""
        self._headers["Connection"] = "close"
        return self

    def build(self) -> HTTPResponse:
        """
        Build the HTTPResponse.

        Raises:
            ResponseSerializationError: If the payload cannot be rendered.
        """
        headers = {
            "Content-Type": JSON_CONTENT_TYPE,
            "Server": self._server_name,
        }
        headers.update(self._headers)

        return HTTPResponse(
            status=self._status,
            headers=headers,
            body=render_payload(self._payload) if self._payload is not None else b"",
        )

    def to_bytes(self) -> bytes:
        """Build and serialize the response in one step."""
        return self.build().to_bytes(self._server_name)


def render_payload(payload: Payload) -> bytes:
    """
    Render a payload as compact UTF-8 JSON in its declared field order.

    ensure_ascii=False keeps echoed text readable ("Echo: café") instead of
    escaping it to \\u sequences.

    Raises:
        ResponseSerializationError: If json.dumps rejects the payload.
    """
    try:
        text = json.dumps(payload.to_dict(), ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError, AttributeError) as e:
        raise ResponseSerializationError(
            f"Cannot serialize {type(payload).__name__}: {e}"
        ) from e
    return text.encode("utf-8")


def build_response(
    status: HTTPStatus,
    payload: Payload,
    server_name: str = DEFAULT_SERVER_NAME,
) -> HTTPResponse:
    """
    Build a JSON response with the standard headers.

    Args:
        status: HTTP status code.
        payload: JsonMessage or StatsSnapshot.
        server_name: Value for the Server header.

    Returns:
        HTTPResponse with Content-Type and Server set.

    Raises:
        ResponseSerializationError: If the payload cannot be rendered.
    """
    return ResponseBuilder(server_name).status(status).payload(payload).build()


def error_response(
    status: HTTPStatus,
    message: str,
    server_name: str = DEFAULT_SERVER_NAME,
) -> HTTPResponse:
    """
    Build a JsonMessage error response that closes the connection.

    Used for requests that never reach the router (parse errors).
    """
    return (ResponseBuilder(server_name)
        .status(status)
        .payload(JsonMessage.now(message, server_name))
        .close_connection()
        .build())


_FALLBACK_MESSAGE = "Internal Server Error"
_FALLBACK_TIMESTAMP = now_rfc3339()


@lru_cache(maxsize=None)
def _fallback_body(server_name: str) -> bytes:
    message = JsonMessage(_FALLBACK_MESSAGE, _FALLBACK_TIMESTAMP, server_name)
    return json.dumps(message.to_dict(), ensure_ascii=False).encode("utf-8", "replace")


def serialization_fallback(server_name: str = DEFAULT_SERVER_NAME) -> HTTPResponse:
    """
    The 500 response sent when building the real response failed.

    The body has the usual message shape. It holds only plain strings and
    is cached per server name, so every call returns the same bytes.
    """
    return HTTPResponse(
        status=HTTPStatus.INTERNAL_SERVER_ERROR,
        headers={
            "Content-Type": JSON_CONTENT_TYPE,
            "Server": server_name,
            "Connection": "close",
        },
        body=_fallback_body(server_name),
    )


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231).

    Format: Day, DD Mon YYYY HH:MM:SS GMT
    Example: Wed, 01 Jan 2026 12:00:00 GMT

    HTTP dates are always GMT, never local time.
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]

    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )
