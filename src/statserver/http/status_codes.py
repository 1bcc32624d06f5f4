"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The status codes this server can send, with their reason phrases
(RFC 7231).

    HTTP/1.1 404 Not Found
             ─── ─────────
              │      │
              │      └── Reason phrase (HTTPStatus.phrase)
              └───────── Status code   (int(HTTPStatus.NOT_FOUND))

IntEnum lets a status compare equal to its number:

    HTTPStatus.OK == 200         # True
    f"{HTTPStatus.NOT_FOUND}"    # "404"

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """HTTP status codes used by the server."""

    OK = 200                            # Route matched

    BAD_REQUEST = 400                   # Malformed request line / headers
    NOT_FOUND = 404                     # No route matched
    PAYLOAD_TOO_LARGE = 413             # Request exceeds max_request_size

    INTERNAL_SERVER_ERROR = 500         # Response could not be serialized
    HTTP_VERSION_NOT_SUPPORTED = 505    # Not HTTP/1.0 or HTTP/1.1

    def __str__(self) -> str:
        return str(self.value)

    @property
    def phrase(self) -> str:
        """Reason phrase for the status line."""
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_success(self) -> bool:
        """True for 2xx."""
        return 200 <= self < 300

    @property
    def is_error(self) -> bool:
        """True for 4xx and 5xx."""
        return self >= 400


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}
