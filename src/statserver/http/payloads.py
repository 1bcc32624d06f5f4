"""
=============================================================================
RESPONSE PAYLOADS
=============================================================================

The fixed set of JSON body shapes this server ever sends.

    JsonMessage     {"message": ..., "timestamp": ..., "server": ...}
    StatsSnapshot   {"total_requests": ..., "uptime_seconds": ...,
                     "requests_per_second": ...}   (see core/stats.py)

Handlers return a Reply (status + payload). They never build bytes
themselves; the Router hands the Reply to the ResponseBuilder so every
response gets the same headers.

=============================================================================
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Union

from ..core.stats import StatsSnapshot
from .status_codes import HTTPStatus


def now_rfc3339() -> str:
    """
    Current local time as an RFC 3339 string with UTC offset.

    Example: "2026-01-01T12:00:00.123456+01:00"
    """
    return datetime.now().astimezone().isoformat()


@dataclass(frozen=True)
class JsonMessage:
    """
    Message body used by every route except /stats.

    Attributes:
        message: Human-readable text ("Not Found", "Echo: hi", ...).
        timestamp: Time the request was handled, RFC 3339.
        server: Server identifier, same value as the Server header.
    """

    message: str
    timestamp: str
    server: str

    @classmethod
    def now(cls, message: str, server: str) -> "JsonMessage":
        """Create a message stamped with the current time."""
        return cls(message=message, timestamp=now_rfc3339(), server=server)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "timestamp": self.timestamp,
            "server": self.server,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JsonMessage":
        return cls(
            message=str(data["message"]),
            timestamp=str(data["timestamp"]),
            server=str(data["server"]),
        )


Payload = Union[JsonMessage, StatsSnapshot]


@dataclass(frozen=True)
class Reply:
    """What a route handler returns: a status and one of the payloads."""

    status: HTTPStatus
    payload: Payload
