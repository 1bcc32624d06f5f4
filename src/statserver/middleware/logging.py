"""
=============================================================================
ACCESS LOGGING MIDDLEWARE
=============================================================================

One log line per request that reached the router:

    text:
        [2026-01-01T12:00:00.123456+00:00] GET /echo/hi - Request #42 - 200 (0.31ms)

    json:
        {"timestamp": "...", "request_number": 42, "method": "GET",
         "path": "/echo/hi", "status_code": 200, "client_ip": "127.0.0.1",
         "content_length": 97, "duration_ms": 0.31}

The request number is the value the router stored on the request after
counting it, i.e. the same sequence number /stats would include.

Lines go to the "statserver.access" logger, so they can be routed or
silenced separately from diagnostic logs:

    logging.getLogger("statserver.access").setLevel(logging.WARNING)

=============================================================================
"""

import time
import json
import logging
from dataclasses import dataclass, asdict

from .base import Middleware, NextHandler
from ..http.payloads import now_rfc3339
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


access_logger = logging.getLogger("statserver.access")


@dataclass
class RequestLog:
    """Structured access log entry."""

    timestamp: str
    request_number: int
    method: str
    path: str
    status_code: int
    client_ip: str
    content_length: int
    duration_ms: float

    def to_dict(self) -> dict:
        data = asdict(self)
        data["duration_ms"] = round(self.duration_ms, 2)
        return data

    def to_text(self) -> str:
        return (
            f"[{self.timestamp}] {self.method} {self.path} "
            f"- Request #{self.request_number} "
            f"- {self.status_code} ({self.duration_ms:.2f}ms)"
        )


class LoggingMiddleware(Middleware):
    """
    Access log middleware. Add it first so it times the whole chain.

        pipeline.add(LoggingMiddleware(log_format="json"))
    """

    def __init__(self, log_format: str = "text", log_level: int = logging.INFO):
        """
        Args:
            log_format: "text" or "json".
            log_level: Level the access lines are logged at.
        """
        self.log_format = log_format
        self.log_level = log_level

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        timestamp = now_rfc3339()
        start_time = time.perf_counter()

        try:
            response = next(request)
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            access_logger.error(
                f"[{timestamp}] {request.method} {request.path} "
                f"- Request #{request.request_number} "
                f"- failed: {type(e).__name__}: {e} ({duration_ms:.2f}ms)"
            )
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000

        entry = RequestLog(
            timestamp=timestamp,
            request_number=request.request_number,
            method=request.method,
            path=request.path,
            status_code=int(response.status),
            client_ip=request.client_address[0],
            content_length=len(response.body),
            duration_ms=duration_ms,
        )

        if self.log_format == "json":
            access_logger.log(self.log_level, json.dumps(entry.to_dict()))
        else:
            access_logger.log(self.log_level, entry.to_text())

        return response
