"""
=============================================================================
HTTP PROTOCOL IMPLEMENTATION
=============================================================================

Translates raw bytes from TCP into structured HTTP messages and back.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ REQUEST PARSER (request.py)                                         │
    │   b"GET /echo/hi HTTP/1.1\\r\\n..."  →  HTTPRequest(method, path)     │
    ├─────────────────────────────────────────────────────────────────────┤
    │ ROUTER (router.py)                                                  │
    │   counts the request, picks the first matching route              │
    ├─────────────────────────────────────────────────────────────────────┤
    │ PAYLOADS (payloads.py)                                              │
    │   JsonMessage / StatsSnapshot wrapped in a Reply(status, payload)   │
    ├─────────────────────────────────────────────────────────────────────┤
    │ RESPONSE BUILDER (response.py)                                      │
    │   Reply  →  HTTPResponse  →  b"HTTP/1.1 200 OK\\r\\n..."              │
    ├─────────────────────────────────────────────────────────────────────┤
    │ STATUS CODES (status_codes.py)                                      │
    │   HTTPStatus.NOT_FOUND → 404, phrase "Not Found"                    │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError
from .response import (
    HTTPResponse,
    ResponseBuilder,
    ResponseSerializationError,
    build_response,
    error_response,
    serialization_fallback,
)
from .payloads import JsonMessage, Reply
from .router import Router, Route, RouteMatch
from .status_codes import HTTPStatus

__all__ = [
    # Request parsing
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",

    # Response building
    "HTTPResponse",
    "ResponseBuilder",
    "ResponseSerializationError",
    "build_response",
    "error_response",
    "serialization_fallback",

    # Payloads
    "JsonMessage",
    "Reply",

    # Routing
    "Router",
    "Route",
    "RouteMatch",

    # Status codes
    "HTTPStatus",
]
