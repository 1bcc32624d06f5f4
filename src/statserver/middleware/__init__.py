"""
=============================================================================
MIDDLEWARE
=============================================================================

Cross-cutting request processing that wraps the router.

    Request  ──► LoggingMiddleware ──► Router.handle ──► Handler
    Response ◄── LoggingMiddleware ◄──────────────────◄──┘

The server installs LoggingMiddleware unless access logging is disabled.

=============================================================================
"""

from .base import Middleware, MiddlewarePipeline, NextHandler
from .logging import LoggingMiddleware, RequestLog

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",
    "LoggingMiddleware",
    "RequestLog",
]
